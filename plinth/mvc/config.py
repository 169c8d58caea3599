"""
Module Configuration.

Each module carries its own ``configs/config.ini``. The file is parsed with
``configparser`` and validated section by section with Pydantic models::

    [application]
    environment = production
    timezone = Africa/Nairobi
    from_email = noreply@example.com
    to_email = support@example.com

    [database]
    url = sqlite:///data/app.db

    [mail]
    host = smtp.example.com

    [production]
    error_reporting = WARNING
    email_errors = 1
    log_errors = 1
    display_errors = 0
"""

from __future__ import annotations

import configparser
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy.engine import URL

from plinth.core.logging_config import build_formatter, get_logger
from plinth.errors import ConfigurationError
from plinth.mvc.loader import is_secure
from plinth.mvc.notifier import MailSettings, Notifier, ThrottledEmailHandler

logger = get_logger(__name__)

DEVELOPMENT = "development"
PRODUCTION = "production"

APP_LOGGER_PREFIX = "plinth.app"

# =====================================================================
# INI Section Models
# =====================================================================


class ApplicationSection(BaseModel):
    """The ``[application]`` section."""

    environment: Literal["development", "production"] = PRODUCTION
    timezone: str = "UTC"
    error_log: Optional[Path] = None
    exception_log: Optional[Path] = None
    from_email: str = "noreply@localhost"
    to_email: str = "support@localhost"
    error_mailing_delay: int = Field(default=3600, ge=0, description="Seconds between error emails")
    exception_mailing_delay: int = Field(default=3600, ge=0, description="Seconds between exception emails")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate that the timezone names an IANA zone."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{v}'") from e
        return v


class DatabaseSection(BaseModel):
    """The ``[database]`` section: either a full ``url`` or its parts."""

    url: Optional[str] = None
    driver: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    cache: bool = False
    cache_backend: Literal["file", "memory"] = "file"
    cache_lifetime: Optional[int] = None

    def sqlalchemy_url(self) -> Union[str, URL]:
        if self.url:
            return self.url
        if not self.driver:
            raise ConfigurationError("The [database] section needs either 'url' or 'driver'")
        return URL.create(
            drivername=self.driver,
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.name,
        )


class ReportingSection(BaseModel):
    """The ``[development]`` and ``[production]`` sections."""

    error_reporting: str = "WARNING"
    email_errors: bool = False
    log_errors: bool = True
    display_errors: bool = False

    @property
    def level(self) -> int:
        level = logging.getLevelName(self.error_reporting.upper())
        return level if isinstance(level, int) else logging.WARNING


class ModuleSettings(BaseModel):
    """All sections of a module's ``config.ini``."""

    application: ApplicationSection = Field(default_factory=ApplicationSection)
    database: Optional[DatabaseSection] = None
    mail: MailSettings = Field(default_factory=MailSettings)
    development: ReportingSection = Field(
        default_factory=lambda: ReportingSection(error_reporting="DEBUG", display_errors=True)
    )
    production: ReportingSection = Field(default_factory=ReportingSection)


# =====================================================================
# Module Config
# =====================================================================


class ModuleConfig:
    """Configuration of one module, loaded lazily from ``<module>/configs/config.ini``.

    Args:
        module_dir: The module's directory
    """

    def __init__(self, module_dir: Union[str, Path]) -> None:
        self.module_dir = Path(module_dir)
        self.name = self.module_dir.name
        self.path = self.module_dir / "configs" / "config.ini"
        self._configs: Optional[ModuleSettings] = None
        self._notifier: Optional[Notifier] = None
        self._handlers: list[logging.Handler] = []
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not is_secure(self.path):
            raise ConfigurationError(f"The config filename '{self.path}' contains illegal characters")
        if not self.path.is_file():
            raise ConfigurationError(f"Cannot access config file '{self.path}'. It may not exist or is not readable")
        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read(self.path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Cannot parse config file '{self.path}': {e}") from e
        # Empty values mean "use the default".
        return {
            section: {key: value.strip().strip('"') for key, value in parser.items(section) if value.strip()}
            for section in parser.sections()
        }

    def set_configs(self) -> ModuleSettings:
        """(Re)load and validate the config file.

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid.
        """
        raw = self._read()
        try:
            configs = ModuleSettings.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid config file '{self.path}': {e}") from e

        logs_dir = self.module_dir / "logs"
        app = configs.application
        app.error_log = self._resolve(app.error_log) or logs_dir / "error.log"
        app.exception_log = self._resolve(app.exception_log) or logs_dir / "exception.log"
        self._configs = configs
        self._notifier = None
        logger.debug(f"Loaded config for module '{self.name}' ({app.environment})")
        return configs

    def _resolve(self, path: Optional[Path]) -> Optional[Path]:
        if path is None or path.is_absolute():
            return path
        return self.module_dir / path

    def get_configs(self) -> ModuleSettings:
        if self._configs is None:
            return self.set_configs()
        return self._configs

    # ------------------------------------------------------------------
    # Shortcuts
    # ------------------------------------------------------------------

    @property
    def environment(self) -> str:
        return self.get_configs().application.environment

    @property
    def is_development(self) -> bool:
        return self.environment == DEVELOPMENT

    @property
    def reporting(self) -> ReportingSection:
        configs = self.get_configs()
        return configs.development if self.is_development else configs.production

    @property
    def error_log(self) -> Path:
        path = self.get_configs().application.error_log
        assert path is not None
        return path

    @property
    def exception_log(self) -> Path:
        path = self.get_configs().application.exception_log
        assert path is not None
        return path

    @property
    def database(self) -> Optional[DatabaseSection]:
        return self.get_configs().database

    @property
    def app_logger(self) -> logging.Logger:
        """Logger for application errors of this module; handlers are installed by :meth:`run`."""
        return logging.getLogger(f"{APP_LOGGER_PREFIX}.{self.name}")

    @property
    def exception_logger(self) -> logging.Logger:
        """Logger writing to the module's exception log."""
        return logging.getLogger(f"{APP_LOGGER_PREFIX}.{self.name}.exceptions")

    @property
    def notifier(self) -> Notifier:
        if self._notifier is None:
            configs = self.get_configs()
            app = configs.application
            self._notifier = Notifier(
                configs.mail,
                from_email=app.from_email,
                to_email=app.to_email,
                timezone=app.timezone,
                logger=self.exception_logger,
            )
        return self._notifier

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Install the module's error logging and email handlers.

        Safe to call on every request: handlers are only installed once per
        loaded configuration.
        """
        configs = self.get_configs()
        with self._lock:
            if not self._handlers:
                self._install_handlers(configs)

    def _install_handlers(self, configs: ModuleSettings) -> None:
        reporting = self.reporting
        app_logger = self.app_logger
        app_logger.setLevel(reporting.level)
        formatter = build_formatter()

        if reporting.log_errors:
            self.error_log.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.error_log, encoding="utf-8", delay=True)
            file_handler.setFormatter(formatter)
            app_logger.addHandler(file_handler)
            self._handlers.append(file_handler)

        if reporting.email_errors:
            email_handler = ThrottledEmailHandler(
                self.notifier, self.error_log, configs.application.error_mailing_delay, level=reporting.level
            )
            email_handler.setFormatter(formatter)
            app_logger.addHandler(email_handler)
            self._handlers.append(email_handler)

        exception_logger = self.exception_logger
        exception_logger.setLevel(logging.ERROR)
        # Exceptions only go to their own log.
        exception_logger.propagate = False
        self.exception_log.parent.mkdir(parents=True, exist_ok=True)
        exception_handler = logging.FileHandler(self.exception_log, encoding="utf-8", delay=True)
        exception_handler.setFormatter(formatter)
        exception_logger.addHandler(exception_handler)
        self._handlers.append(exception_handler)

        logger.info(
            f"Module '{self.name}' running in {configs.application.environment} "
            f"(log_errors={reporting.log_errors}, email_errors={reporting.email_errors})"
        )

    def close(self) -> None:
        """Remove and close the handlers installed by :meth:`run`."""
        for handler in self._handlers:
            self.app_logger.removeHandler(handler)
            self.exception_logger.removeHandler(handler)
            handler.close()
        self._handlers = []
