"""
Configuration Settings.

This module defines the framework configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.

Per-module settings (database, mail, error reporting) live in each module's
``configs/config.ini`` and are handled by :mod:`plinth.mvc.config`.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class SessionCookieConfig(BaseModel):
    """Session cookie configuration."""

    secret_key: str = Field(
        default="change-me", alias="PLINTH_SESSION_SECRET_KEY", description="Key used to sign the session cookie"
    )
    name: str = Field(default="plinth_session", alias="PLINTH_SESSION_NAME", description="Session cookie name")
    lifetime: int = Field(
        default=0,
        alias="PLINTH_SESSION_LIFETIME",
        description="Session cookie lifetime in seconds (0 keeps it until the browser closes)",
    )
    path: str = Field(default="/", alias="PLINTH_SESSION_PATH", description="Session cookie path")
    domain: Optional[str] = Field(default=None, alias="PLINTH_SESSION_DOMAIN", description="Session cookie domain")
    secure: bool = Field(default=False, alias="PLINTH_SESSION_SECURE", description="Only send the cookie over HTTPS")
    same_site: str = Field(default="lax", alias="PLINTH_SESSION_SAME_SITE", description="SameSite cookie flag")

    model_config = {"populate_by_name": True}


class CORSConfig(BaseModel):
    """CORS configuration."""

    origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS", description="Allowed CORS origins (use * for all)")
    allow_credentials: bool = Field(
        default=True, alias="CORS_ALLOW_CREDENTIALS", description="Allow credentials in CORS requests"
    )
    allow_methods: list[str] = Field(
        default=["*"], alias="CORS_ALLOW_METHODS", description="Allowed HTTP methods (use * for all)"
    )
    allow_headers: list[str] = Field(
        default=["*"], alias="CORS_ALLOW_HEADERS", description="Allowed HTTP headers (use * for all)"
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Framework settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Server Configuration
    # =====================================================================
    server_host: str = Field(
        default="0.0.0.0",
        description="Server host address to bind to",
        alias="PLINTH_SERVER_HOST",
    )
    server_port: int = Field(
        default=8000,
        description="Server port number",
        alias="PLINTH_SERVER_PORT",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="PLINTH_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Logging format (simple, detailed, json)",
        alias="PLINTH_LOG_FORMAT",
    )
    log_file_dir: str = Field(
        default="logs",
        description="Directory for the framework log file",
        alias="PLINTH_LOG_FILE_DIR",
    )
    enable_file_logging: bool = Field(
        default=False,
        description="Write the framework log to a file as well as the console",
        alias="PLINTH_ENABLE_FILE_LOGGING",
    )

    # =====================================================================
    # Application Layout
    # =====================================================================
    app_root: Path = Field(
        default=Path("application"),
        description="Directory holding the application's modules",
        alias="PLINTH_APP_ROOT",
    )
    default_module: str = Field(
        default="pc",
        description="Module used when the request path does not name one",
        alias="PLINTH_DEFAULT_MODULE",
    )
    cache_dir: Path = Field(
        default=Path("cache"),
        description="Directory for the file-based result cache",
        alias="PLINTH_CACHE_DIR",
    )

    # =====================================================================
    # Session Cookie Configuration
    # =====================================================================
    session_secret_key: str = Field(default="change-me", alias="PLINTH_SESSION_SECRET_KEY")
    session_name: str = Field(default="plinth_session", alias="PLINTH_SESSION_NAME")
    session_lifetime: int = Field(default=0, alias="PLINTH_SESSION_LIFETIME")
    session_path: str = Field(default="/", alias="PLINTH_SESSION_PATH")
    session_domain: Optional[str] = Field(default=None, alias="PLINTH_SESSION_DOMAIN")
    session_secure: bool = Field(default=False, alias="PLINTH_SESSION_SECURE")
    session_same_site: str = Field(default="lax", alias="PLINTH_SESSION_SAME_SITE")

    # =====================================================================
    # CORS Configuration
    # =====================================================================
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(default=["*"], alias="CORS_ALLOW_METHODS")
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def session(self) -> SessionCookieConfig:
        """Get session cookie configuration from environment variables."""
        return SessionCookieConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def cors(self) -> CORSConfig:
        """Get CORS configuration from environment variables."""
        return CORSConfig.model_validate(self.model_dump(by_alias=True))


settings = Settings()
