"""Unit tests for module configuration."""

import logging
import textwrap

import pytest

from plinth.errors import ConfigurationError
from plinth.mvc.config import DatabaseSection, ModuleConfig, ReportingSection
from plinth.mvc.notifier import ThrottledEmailHandler


def write_config(module_dir, content: str) -> ModuleConfig:
    path = module_dir / "configs" / "config.ini"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content))
    return ModuleConfig(module_dir)


@pytest.fixture
def module_config(tmp_path):
    config = write_config(
        tmp_path / "shop",
        """\
        [application]
        environment = production
        timezone = Africa/Nairobi
        error_log = var/errors.log
        from_email = noreply@example.com
        to_email =
        error_mailing_delay = 60

        [database]
        driver = postgresql+psycopg
        host = db.internal
        port = 5432
        username = shop
        password = secret
        name = shop
        cache = 1
        cache_backend = memory

        [mail]
        host = smtp.example.com
        port = 587
        use_tls = yes

        [production]
        error_reporting = error
        email_errors = 1
        log_errors = 1
        display_errors = 0
        """,
    )
    yield config
    config.close()


class TestLoading:
    def test_sections_are_validated(self, module_config, tmp_path):
        configs = module_config.get_configs()
        assert configs.application.environment == "production"
        assert configs.application.timezone == "Africa/Nairobi"
        assert configs.application.error_mailing_delay == 60
        assert configs.mail.port == 587
        assert configs.mail.use_tls is True
        assert module_config.database.cache is True
        assert module_config.database.cache_backend == "memory"

    def test_empty_values_use_defaults(self, module_config):
        assert module_config.get_configs().application.to_email == "support@localhost"

    def test_log_paths(self, module_config, tmp_path):
        assert module_config.error_log == tmp_path / "shop" / "var" / "errors.log"
        assert module_config.exception_log == tmp_path / "shop" / "logs" / "exception.log"

    def test_environment_shortcuts(self, module_config):
        assert module_config.environment == "production"
        assert not module_config.is_development
        assert module_config.reporting.level == logging.ERROR
        assert module_config.reporting.email_errors is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ModuleConfig(tmp_path / "nothing").get_configs()

    def test_invalid_value(self, tmp_path):
        config = write_config(tmp_path / "bad", "[application]\nenvironment = staging\n")
        with pytest.raises(ConfigurationError):
            config.get_configs()

    @pytest.mark.parametrize("timezone", ["Mars/Olympus", "../etc/passwd"])
    def test_unknown_timezone(self, tmp_path, timezone):
        config = write_config(tmp_path / "tz", f"[application]\ntimezone = {timezone}\n")
        with pytest.raises(ConfigurationError) as exc_info:
            config.get_configs()
        assert "Unknown timezone" in str(exc_info.value)

    def test_unparsable_file(self, tmp_path):
        config = write_config(tmp_path / "broken", "environment = production\n")
        with pytest.raises(ConfigurationError):
            config.get_configs()

    def test_development_defaults(self, tmp_path):
        config = write_config(tmp_path / "dev", "[application]\nenvironment = development\n")
        assert config.is_development
        assert config.reporting.display_errors is True
        assert config.reporting.level == logging.DEBUG
        assert config.database is None

    def test_defaults_to_production(self, tmp_path):
        config = write_config(tmp_path / "plain", "[mail]\nhost = localhost\n")
        assert config.environment == "production"
        assert config.reporting.display_errors is False


class TestSections:
    def test_database_url_wins(self):
        assert DatabaseSection(url="sqlite:///app.db", driver="mysql").sqlalchemy_url() == "sqlite:///app.db"

    def test_database_url_from_parts(self, module_config):
        url = module_config.database.sqlalchemy_url()
        assert url.drivername == "postgresql+psycopg"
        assert url.host == "db.internal"
        assert url.port == 5432
        assert url.database == "shop"

    def test_database_needs_url_or_driver(self):
        with pytest.raises(ConfigurationError):
            DatabaseSection(name="shop").sqlalchemy_url()

    def test_unknown_reporting_level(self):
        assert ReportingSection(error_reporting="LOUD").level == logging.WARNING


class TestRun:
    def test_run_installs_handlers_once(self, module_config):
        module_config.run()
        module_config.run()
        app_handlers = module_config.app_logger.handlers
        assert len([h for h in app_handlers if isinstance(h, ThrottledEmailHandler)]) == 1
        assert len([h for h in app_handlers if type(h) is logging.FileHandler]) == 1
        assert module_config.app_logger.level == logging.ERROR
        assert module_config.exception_logger.propagate is False
        assert len(module_config.exception_logger.handlers) == 1

    def test_errors_are_written_to_the_error_log(self, tmp_path):
        config = write_config(
            tmp_path / "blog",
            """\
            [application]
            environment = production

            [production]
            error_reporting = warning
            email_errors = 0
            """,
        )
        config.run()
        config.app_logger.info("ignored")
        config.app_logger.error("payment gateway unreachable")
        config.close()

        log = config.error_log.read_text()
        assert "payment gateway unreachable" in log
        assert "ignored" not in log

    def test_close_removes_handlers(self, module_config):
        module_config.run()
        installed = list(module_config._handlers)
        assert installed
        module_config.close()
        assert module_config._handlers == []
        for handler in installed:
            assert handler not in module_config.app_logger.handlers
            assert handler not in module_config.exception_logger.handlers

    def test_notifier_uses_module_settings(self, module_config):
        notifier = module_config.notifier
        assert notifier.mail.host == "smtp.example.com"
        assert notifier.from_email == "noreply@example.com"
        assert str(notifier.timezone) == "Africa/Nairobi"
        assert notifier.logger is module_config.exception_logger
