"""Tests for environment-driven configuration, logging and the CLI."""

import json
import logging

import pytest

from coldcall import main as cli
from coldcall.config import Config, ConfigError
from coldcall.logging_utils import StructuredFormatter
from coldcall.models import DatabaseManager


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "APP_ENV", "LOG_LEVEL", "OPENAI_API_KEY", "BROWSER_USE_API_KEY", "GOOGLE_MAPS_API_KEY",
        "YELP_API_KEY", "VAPI_API_KEY", "VAPI_PHONE_NUMBER_ID", "VAPI_WEBHOOK_SECRET",
        "DATABASE_URL", "CALL_COST_PER_MINUTE",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfig:
    def test_defaults(self, clean_env):
        config = Config()

        assert config.VAPI_BASE_URL == "https://api.vapi.ai"
        assert config.API_PORT == 3001
        assert config.CALL_COST_PER_MINUTE == 0.05
        assert config.is_development()
        assert config.provider_keys_configured() == {
            "google": False, "yelp": False, "browseruse": False, "vapi": False, "openai": False,
        }

    def test_values_from_environment(self, clean_env):
        clean_env.setenv("YELP_API_KEY", "yelp-key")
        clean_env.setenv("CALL_COST_PER_MINUTE", "0.12")
        clean_env.setenv("APP_ENV", "production")
        clean_env.setenv("LOG_LEVEL", "debug")

        config = Config()

        assert config.provider_keys_configured()["yelp"] is True
        assert config.CALL_COST_PER_MINUTE == 0.12
        assert config.is_production()
        assert config.get_log_level() == logging.DEBUG

    @pytest.mark.parametrize(
        "validator,message",
        [
            ("validate_for_database", "DATABASE_URL"),
            ("validate_for_calling", "VAPI_API_KEY"),
            ("validate_for_discovery", "OPENAI_API_KEY"),
        ],
    )
    def test_validation_errors(self, clean_env, validator, message):
        with pytest.raises(ConfigError, match=message):
            getattr(Config(), validator)()

    def test_discovery_needs_browser_key(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        with pytest.raises(ConfigError, match="BROWSER_USE_API_KEY"):
            Config().validate_for_discovery()


class TestCli:
    @pytest.fixture(autouse=True)
    def quiet_logging(self, monkeypatch):
        monkeypatch.setattr(cli, "setup_logging", lambda level=None: logging.getLogger("coldcall"))

    def test_parser_subcommands(self):
        parser = cli.create_parser()

        args = parser.parse_args(["discover", "--business-id", "biz-1", "--provider", "yelp"])
        assert (args.command, args.business_id, args.provider) == ("discover", "biz-1", "yelp")

        args = parser.parse_args(["serve", "--port", "8080"])
        assert (args.command, args.port) == ("serve", 8080)

    def test_check_env_reports_missing(self, clean_env, capsys):
        assert cli.main(["check-env"]) == 1
        output = capsys.readouterr().out
        assert "[✗] OPENAI_API_KEY (required)" in output
        assert "[-] YELP_API_KEY (optional)" in output

    def test_check_env_passes_with_required_vars(self, clean_env, capsys):
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        clean_env.setenv("DATABASE_URL", "postgresql://localhost/coldcall")

        assert cli.main(["check-env"]) == 0
        assert "[✓] DATABASE_URL" in capsys.readouterr().out

    def test_database_commands_need_url(self, clean_env, monkeypatch, capsys):
        monkeypatch.setattr(cli.config, "DATABASE_URL", "")

        assert cli.main(["init-db"]) == 1
        assert "DATABASE_URL" in capsys.readouterr().out


class TestStructuredFormatter:
    def test_json_line_with_extra_fields(self):
        record = logging.LogRecord(
            "coldcall.services.discovery", logging.INFO, __file__, 1,
            "Discovered %d leads", (3,), None,
        )
        record.business_id = "biz-1"
        record.unserializable = object()

        data = json.loads(StructuredFormatter(service_name="coldcall-test").format(record))

        assert data["message"] == "Discovered 3 leads"
        assert data["level"] == "INFO"
        assert data["service"] == "coldcall-test"
        assert data["extra"]["business_id"] == "biz-1"
        assert isinstance(data["extra"]["unserializable"], str)


class TestDatabaseUrl:
    @pytest.mark.parametrize(
        "url",
        ["postgresql://app@db:5432/coldcall", "postgresql+asyncpg://app@db:5432/coldcall"],
    )
    def test_postgres_uses_asyncpg(self, url):
        assert DatabaseManager.get_database_url(url) == "postgresql+asyncpg://app@db:5432/coldcall"

    @pytest.mark.parametrize("url", ["sqlite:///coldcall.db", "mysql://app@db/coldcall"])
    def test_other_databases_rejected(self, url):
        with pytest.raises(ValueError, match="must start with 'postgresql://'"):
            DatabaseManager.get_database_url(url)

    def test_missing_url(self, clean_env):
        with pytest.raises(ValueError, match="DATABASE_URL environment variable is not set"):
            DatabaseManager.get_database_url()
