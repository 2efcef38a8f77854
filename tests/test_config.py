"""Tests for environment settings."""

import pytest

from webhook_edge_auth.config import Settings, configure_logging


class TestSettingsFromEnv:
    """Tests for Settings.from_env."""

    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.credential.access_key == ""
        assert settings.credential.session_token is None
        assert settings.credential.region == "us-east-1"
        assert settings.credential.service == "lambda"
        assert settings.secret_name == "hashnode/webhook-secret"
        assert settings.webhook_secret is None
        assert settings.valid_for_seconds == 30
        assert settings.event_bus_name == "default"
        assert settings.gql_url == "https://gql.hashnode.com"
        assert settings.log_level == "DEBUG"

    def test_values(self):
        settings = Settings.from_env({
            "AWS_ACCESS_KEY_ID": "AKID",
            "AWS_SECRET_ACCESS_KEY": "secret",
            "AWS_SESSION_TOKEN": "token",
            "AWS_REGION": "eu-west-1",
            "WEBHOOK_SECRET": "whsec_env",
            "WEBHOOK_VALID_FOR_SECONDS": "0",
            "EVENT_BUS_NAME": "webhooks",
            "LOG_LEVEL": "info",
        })
        assert settings.credential.access_key == "AKID"
        assert settings.credential.session_token == "token"
        assert settings.credential.region == "eu-west-1"
        assert settings.webhook_secret == "whsec_env"
        assert settings.valid_for_seconds == 0
        assert settings.event_bus_name == "webhooks"
        assert settings.log_level == "INFO"

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("WEBHOOK_SECRET_NAME", "custom/secret")
        assert Settings.from_env().secret_name == "custom/secret"

    @pytest.mark.parametrize("value", ["-1", "abc", "1.5"])
    def test_invalid_tolerance(self, value):
        with pytest.raises(ValueError, match="WEBHOOK_VALID_FOR_SECONDS"):
            Settings.from_env({"WEBHOOK_VALID_FOR_SECONDS": value})


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="log level"):
            configure_logging("LOUD")

    def test_known_level(self):
        configure_logging("warning")
