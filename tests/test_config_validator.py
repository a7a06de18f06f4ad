"""Tests for startup configuration validation."""

import pytest

from core import ConfigValidationError, ConfigValidator, validate_startup_config


@pytest.fixture
def settings(tmp_path):
    return {
        "BACKEND_BASE_URL": "https://api.analygits.com",
        "GITHUB_APP_SLUG": "analygitsapp",
        "GITHUB_HOST": "github.com",
        "HANDSHAKE_CONFIG": {"poll_interval_seconds": 2.0, "max_attempt": 60},
        "STORAGE_CONFIG": {
            "path": str(tmp_path / "state" / "storage.json"),
            "connect_state_key": "connectState",
            "credential_key": "credentialRecord",
        },
        "SERVER_CONFIG": {"host": "localhost", "port": 8765},
        "LOGGING_CONFIG": {"log_level": "INFO", "max_log_size_mb": 10, "backup_count": 5},
    }


class TestConfigValidator:

    def test_valid_configuration(self, settings):
        is_valid, errors, warnings = ConfigValidator(settings).validate_all()

        assert is_valid
        assert errors == []
        assert warnings == []

    def test_invalid_backend_url(self, settings):
        settings["BACKEND_BASE_URL"] = "api.analygits.com"

        is_valid, errors, _ = ConfigValidator(settings).validate_all()

        assert not is_valid
        assert any("BACKEND_BASE_URL" in e for e in errors)

    def test_plain_http_backend_warns(self, settings):
        settings["BACKEND_BASE_URL"] = "http://backend.example.com"

        is_valid, _, warnings = ConfigValidator(settings).validate_all()

        assert is_valid
        assert any("plain HTTP" in w for w in warnings)

    def test_invalid_app_slug(self, settings):
        settings["GITHUB_APP_SLUG"] = "Not A Slug"

        _, errors, _ = ConfigValidator(settings).validate_all()

        assert any("GITHUB_APP_SLUG" in e for e in errors)

    def test_non_positive_interval(self, settings):
        settings["HANDSHAKE_CONFIG"]["poll_interval_seconds"] = 0

        _, errors, _ = ConfigValidator(settings).validate_all()

        assert any("poll interval" in e for e in errors)

    def test_store_keys_must_differ(self, settings):
        settings["STORAGE_CONFIG"]["credential_key"] = "connectState"

        _, errors, _ = ConfigValidator(settings).validate_all()

        assert any("different store keys" in e for e in errors)

    def test_bad_port_and_log_level(self, settings):
        settings["SERVER_CONFIG"]["port"] = 70000
        settings["LOGGING_CONFIG"]["log_level"] = "LOUD"

        _, errors, _ = ConfigValidator(settings).validate_all()

        assert len(errors) == 2

    def test_validate_startup_config_raises(self, settings):
        settings["GITHUB_HOST"] = "https://github.com/"

        with pytest.raises(ConfigValidationError):
            validate_startup_config(settings)
