"""Tests for ReboundSettings and the settings cache."""

import pytest
from pydantic import ValidationError

from rebound.core.settings import ReboundSettings, get_settings


class TestReboundSettings:
    def test_defaults(self, monkeypatch):
        for key in ("REBOUND_DEFAULT_MAX_ATTEMPTS", "REBOUND_LOG_LEVEL", "REBOUND_LOG_FORMAT"):
            monkeypatch.delenv(key, raising=False)
        settings = ReboundSettings(_env_file=None)
        assert settings.default_max_attempts == 3
        assert settings.default_base_delay == 0.5
        assert settings.default_multiplier == 2.0
        assert settings.default_max_delay == 30.0
        assert settings.default_jitter == 0.0
        assert settings.default_attempt_timeout is None
        assert settings.log_level == "INFO"
        assert settings.log_format == "console"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("REBOUND_DEFAULT_MAX_ATTEMPTS", "7")
        monkeypatch.setenv("REBOUND_DEFAULT_ATTEMPT_TIMEOUT", "2.5")
        monkeypatch.setenv("REBOUND_LOG_FORMAT", "json")
        settings = ReboundSettings(_env_file=None)
        assert settings.default_max_attempts == 7
        assert settings.default_attempt_timeout == 2.5
        assert settings.log_format == "json"

    def test_log_level_normalized(self):
        assert ReboundSettings(_env_file=None, log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("default_max_attempts", 0),
            ("default_jitter", 1.5),
            ("default_attempt_timeout", 0),
            ("log_level", "LOUD"),
            ("log_format", "xml"),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            ReboundSettings(_env_file=None, **{field: value})


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_force_reload(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("REBOUND_DEFAULT_MAX_ATTEMPTS", "9")
        assert get_settings() is first
        reloaded = get_settings(_force_reload=True)
        assert reloaded is not first
        assert reloaded.default_max_attempts == 9
