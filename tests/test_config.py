"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from app.config import Settings


def test_defaults(monkeypatch):
    for var in ("PORT", "LOG_LEVEL", "DEDUP_RETENTION_SECONDS", "DEDUP_SWEEP_INTERVAL_SECONDS"):
        monkeypatch.delenv(var, raising=False)

    settings = Settings(_env_file=None, telegram_bot_token="123456:abc")

    assert settings.port == 3000
    assert settings.log_level == "INFO"
    assert settings.dedup_retention_seconds == 300
    assert settings.dedup_sweep_interval_seconds == 60
    assert settings.base_url == "http://localhost:3000"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123456:from-env")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("ENV", "dev")

    settings = Settings(_env_file=None)

    assert settings.telegram_bot_token == "123456:from-env"
    assert settings.port == 8080
    assert settings.log_level == "DEBUG"
    assert settings.is_development is True


def test_missing_token_is_rejected(monkeypatch):
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_unknown_log_level_is_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, telegram_bot_token="123456:abc", log_level="chatty")
