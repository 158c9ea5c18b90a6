"""Tests for Settings and logging configuration."""

import pytest
import structlog

from bridgee_sdk.observability import configure_logging, get_logger
from bridgee_sdk.settings import Settings


def test_defaults_match_the_match_api_contract() -> None:
    settings = Settings()
    assert settings.match_url == "https://api.bridgee.ai/match"
    assert settings.connect_timeout_ms == 500
    assert settings.read_timeout_ms == 1500
    assert settings.referrer_key == "install_referrer"


def test_env_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BRIDGEE_API_BASE_URL", "https://staging.bridgee.ai/")
    monkeypatch.setenv("BRIDGEE_READ_TIMEOUT_MS", "900")

    settings = Settings()
    assert settings.match_url == "https://staging.bridgee.ai/match"
    assert settings.read_timeout_ms == 900


def test_configure_logging_routes_through_stdlib() -> None:
    try:
        configure_logging(Settings(log_level="debug", log_json=False))
        assert structlog.is_configured()
        get_logger("bridgee_sdk.test").info("logging_configured")
    finally:
        structlog.reset_defaults()
