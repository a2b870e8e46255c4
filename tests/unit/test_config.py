"""Unit tests for configuration management."""

import os
from collections.abc import Generator

import pytest
from pydantic import ValidationError

from billdraft.shared.config import Settings, get_settings


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Clean environment variables before and after test."""
    original_env = dict(os.environ)
    env_vars = [k for k in os.environ if k.upper().startswith("APP_")]
    for var in env_vars:
        del os.environ[var]
    yield
    os.environ.clear()
    os.environ.update(original_env)


def test_settings_defaults(clean_env: None) -> None:
    """Test that settings have correct default values."""
    settings = Settings()

    assert settings.environment == "development"
    assert settings.log_level == "INFO"
    assert settings.service_name == "billdraft"
    assert settings.service_version == "0.1.0"
    assert settings.model_provider == "openai"
    assert settings.model_timeout_seconds == 60.0
    assert settings.model_max_attempts == 3
    assert settings.default_payment_term_days == 30
    assert settings.business_data_path is None


def test_match_threshold_defaults(clean_env: None) -> None:
    """Test that matching thresholds default to the tuned values."""
    settings = Settings()

    assert settings.match_limit == 3
    assert settings.client_high_threshold == 8.0
    assert settings.client_medium_threshold == 4.0
    assert settings.product_high_threshold == 3.0
    assert settings.product_medium_threshold == 1.5


def test_settings_from_env_vars(clean_env: None) -> None:
    """Test that settings can be overridden via environment variables."""
    os.environ["APP_ENVIRONMENT"] = "production"
    os.environ["APP_LOG_LEVEL"] = "ERROR"
    os.environ["APP_MODEL_PROVIDER"] = "ollama"
    os.environ["APP_DEFAULT_PAYMENT_TERM_DAYS"] = "14"

    settings = Settings()

    assert settings.environment == "production"
    assert settings.log_level == "ERROR"
    assert settings.model_provider == "ollama"
    assert settings.default_payment_term_days == 14


def test_settings_case_insensitive(clean_env: None) -> None:
    """Test that environment variables are case insensitive."""
    os.environ["app_log_level"] = "DEBUG"

    settings = Settings()

    assert settings.log_level == "DEBUG"


def test_settings_reject_unknown_provider(clean_env: None) -> None:
    """Test that an unsupported model provider is rejected."""
    with pytest.raises(ValidationError):
        Settings(model_provider="local")  # type: ignore[arg-type]


def test_settings_reject_zero_attempts(clean_env: None) -> None:
    """Test that at least one model attempt is required."""
    with pytest.raises(ValidationError):
        Settings(model_max_attempts=0)


def test_get_settings_factory(clean_env: None) -> None:
    """Test that factory function returns Settings instance."""
    settings = get_settings()

    assert isinstance(settings, Settings)
    assert settings.service_name == "billdraft"
