"""Unit tests for configuration validation"""
import pytest

from ecoscan import config
from ecoscan.exceptions import ConfigurationError


def test_validate_config_defaults_ok(monkeypatch):
    monkeypatch.setattr(config, "STORE_BACKEND", "postgres")
    monkeypatch.setattr(config, "DATABASE_URL", "postgresql://localhost/ecoscan")
    monkeypatch.setattr(config, "SCAN_CONFLICT_RETRIES", 3)

    config.validate_config()


def test_validate_config_memory_backend_needs_no_database(monkeypatch):
    monkeypatch.setattr(config, "STORE_BACKEND", "memory")
    monkeypatch.setattr(config, "DATABASE_URL", "")

    config.validate_config()


def test_validate_config_unknown_backend(monkeypatch):
    monkeypatch.setattr(config, "STORE_BACKEND", "mongodb")

    with pytest.raises(ConfigurationError) as exc_info:
        config.validate_config()

    assert exc_info.value.config_key == "STORE_BACKEND"


def test_validate_config_missing_database_url(monkeypatch):
    monkeypatch.setattr(config, "STORE_BACKEND", "postgres")
    monkeypatch.setattr(config, "DATABASE_URL", "")

    with pytest.raises(ConfigurationError) as exc_info:
        config.validate_config()

    assert exc_info.value.config_key == "DATABASE_URL"


def test_validate_config_negative_retries(monkeypatch):
    monkeypatch.setattr(config, "STORE_BACKEND", "memory")
    monkeypatch.setattr(config, "SCAN_CONFLICT_RETRIES", -1)

    with pytest.raises(ConfigurationError):
        config.validate_config()
