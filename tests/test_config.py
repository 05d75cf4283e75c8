"""Tests for configuration module."""

from __future__ import annotations

import pytest

from core.config import Settings, get_database_url, get_settings, _ENV_PROFILES


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_dataclass():
    s = Settings(database_url="sqlite://")
    assert s.database_url == "sqlite://"
    assert s.app_env == "dev"
    assert s.llm_timeout_ms == 25000
    assert s.generation_max_attempts == 2
    assert s.alternatives_limit == 5
    assert s.streak_cadence == "daily"


def test_settings_frozen():
    s = Settings(database_url="x")
    with pytest.raises(AttributeError):
        s.database_url = "y"


def test_settings_is_production():
    s = Settings(database_url="x", app_env="production")
    assert s.is_production is True
    assert s.is_dev is False


def test_model_enabled_requires_api_key():
    assert Settings(database_url="x").model_enabled is False
    assert Settings(database_url="x", llm_api_key="k").model_enabled is True


def test_get_database_url_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://from-env/db")
    assert get_database_url() == "postgresql://from-env/db"


def test_get_database_url_default(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert get_database_url() == "sqlite+pysqlite:///./training_core.db"


def test_env_profiles_exist():
    assert {"dev", "staging", "production", "test"} <= set(_ENV_PROFILES)


def test_dev_profile_debug_logging():
    assert _ENV_PROFILES["dev"]["log_level"] == "DEBUG"


def test_test_profile_disables_backoff_and_cache(monkeypatch):
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.delenv("GENERATION_CACHE_TTL_SECONDS", raising=False)
    monkeypatch.delenv("GENERATION_RETRY_BACKOFF_MS", raising=False)
    s = get_settings()
    assert s.generation_retry_backoff_ms == 0
    assert s.generation_cache_ttl_seconds == 0
    assert s.llm_timeout_ms == 2000


def test_get_settings_uses_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///env.db")
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("LLM_API_KEY", "secret")
    monkeypatch.setenv("LLM_TIMEOUT_MS", "1500")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.delenv("GENERATION_CACHE_TTL_SECONDS", raising=False)
    s = get_settings()
    assert s.database_url == "sqlite:///env.db"
    assert s.app_env == "production"
    assert s.model_enabled
    assert s.llm_timeout_ms == 1500
    assert s.generation_cache_ttl_seconds == 600
    assert s.cors_origins == ["https://a.example", "https://b.example"]


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("LLM_MODEL", "first")
    first = get_settings()
    monkeypatch.setenv("LLM_MODEL", "second")
    assert get_settings() is first
