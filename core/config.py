"""Application configuration with environment-specific profiles.

Supports dev, staging, production and test environments via APP_ENV.
All values can be overridden by environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
    """Immutable application settings resolved from environment."""

    database_url: str
    app_env: str = "dev"
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])

    # External language model
    llm_api_key: str = ""
    llm_model: str = "gemini-2.0-flash"
    llm_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    llm_timeout_ms: int = 25000
    llm_temperature: float = 0.75
    llm_max_tokens: int = 2048

    # Generation policy
    generation_max_attempts: int = 2
    generation_retry_backoff_ms: int = 500
    generation_cache_ttl_seconds: int = 300
    generation_cache_size: int = 50

    # Alternatives / analytics
    alternatives_limit: int = 5
    streak_cadence: str = "daily"
    analytics_timezone: str = "UTC"
    trend_window_buckets: int = 4
    trend_plateau_pct: float = 5.0

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def model_enabled(self) -> bool:
        return bool(self.llm_api_key)


# -- Environment profiles --

_ENV_PROFILES: dict[str, dict] = {
    "dev": {
        "log_level": "DEBUG",
        "llm_timeout_ms": 30000,
    },
    "staging": {
        "log_level": "INFO",
        "llm_timeout_ms": 25000,
    },
    "production": {
        "log_level": "WARNING",
        "llm_timeout_ms": 20000,
        "generation_cache_ttl_seconds": 600,
    },
    "test": {
        "log_level": "WARNING",
        "llm_timeout_ms": 2000,
        "generation_retry_backoff_ms": 0,
        "generation_cache_ttl_seconds": 0,
    },
}


def get_database_url() -> str:
    """Resolve database URL from the DATABASE_URL env var or a local SQLite default."""
    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    return "sqlite+pysqlite:///./training_core.db"


def database_url() -> str:
    return get_settings().database_url


def _split_origins(raw: str) -> list[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build Settings by merging environment profile with env-var overrides."""
    app_env = os.getenv("APP_ENV", "dev")
    profile = _ENV_PROFILES.get(app_env, _ENV_PROFILES["dev"])

    def pick(env_name: str, key: str, default: str) -> str:
        return os.getenv(env_name, str(profile.get(key, default)))

    return Settings(
        database_url=get_database_url(),
        app_env=app_env,
        log_level=pick("LOG_LEVEL", "log_level", "INFO"),
        cors_origins=_split_origins(os.getenv("CORS_ORIGINS", "http://localhost:3000")),
        llm_api_key=os.getenv("LLM_API_KEY", ""),
        llm_model=os.getenv("LLM_MODEL", "gemini-2.0-flash"),
        llm_base_url=os.getenv("LLM_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
        llm_timeout_ms=int(pick("LLM_TIMEOUT_MS", "llm_timeout_ms", "25000")),
        llm_temperature=float(pick("LLM_TEMPERATURE", "llm_temperature", "0.75")),
        llm_max_tokens=int(pick("LLM_MAX_TOKENS", "llm_max_tokens", "2048")),
        generation_max_attempts=int(pick("GENERATION_MAX_ATTEMPTS", "generation_max_attempts", "2")),
        generation_retry_backoff_ms=int(pick("GENERATION_RETRY_BACKOFF_MS", "generation_retry_backoff_ms", "500")),
        generation_cache_ttl_seconds=int(pick("GENERATION_CACHE_TTL_SECONDS", "generation_cache_ttl_seconds", "300")),
        generation_cache_size=int(pick("GENERATION_CACHE_SIZE", "generation_cache_size", "50")),
        alternatives_limit=int(pick("ALTERNATIVES_LIMIT", "alternatives_limit", "5")),
        streak_cadence=pick("STREAK_CADENCE", "streak_cadence", "daily"),
        analytics_timezone=pick("ANALYTICS_TIMEZONE", "analytics_timezone", "UTC"),
        trend_window_buckets=int(pick("TREND_WINDOW_BUCKETS", "trend_window_buckets", "4")),
        trend_plateau_pct=float(pick("TREND_PLATEAU_PCT", "trend_plateau_pct", "5.0")),
    )
