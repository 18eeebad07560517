"""
Configuration for tubeq processes, loaded from environment variables.

All variables use the TUBEQ_ prefix, e.g. TUBEQ_REDIS_URL or
TUBEQ_KEY_PREFIX. A local .env file is read when present.

The schedulers themselves take plain constructor arguments; settings are
only consulted by the helpers that build stores, configure logging or run
sweeps (RedisSortedSetStore.from_settings, configure_logging, the benchmark
tool).
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TubeqSettings(BaseSettings):
    """Settings shared by producers, workers and sweepers."""

    model_config = SettingsConfigDict(
        env_prefix="TUBEQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Store
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "tubeq:"

    # Leases and sweeping
    default_lease_millis: int = Field(default=30_000, ge=0)
    sweep_interval_millis: int = Field(default=1_000, gt=0)

    # Logging
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"


@lru_cache
def get_settings() -> TubeqSettings:
    """Get cached settings instance."""
    return TubeqSettings()
