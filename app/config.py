"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./notifications.db",
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    app_timezone: str = Field(
        default="UTC",
        description="IANA timezone name used for notification timestamps",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    queue_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Backend used by the dispatch queue and the realtime channel",
    )
    redis_url: str | None = Field(
        default=None,
        description="Redis connection URL, required when QUEUE_BACKEND is 'redis'",
    )
    dispatch_queue_name: str = Field(
        default="notification",
        description="Name of the dispatch queue (Redis stream key when using Redis)",
        min_length=1,
    )
    realtime_channel_name: str = Field(
        default="notifications",
        description="Logical pub/sub channel persisted notifications are published to",
        min_length=1,
    )
    fanout_chunk_size: int = Field(
        default=300,
        description="Maximum number of jobs submitted per bulk enqueue during a broadcast",
        gt=0,
    )

    worker_concurrency: int = Field(
        default=1, description="Number of delivery worker threads", ge=1
    )
    worker_max_attempts: int = Field(
        default=3,
        description="Processing attempts per job before it is dead-lettered",
        ge=1,
    )
    worker_backoff_seconds: float = Field(
        default=2.0,
        description="Base delay of the exponential retry backoff",
        ge=0,
    )
    worker_lease_timeout_seconds: float = Field(
        default=30.0,
        description="Seconds a reserved job may stay un-acknowledged before it is redelivered",
        gt=0,
    )
    worker_poll_interval_seconds: float = Field(
        default=1.0,
        description="Maximum time a worker blocks waiting for a job",
        gt=0,
    )
    run_embedded_worker: bool = Field(
        default=True,
        description="Start delivery workers inside the API process",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed to call the API from a browser",
    )

    @model_validator(mode="after")
    def _validate_redis_url(self) -> "Settings":
        if self.queue_backend == "redis" and not self.redis_url:
            raise ValueError("REDIS_URL must be provided when QUEUE_BACKEND is 'redis'")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
