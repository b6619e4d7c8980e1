"""
Configuration settings for the telemetry shipper.

All settings are loaded from environment variables with sensible defaults.
Use .env file for local development.

Queue sizing values are validated on construction: an invalid value raises
pydantic.ValidationError before any queue activity starts.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    LOG_LEVEL: str = "WARNING"
    ENVIRONMENT: str = "development"

    # === Ingestion endpoint ===
    API_KEY: str
    HOST: str = "https://us.i.posthog.com"
    REQUEST_TIMEOUT_SECONDS: int = Field(default=10, ge=1)

    # === Event queue ===
    FLUSH_AT: int = Field(default=20, ge=1)  # Queue depth that triggers a flush
    FLUSH_INTERVAL_SECONDS: int = Field(default=30, ge=1)
    MAX_QUEUE_SIZE: int = Field(default=1000, ge=1)  # Oldest record evicted beyond this
    MAX_BATCH_SIZE: int = Field(default=50, ge=1)

    # === Retry & Backoff ===
    RETRY_DELAY_SECONDS: int = Field(default=5, ge=1)  # Linear step per consecutive failure
    MAX_RETRY_DELAY_SECONDS: int = Field(default=30, ge=1)

    # === Storage ===
    STORAGE_BACKEND: Literal["file", "redis"] = "file"
    STORAGE_PATH: str = "./.telemetry"
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_KEY_PREFIX: str = "telemetry"
    REDIS_MAX_CONNECTIONS: int = Field(default=10, ge=1)

    # === Session replay stream ===
    REPLAY_ENABLED: bool = False
    REPLAY_FLUSH_AT: int = Field(default=20, ge=1)
    REPLAY_FLUSH_INTERVAL_SECONDS: int = Field(default=30, ge=1)
    REPLAY_MAX_QUEUE_SIZE: int = Field(default=100, ge=1)
    REPLAY_MAX_BATCH_SIZE: int = Field(default=10, ge=1)  # Snapshots are large
    REPLAY_REQUEST_TIMEOUT_SECONDS: int = Field(default=30, ge=1)

    # === Monitoring ===
    METRICS_ENABLED: bool = True

    @field_validator("API_KEY", "HOST")
    @classmethod
    def _require_non_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()
