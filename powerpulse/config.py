"""
Service configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or a .env file;
no hardcoded credentials or endpoints beyond local development defaults.

CHANGELOG:
- 2026-10-12: Add WS_SEND_TIMEOUT_S
- 2026-10-09: Add PARTIAL_SAMPLE_MAX_AGE_S staleness limit
- 2026-10-04: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """PowerPulse service configuration.

    Attributes:
        database_url: SQLAlchemy async URL of the reading store.
        redis_url: Redis URL for the latest-reading cache.
        stream_tokens: ``token:stream_name`` pairs, comma-separated, that
            authorise telemetry producers on the event ingest route.
        host: Interface the HTTP/WebSocket server binds to.
        port: Port the HTTP/WebSocket server listens on.
        ml_api_url: Base URL of the prediction service.
        ml_timeout_s: Per-request timeout for the prediction service.
        cache_ttl_s: TTL of cached latest readings in Redis.
        max_request_bytes: Maximum accepted event ingest body size.
        queue_size: Maximum number of raw events waiting for processing.
        ws_send_timeout_s: Per-subscriber limit on one WebSocket send.
        partial_sample_max_age_s: Discard pending partial samples older than
            this many seconds. Unset keeps them indefinitely.
        log_level: Root log level.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str
    redis_url: str
    stream_tokens: str
    host: str = "0.0.0.0"
    port: int = 8082
    ml_api_url: str = "http://localhost:8083"
    ml_timeout_s: float = 5.0
    cache_ttl_s: int = 5
    max_request_bytes: int = 1_048_576
    queue_size: int = 1000
    ws_send_timeout_s: float = 5.0
    partial_sample_max_age_s: float | None = None
    log_level: str = "INFO"

    @field_validator("port")
    @classmethod
    def port_must_be_valid(cls, v: int) -> int:
        """Validate the listen port is in the valid TCP range."""
        if v < 1 or v > 65535:
            raise ValueError("PORT must be between 1 and 65535")
        return v

    @field_validator("ml_api_url")
    @classmethod
    def ml_api_url_must_be_http(cls, v: str) -> str:
        """Validate the prediction service URL is http(s) and strip the trailing slash."""
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(f"ML_API_URL must be an http(s) URL (got: '{v[:20]}...')")
        return v.rstrip("/")

    @field_validator(
        "ml_timeout_s",
        "max_request_bytes",
        "queue_size",
        "cache_ttl_s",
        "ws_send_timeout_s",
    )
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        """Validate sizes, timeouts and TTLs are strictly positive."""
        if v <= 0:
            raise ValueError("value must be > 0")
        return v

    @field_validator("partial_sample_max_age_s")
    @classmethod
    def max_age_must_be_positive(cls, v: float | None) -> float | None:
        """Validate the staleness limit, when set, is strictly positive."""
        if v is not None and v <= 0:
            raise ValueError("PARTIAL_SAMPLE_MAX_AGE_S must be > 0 when set")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Normalise and validate the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"LOG_LEVEL must be a standard level name (got: '{v}')")
        return level

    @property
    def partial_sample_max_age(self) -> timedelta | None:
        """Staleness limit as a timedelta, or None when disabled."""
        if self.partial_sample_max_age_s is None:
            return None
        return timedelta(seconds=self.partial_sample_max_age_s)
