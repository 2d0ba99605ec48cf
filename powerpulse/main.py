"""
Service entry point for PowerPulse.

Configures structured JSON logging, logs a secret-free configuration
summary and runs the FastAPI application under uvicorn. Uvicorn's own
logging config is disabled so its access and error logs go through the
same JSON handler.

CHANGELOG:
- 2026-10-09: Honour LOG_LEVEL
- 2026-10-04: Initial creation

TODO:
- None
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from datetime import UTC, datetime

import uvicorn

from powerpulse.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging on the root logger.

    Args:
        level: Root log level name.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: Settings) -> None:
    """Log a config summary at startup, excluding secrets.

    Database and Redis URLs may embed credentials, so only their scheme is
    logged. Stream tokens are reduced to a fingerprint.
    """
    logger.info(
        "PowerPulse starting with config: "
        "host=%s, port=%s, database=%s, redis=%s, ml_api_url=%s, "
        "ml_timeout_s=%s, cache_ttl_s=%s, max_request_bytes=%s, "
        "queue_size=%s, partial_sample_max_age_s=%s, stream_tokens_masked=%s",
        settings.host,
        settings.port,
        settings.database_url.split("://", 1)[0],
        settings.redis_url.split("://", 1)[0],
        settings.ml_api_url,
        settings.ml_timeout_s,
        settings.cache_ttl_s,
        settings.max_request_bytes,
        settings.queue_size,
        settings.partial_sample_max_age_s,
        _masked_token(settings.stream_tokens),
    )


def main() -> None:
    """Console-script entry point."""
    settings = Settings()
    configure_logging(settings.log_level)
    log_config_summary(settings)
    uvicorn.run(
        "powerpulse.api.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
