"""
GET /v1/readings and GET /v1/latest for persisted telemetry readings.

``/v1/readings`` returns the most recent readings, newest first, optionally
filtered by source. ``/v1/latest`` returns the single newest reading for one
source, served from a short-lived Redis cache when possible. The cache entry
is invalidated every time a new sample for that source is saved.

CHANGELOG:
- 2026-10-12: Read the Redis URL from Settings; inject sessions via DbSession
- 2026-10-07: Add /v1/latest with Redis cache
- 2026-10-06: Initial creation

TODO:
- None
"""

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, Request

from powerpulse.api.deps import DbSession
from powerpulse.cache.redis_client import get_cached_latest, set_cached_latest
from powerpulse.models import SourceKind
from powerpulse.services.storage import (
    DEFAULT_RECENT_LIMIT,
    query_recent,
    reading_to_dict,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["readings"])

MAX_RECENT_LIMIT = 1000


@router.get("/readings")
async def readings(
    db: DbSession,
    source: Annotated[SourceKind | None, Query()] = None,
    limit: Annotated[int, Query(ge=1, le=MAX_RECENT_LIMIT)] = DEFAULT_RECENT_LIMIT,
) -> list[dict]:
    """Return the most recent readings, newest first.

    Args:
        db: Async database session.
        source: Optional source filter (``grid`` or ``generator``).
        limit: Maximum number of readings to return.

    Returns:
        list[dict]: Serialised readings.
    """
    rows = await query_recent(db, source, limit)
    return [reading_to_dict(row) for row in rows]


@router.get("/latest")
async def latest(
    request: Request,
    source: Annotated[SourceKind, Query()],
    db: DbSession,
) -> dict:
    """Return the newest reading for *source*.

    Uses a Redis cache (key ``latest:{source}``) with configurable TTL.
    Falls back to a direct DB query on cache miss or Redis failure.

    Raises:
        HTTPException: 404 if nothing has been saved for the source yet.
    """
    settings = request.app.state.settings
    cached = await get_cached_latest(settings.redis_url, source)
    if cached is not None:
        return cached

    rows = await query_recent(db, source, 1)
    if not rows:
        raise HTTPException(
            status_code=404,
            detail=f"No readings found for source '{source.value}'.",
        )

    reading = reading_to_dict(rows[0])
    await set_cached_latest(settings.redis_url, source, reading, settings.cache_ttl_s)
    return reading
