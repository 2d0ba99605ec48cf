"""
Redis client for the latest-reading cache.

Provides helper functions for creating Redis connections and reading,
writing and invalidating the per-source latest-reading entry. Every cache
operation is best-effort: connection failures are logged but do not
propagate exceptions, so ingestion and reads never depend on Redis.

Callers pass the connection URL from Settings.redis_url.

CHANGELOG:
- 2026-10-12: Take the Redis URL from Settings instead of the process env
- 2026-10-07: Add get/set helpers for the latest-reading route
- 2026-10-04: Initial creation
"""

import json
import logging

import redis.asyncio as redis

from powerpulse.models import SourceKind

logger = logging.getLogger(__name__)


def latest_key(source: SourceKind) -> str:
    """Cache key holding the latest finished reading for *source*."""
    return f"latest:{source.value}"


async def get_redis(redis_url: str) -> redis.Redis:
    """Create and return an async Redis client for *redis_url*.

    Returns:
        redis.Redis: Async Redis client.
    """
    return redis.from_url(redis_url)


async def get_cached_latest(redis_url: str, source: SourceKind) -> dict | None:
    """Return the cached latest reading for *source*, or None on miss or failure."""
    key = latest_key(source)
    try:
        client = await get_redis(redis_url)
        try:
            cached = await client.get(key)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis read failed for key %s", key, exc_info=True)
        return None
    if cached is None:
        return None
    try:
        return json.loads(cached)
    except ValueError:
        logger.warning("Discarding undecodable cache entry %s", key)
        return None


async def set_cached_latest(
    redis_url: str, source: SourceKind, reading: dict, ttl_s: int
) -> None:
    """Cache *reading* as the latest for *source* for *ttl_s* seconds."""
    key = latest_key(source)
    try:
        client = await get_redis(redis_url)
        try:
            await client.set(key, json.dumps(reading), ex=ttl_s)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis write failed for key %s", key, exc_info=True)


async def invalidate_source_cache(redis_url: str, source: SourceKind) -> None:
    """Delete the latest-reading cache key for a source.

    Best-effort operation: if Redis is unavailable or the delete fails,
    the error is logged but not raised. This ensures that persisting a
    finished sample is never blocked by cache infrastructure issues.

    Args:
        redis_url: Redis connection URL.
        source: The source whose cache entry should be cleared.
    """
    try:
        client = await get_redis(redis_url)
        try:
            await client.delete(latest_key(source))
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Failed to invalidate cache for source %s",
            source.value,
            exc_info=True,
        )
