"""
Tests for the Redis latest-reading cache helpers.

Every helper is best-effort: Redis failures are logged and never raised.

CHANGELOG:
- 2026-10-12: Helpers take the Redis URL explicitly
- 2026-10-07: Initial creation

TODO:
- None
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from powerpulse.cache.redis_client import (
    get_cached_latest,
    get_redis,
    invalidate_source_cache,
    latest_key,
    set_cached_latest,
)
from powerpulse.models import SourceKind

REDIS_URL = "redis://cache:6379/0"


def _mock_redis_client(
    cached_value: bytes | None = None,
    side_effect: Exception | None = None,
) -> AsyncMock:
    client = AsyncMock()
    client.get = AsyncMock(return_value=cached_value, side_effect=side_effect)
    client.set = AsyncMock(side_effect=side_effect)
    client.delete = AsyncMock(side_effect=side_effect)
    client.aclose = AsyncMock()
    return client


def test_latest_key() -> None:
    assert latest_key(SourceKind.GENERATOR) == "latest:generator"


@pytest.mark.asyncio
async def test_get_redis_uses_given_url() -> None:
    with patch("powerpulse.cache.redis_client.redis.from_url") as mock_from_url:
        client = await get_redis(REDIS_URL)
    mock_from_url.assert_called_once_with(REDIS_URL)
    assert client is mock_from_url.return_value


@pytest.mark.asyncio
async def test_get_hit_decodes_json() -> None:
    client = _mock_redis_client(json.dumps({"type": "grid"}).encode())
    with patch("powerpulse.cache.redis_client.get_redis", return_value=client):
        assert await get_cached_latest(REDIS_URL, SourceKind.GRID) == {"type": "grid"}
    client.get.assert_awaited_once_with("latest:grid")
    client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_miss_returns_none() -> None:
    client = _mock_redis_client(None)
    with patch("powerpulse.cache.redis_client.get_redis", return_value=client):
        assert await get_cached_latest(REDIS_URL, SourceKind.GRID) is None


@pytest.mark.asyncio
async def test_get_undecodable_returns_none() -> None:
    client = _mock_redis_client(b"{broken")
    with patch("powerpulse.cache.redis_client.get_redis", return_value=client):
        assert await get_cached_latest(REDIS_URL, SourceKind.GRID) is None


@pytest.mark.asyncio
async def test_get_failure_returns_none() -> None:
    client = _mock_redis_client(side_effect=ConnectionError("redis down"))
    with patch("powerpulse.cache.redis_client.get_redis", return_value=client):
        assert await get_cached_latest(REDIS_URL, SourceKind.GRID) is None
    client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_set_uses_ttl() -> None:
    client = _mock_redis_client()
    with patch("powerpulse.cache.redis_client.get_redis", return_value=client):
        await set_cached_latest(REDIS_URL, SourceKind.GRID, {"type": "grid"}, 7)
    client.set.assert_awaited_once_with("latest:grid", '{"type": "grid"}', ex=7)


@pytest.mark.asyncio
async def test_set_failure_is_swallowed() -> None:
    client = _mock_redis_client(side_effect=ConnectionError("redis down"))
    with patch("powerpulse.cache.redis_client.get_redis", return_value=client):
        await set_cached_latest(REDIS_URL, SourceKind.GRID, {}, 5)


@pytest.mark.asyncio
async def test_invalidate_deletes_key() -> None:
    client = _mock_redis_client()
    with patch(
        "powerpulse.cache.redis_client.get_redis", return_value=client
    ) as mock_get_redis:
        await invalidate_source_cache(REDIS_URL, SourceKind.GENERATOR)
    mock_get_redis.assert_awaited_once_with(REDIS_URL)
    client.delete.assert_awaited_once_with("latest:generator")


@pytest.mark.asyncio
async def test_invalidate_failure_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    with patch(
        "powerpulse.cache.redis_client.get_redis",
        side_effect=ConnectionError("redis down"),
    ):
        await invalidate_source_cache(REDIS_URL, SourceKind.GRID)
    assert "Failed to invalidate cache for source grid" in caplog.text
