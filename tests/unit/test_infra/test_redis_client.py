"""Tests for the process-wide Redis client lifecycle."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from notification_service.core.settings import RedisSettings
from notification_service.infra.cache import redis as redis_module

MODULE = "notification_service.infra.cache.redis"


@pytest.fixture(autouse=True)
async def reset_client():
    yield
    await redis_module.stop_redis()


def _fake_pool_and_client(ping_error: Exception | None = None) -> tuple[MagicMock, MagicMock]:
    pool = MagicMock()
    pool.aclose = AsyncMock()
    client = MagicMock()
    client.ping = AsyncMock(side_effect=ping_error, return_value=True)
    client.aclose = AsyncMock()
    return pool, client


@pytest.mark.asyncio
async def test_not_configured_starts_nothing() -> None:
    with patch(f"{MODULE}.get_redis_settings", return_value=RedisSettings(url=None)):
        assert await redis_module.start_redis() is None

    assert redis_module.get_redis_client() is None


@pytest.mark.asyncio
async def test_start_connects_and_stop_closes() -> None:
    pool, client = _fake_pool_and_client()
    settings = RedisSettings(url="redis://cache:6379/2", max_connections=7)

    with (
        patch(f"{MODULE}.get_redis_settings", return_value=settings),
        patch(f"{MODULE}.ConnectionPool.from_url", return_value=pool) as from_url,
        patch(f"{MODULE}.Redis", return_value=client),
    ):
        started = await redis_module.start_redis()

    assert started is client
    assert redis_module.get_redis_client() is client
    from_url.assert_called_once()
    assert from_url.call_args.args == ("redis://cache:6379/2",)
    assert from_url.call_args.kwargs["max_connections"] == 7

    await redis_module.stop_redis()

    client.aclose.assert_awaited_once()
    pool.aclose.assert_awaited_once()
    assert redis_module.get_redis_client() is None


@pytest.mark.asyncio
async def test_unreachable_redis_is_optional_by_default() -> None:
    pool, client = _fake_pool_and_client(RedisConnectionError("refused"))

    with (
        patch(f"{MODULE}.get_redis_settings", return_value=RedisSettings(url="redis://cache:6379/0")),
        patch(f"{MODULE}.ConnectionPool.from_url", return_value=pool),
        patch(f"{MODULE}.Redis", return_value=client),
    ):
        assert await redis_module.start_redis() is None

    assert redis_module.get_redis_client() is None
    client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_unreachable_redis_fails_startup_when_required() -> None:
    pool, client = _fake_pool_and_client(RedisConnectionError("refused"))
    settings = RedisSettings(url="redis://cache:6379/0", startup_require_redis=True)

    with (
        patch(f"{MODULE}.get_redis_settings", return_value=settings),
        patch(f"{MODULE}.ConnectionPool.from_url", return_value=pool),
        patch(f"{MODULE}.Redis", return_value=client),
        pytest.raises(RedisConnectionError),
    ):
        await redis_module.start_redis()
