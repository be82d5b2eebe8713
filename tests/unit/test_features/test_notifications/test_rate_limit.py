"""Tests for the Redis-backed fixed-window channel rate limiter."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from notification_service.core.exceptions import RateLimitExceeded
from notification_service.features.notifications.channels.rate_limit import FixedWindowRateLimiter
from tests.conftest import InMemoryRedis


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _channel(limit: int = 2, window: int = 60, enabled: bool = True) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        name="primary",
        rate_limit_enabled=enabled,
        rate_limit=limit,
        rate_limit_window_seconds=window,
    )


@pytest.mark.asyncio
async def test_limit_is_enforced_within_window() -> None:
    limiter = FixedWindowRateLimiter(InMemoryRedis(), clock=FakeClock(1_200.0))
    channel = _channel(limit=2, window=60)

    assert await limiter.acquire(channel) == 1
    assert await limiter.acquire(channel) == 0
    with pytest.raises(RateLimitExceeded) as exc_info:
        await limiter.acquire(channel)

    assert exc_info.value.status_code == 429
    assert exc_info.value.extra["limit"] == 2


@pytest.mark.asyncio
async def test_quota_is_shared_across_service_instances() -> None:
    redis = InMemoryRedis()
    clock = FakeClock(1_200.0)
    instances = [FixedWindowRateLimiter(redis, clock=clock), FixedWindowRateLimiter(redis, clock=clock)]
    channel = _channel(limit=2, window=60)

    accepted = 0
    for limiter in instances:
        for _ in range(2):
            try:
                await limiter.acquire(channel)
                accepted += 1
            except RateLimitExceeded:
                pass

    assert accepted == 2


@pytest.mark.asyncio
async def test_counter_key_and_expiry_follow_the_window() -> None:
    redis = InMemoryRedis()
    limiter = FixedWindowRateLimiter(redis, key_prefix="ratelimit", clock=FakeClock(1_259.0))
    channel = _channel(limit=5, window=60)

    await limiter.acquire(channel)

    key = f"ratelimit:{channel.id}:20"
    assert redis.counters == {key: 1}
    assert redis.ttls == {key: 60}


@pytest.mark.asyncio
async def test_counter_resets_at_window_boundary() -> None:
    clock = FakeClock(1_200.0)
    limiter = FixedWindowRateLimiter(InMemoryRedis(), clock=clock)
    channel = _channel(limit=1, window=60)

    await limiter.acquire(channel)
    clock.now = 1_259.0
    with pytest.raises(RateLimitExceeded) as exc_info:
        await limiter.acquire(channel)
    assert exc_info.value.extra["retry_after"] == 1

    clock.now = 1_260.0
    assert await limiter.acquire(channel) == 0


@pytest.mark.asyncio
async def test_channels_are_counted_separately() -> None:
    limiter = FixedWindowRateLimiter(InMemoryRedis(), clock=FakeClock())
    first, second = _channel(limit=1), _channel(limit=1)

    await limiter.acquire(first)

    assert await limiter.acquire(second) == 0


@pytest.mark.asyncio
async def test_disabled_channel_is_not_counted() -> None:
    redis = InMemoryRedis()
    limiter = FixedWindowRateLimiter(redis, clock=FakeClock())
    channel = _channel(limit=1, enabled=False)

    for _ in range(5):
        assert await limiter.acquire(channel) == -1
    assert redis.counters == {}


@pytest.mark.asyncio
async def test_redis_errors_allow_delivery() -> None:
    redis = MagicMock()
    redis.eval = AsyncMock(side_effect=RedisConnectionError("connection refused"))
    limiter = FixedWindowRateLimiter(redis, clock=FakeClock())

    assert await limiter.acquire(_channel(limit=1)) == -1
    redis.eval.assert_awaited_once()


@pytest.mark.asyncio
async def test_without_redis_client_nothing_is_counted() -> None:
    with patch(
        "notification_service.features.notifications.channels.rate_limit.get_redis_client",
        return_value=None,
    ):
        limiter = FixedWindowRateLimiter(clock=FakeClock())
        channel = _channel(limit=1)

        assert await limiter.acquire(channel) == -1
        assert await limiter.acquire(channel) == -1


@pytest.mark.asyncio
async def test_process_wide_client_is_used_by_default() -> None:
    redis = InMemoryRedis()
    with patch(
        "notification_service.features.notifications.channels.rate_limit.get_redis_client",
        return_value=redis,
    ):
        limiter = FixedWindowRateLimiter(clock=FakeClock())

        assert await limiter.acquire(_channel(limit=3)) == 2
    assert len(redis.counters) == 1
