"""Per-channel delivery rate limiting.

Fixed windows aligned to ``floor(now / window_seconds)``. Counters live in
Redis under ``{prefix}:{channel_id}:{window_index}``, so every service
instance and sweep shares one quota per channel.
"""

from __future__ import annotations

import math
import time
from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from notification_service.core.exceptions import RateLimitExceeded
from notification_service.core.settings import get_redis_settings
from notification_service.infra.cache import get_redis_client
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from redis.asyncio import Redis

    from notification_service.features.notifications.models import NotificationChannel

logger = get_lazy_logger(__name__)

# Increment and arm the expiry in one atomic step; returns the new count
_INCREMENT_WINDOW = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""


class FixedWindowRateLimiter:
    """Redis-backed fixed-window counter keyed by channel id.

    Example:
        limiter = FixedWindowRateLimiter(redis_client)
        await limiter.acquire(channel)  # raises RateLimitExceeded when full
    """

    def __init__(
        self,
        redis: Redis | None = None,
        *,
        key_prefix: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize rate limiter.

        Args:
            redis: Redis client; defaults to the process-wide client started at startup
            key_prefix: Prefix for counter keys (defaults to REDIS_KEY_PREFIX)
            clock: Returns the current time in epoch seconds
        """
        self._redis = redis
        self.key_prefix = key_prefix or get_redis_settings().key_prefix
        self._clock = clock

    @property
    def redis(self) -> Redis | None:
        return self._redis if self._redis is not None else get_redis_client()

    def make_key(self, channel_id: object, window_index: int) -> str:
        return f"{self.key_prefix}:{channel_id}:{window_index}"

    async def acquire(self, channel: NotificationChannel) -> int:
        """Count one delivery against the channel's current window.

        Channels with rate limiting disabled are not counted. Without Redis,
        or when Redis errors, the delivery is allowed.

        Args:
            channel: Channel about to dispatch

        Returns:
            Deliveries remaining in the current window (-1 when not counted)

        Raises:
            RateLimitExceeded: If the window is already full
        """
        if not channel.rate_limit_enabled:
            return -1

        client = self.redis
        if client is None:
            logger.debug(lambda: f"rate_limit.acquire: {channel.name} -> not counted, no Redis client")
            return -1

        window_seconds = max(1, channel.rate_limit_window_seconds)
        limit = channel.rate_limit
        now = self._clock()
        index = math.floor(now / window_seconds)
        key = self.make_key(channel.id, index)

        try:
            count = int(await client.eval(_INCREMENT_WINDOW, 1, key, window_seconds))
        except RedisError as e:
            logger.error(
                "Rate limit check failed, allowing delivery",
                extra={"channel": channel.name, "key": key, "error": str(e)},
                exc_info=True,
            )
            return -1

        if count > limit:
            retry_after = max(1, math.ceil((index + 1) * window_seconds - now))
            details = {
                "channel": channel.name,
                "limit": limit,
                "window_seconds": window_seconds,
                "retry_after": retry_after,
            }
            logger.warning("Channel rate limit exceeded", extra=details)
            raise RateLimitExceeded(
                detail=f"Channel '{channel.name}' rate limit exceeded",
                extra=details,
            )

        remaining = limit - count
        logger.debug(lambda: f"rate_limit.acquire: {channel.name} -> {remaining} remaining")
        return remaining


_rate_limiter: FixedWindowRateLimiter | None = None


def get_rate_limiter() -> FixedWindowRateLimiter:
    """Get the process-wide rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = FixedWindowRateLimiter()
    return _rate_limiter


__all__ = ["FixedWindowRateLimiter", "get_rate_limiter"]
