"""Shared Redis client with connection pooling.

One client per process, started by the application lifespan or a CLI
command and handed to components that need shared state across service
instances (the channel rate limiter).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from notification_service.core.settings import get_redis_settings

if TYPE_CHECKING:
    from collections.abc import Awaitable

logger = logging.getLogger(__name__)

_pool: ConnectionPool | None = None
_client: Redis | None = None


async def start_redis() -> Redis | None:
    """Connect the process-wide Redis client.

    Does nothing when REDIS_URL is unset. When Redis is configured but
    unreachable, startup continues without it unless
    ``startup_require_redis`` is set.

    Returns:
        The connected client, or None when running without Redis.

    Raises:
        RedisError: If Redis is unreachable and required at startup.
    """
    global _pool, _client
    settings = get_redis_settings()
    if not settings.is_configured or settings.url is None:
        logger.info("Redis not configured, channel rate limits are not enforced")
        return None
    if _client is not None:
        return _client

    pool = ConnectionPool.from_url(settings.url, **settings.connection_pool_kwargs())
    client = Redis(connection_pool=pool)
    try:
        await cast("Awaitable[bool]", client.ping())
    except (RedisError, OSError) as e:
        await client.aclose()
        await pool.aclose()
        if settings.startup_require_redis:
            logger.exception("Redis required but unavailable, failing startup")
            raise
        logger.warning(
            "Redis unavailable, continuing without channel rate limits",
            extra={"error": str(e), "startup_require_redis": False},
        )
        return None

    _pool, _client = pool, client
    logger.info("Redis connection established", extra={"max_connections": settings.max_connections})
    return client


async def stop_redis() -> None:
    """Close the process-wide Redis client, if started."""
    global _pool, _client
    if _client is not None:
        await cast("Any", _client).aclose()
        _client = None
    if _pool is not None:
        await _pool.aclose()
        _pool = None
        logger.info("Redis connection closed")


def get_redis_client() -> Redis | None:
    """Get the process-wide Redis client, or None when not started."""
    return _client


__all__ = ["get_redis_client", "start_redis", "stop_redis"]
