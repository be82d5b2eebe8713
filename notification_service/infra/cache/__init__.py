"""Redis infrastructure package.

Example:
    from notification_service.infra.cache import get_redis_client

    client = get_redis_client()  # None until start_redis() ran with REDIS_URL set
"""

from notification_service.infra.cache.redis import get_redis_client, start_redis, stop_redis

__all__ = ["get_redis_client", "start_redis", "stop_redis"]
