"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Usage:
    from notification_service.core.settings.loader import get_notification_settings

    settings = get_notification_settings()  # First call: loads and validates
    settings = get_notification_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    get_notification_settings.cache_clear()
"""

from __future__ import annotations

from functools import lru_cache

from .database import DatabaseSettings
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .redis import RedisSettings
from .webhooks import WebhookSettings


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    """Get cached database settings.

    Returns:
        Validated and frozen DatabaseSettings instance.
    """
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_notification_settings() -> NotificationSettings:
    """Get cached notification engine settings.

    Returns:
        Validated and frozen NotificationSettings instance.
    """
    return NotificationSettings()


@lru_cache(maxsize=1)
def get_redis_settings() -> RedisSettings:
    """Get cached Redis settings.

    Returns:
        Validated and frozen RedisSettings instance.
    """
    return RedisSettings()


@lru_cache(maxsize=1)
def get_webhook_settings() -> WebhookSettings:
    """Get cached webhook settings.

    Returns:
        Validated and frozen WebhookSettings instance.
    """
    return WebhookSettings()


def clear_all_caches() -> None:
    """Clear every cached settings instance (tests only)."""
    get_db_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_notification_settings.cache_clear()
    get_redis_settings.cache_clear()
    get_webhook_settings.cache_clear()
