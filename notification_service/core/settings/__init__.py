"""Modular Pydantic Settings v2 configuration.

One frozen settings class per concern, each bound to its own environment
prefix (DB_, LOG_, NOTIFICATION_, REDIS_, WEBHOOK_).

Import settings via cached loaders:
    from notification_service.core.settings import get_notification_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables (production)
    3. .env file (development only)
"""

from __future__ import annotations

from .database import DatabaseSettings
from .loader import (
    clear_all_caches,
    get_db_settings,
    get_logging_settings,
    get_notification_settings,
    get_redis_settings,
    get_webhook_settings,
)
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .redis import RedisSettings
from .webhooks import WebhookSettings

__all__ = [
    "DatabaseSettings",
    "LoggingSettings",
    "NotificationSettings",
    "RedisSettings",
    "WebhookSettings",
    "clear_all_caches",
    "get_db_settings",
    "get_logging_settings",
    "get_notification_settings",
    "get_redis_settings",
    "get_webhook_settings",
]
