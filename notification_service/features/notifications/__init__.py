"""Preference-driven notification delivery.

This feature decides whether a notification reaches a recipient, renders it
for the requested channel and records the outcome:
- Layered recipient preferences with quiet hours
- Channel registry with default resolution, rate limits and statistics
- Versioned Jinja2 templates with per-channel output
- Delivery orchestration for single requests, batches and sweeps

Architecture:
    - Models: NotificationPreference, NotificationChannel, NotificationTemplate, Notification
    - Preferences: pure resolver functions plus PreferenceService for storage
    - Channels: ChannelRegistry, pluggable senders, fixed-window rate limiter
    - Templates: TemplateRenderer and TemplateService
    - Orchestrator: DeliveryOrchestrator

Example:
    ```python
    orchestrator = get_delivery_orchestrator()
    outcome = await orchestrator.create_and_send(
        session,
        {"recipient": "user-1", "type": "welcome", "category": "account", "template": "welcome"},
    )
    await session.commit()
    ```
"""

from notification_service.features.notifications.models import (
    Notification,
    NotificationChannel,
    NotificationPreference,
    NotificationTemplate,
)
from notification_service.features.notifications.service import (
    DeliveryOrchestrator,
    get_delivery_orchestrator,
)

__all__ = [
    "DeliveryOrchestrator",
    "Notification",
    "NotificationChannel",
    "NotificationPreference",
    "NotificationTemplate",
    "get_delivery_orchestrator",
]
