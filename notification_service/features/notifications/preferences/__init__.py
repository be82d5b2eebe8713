"""Recipient notification preferences.

The resolver is a set of pure functions over ``PreferenceDocument``;
``PreferenceService`` loads and stores documents around them.
"""

from __future__ import annotations

from notification_service.features.notifications.preferences.resolver import (
    DeliveryDecision,
    default_preferences,
    get_delivery_settings,
    is_enabled,
    is_quiet_hours,
    resolve_enablement,
)
from notification_service.features.notifications.preferences.schemas import PreferenceDocument
from notification_service.features.notifications.preferences.service import (
    PreferenceService,
    get_preference_service,
)

__all__ = [
    "DeliveryDecision",
    "PreferenceDocument",
    "PreferenceService",
    "default_preferences",
    "get_delivery_settings",
    "get_preference_service",
    "is_enabled",
    "is_quiet_hours",
    "resolve_enablement",
]
