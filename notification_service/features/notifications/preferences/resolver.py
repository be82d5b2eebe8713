"""Preference resolution.

Pure functions over a ``PreferenceDocument``: whether a notification may be
delivered on a channel, which channel-specific settings apply, and copy-on-write
edits of push tokens and webhook endpoints. Nothing here touches the database;
``PreferenceService`` loads and stores the document around these calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from notification_service.features.notifications.enums import ChannelType, Priority, PushPlatform
from notification_service.features.notifications.preferences.rules import (
    build_override_rules,
    evaluate_rules,
)
from notification_service.features.notifications.preferences.schemas import (
    PreferenceDocument,
    PushToken,
    WebhookEndpoint,
)
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from notification_service.features.notifications.preferences.schemas import QuietHours

_lazy = get_lazy_logger(__name__)

# Reasons produced before the override rules are consulted
REASON_GLOBAL = "global"
REASON_CHANNEL = "channel"
REASON_QUIET_HOURS = "quiet_hours"


@dataclass(frozen=True, slots=True)
class DeliveryDecision:
    """Outcome of the preference gate.

    Attributes:
        enabled: Whether the notification may be delivered.
        reason: Tier that decided (global, channel, quiet_hours, template,
            category_priority, category, type, channel_default).
    """

    enabled: bool
    reason: str


def default_preferences() -> PreferenceDocument:
    """Return the document used for recipients who never saved preferences."""
    return PreferenceDocument()


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def is_quiet_hours(quiet_hours: QuietHours, now: datetime | None = None) -> bool:
    """Check whether ``now`` falls inside the quiet-hours window.

    Both ends of the window are inclusive. A window whose start is later
    than its end spans midnight.

    Args:
        quiet_hours: Window configuration (ignored when disabled).
        now: Instant to test, defaults to the current time. Naive values are
            taken as UTC.

    Returns:
        True if suppression is active.
    """
    if not quiet_hours.enabled:
        return False

    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    local = now.astimezone(ZoneInfo(quiet_hours.timezone))
    current = local.hour * 60 + local.minute

    start = _minutes(quiet_hours.start)
    end = _minutes(quiet_hours.end)
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


def resolve_enablement(
    pref: PreferenceDocument,
    category: str | None,
    notification_type: str | None,
    channel: str,
    priority: str = Priority.NORMAL,
    template: str | None = None,
    *,
    now: datetime | None = None,
) -> DeliveryDecision:
    """Decide whether a notification may be delivered, and why.

    Precedence: global switch, channel switch, quiet hours (never for in-app,
    bypassed by urgent priority), then the override rules from most to least
    specific: template, category priority, category, type, channel default.

    Args:
        pref: Recipient preference document.
        category: Notification category.
        notification_type: Notification type.
        channel: Channel type string (e.g. "email", "in-app").
        priority: Notification priority.
        template: Template name, if the notification uses one.
        now: Evaluation instant for quiet hours.

    Returns:
        DeliveryDecision carrying the deciding tier as ``reason``.
    """
    if not pref.global_.enabled:
        return DeliveryDecision(False, REASON_GLOBAL)

    section = pref.channels.for_channel(channel)
    if section is not None and not section.enabled:
        return DeliveryDecision(False, REASON_CHANNEL)

    if (
        channel != ChannelType.IN_APP
        and priority != Priority.URGENT
        and is_quiet_hours(pref.global_.quiet_hours, now)
    ):
        return DeliveryDecision(False, REASON_QUIET_HOURS)

    rules = build_override_rules(pref, category, notification_type, channel, priority, template)
    rule = evaluate_rules(rules, channel)

    _lazy.debug(
        lambda: f"preferences.resolve: {channel=} {category=} {notification_type=} "
        f"{priority=} {template=} -> {rule.scope}={rule.enabled} (of {len(rules)} rules)"
    )
    return DeliveryDecision(rule.enabled, str(rule.scope))


def is_enabled(
    pref: PreferenceDocument,
    category: str | None,
    notification_type: str | None,
    channel: str,
    priority: str = Priority.NORMAL,
    template: str | None = None,
    *,
    now: datetime | None = None,
) -> bool:
    """Boolean form of ``resolve_enablement``."""
    return resolve_enablement(
        pref, category, notification_type, channel, priority, template, now=now
    ).enabled


def get_delivery_settings(
    pref: PreferenceDocument,
    category: str | None,
    notification_type: str | None,
    channel: str,
) -> dict[str, Any]:
    """Build the channel-specific settings handed to a sender.

    Base values come from the channel section. Inactive push tokens and webhook
    endpoints are left out. Email frequency may then be overridden by the
    category entry and after that by the type entry.

    Returns:
        Settings dictionary, empty for channels without a preference section.
    """
    channels = pref.channels
    settings: dict[str, Any] = {}

    if channel == ChannelType.EMAIL:
        settings = {
            "frequency": str(channels.email.frequency),
            "address": channels.email.address,
            "digest_time": channels.email.digest_time,
            "weekly_day": channels.email.weekly_day,
        }
    elif channel == ChannelType.SMS:
        settings = {"phone_number": channels.sms.phone_number}
    elif channel == ChannelType.PUSH:
        settings = {
            "tokens": [
                {"token": t.token, "platform": str(t.platform), "device": t.device}
                for t in channels.push.tokens
                if t.active
            ]
        }
    elif channel == ChannelType.WEBHOOK:
        settings = {
            "endpoints": [
                {"url": e.url, "secret": e.secret, "events": list(e.events)}
                for e in channels.webhook.endpoints
                if e.active
            ]
        }
    elif channel == ChannelType.IN_APP:
        settings = {
            "show_badge": channels.in_app.show_badge,
            "show_preview": channels.in_app.show_preview,
        }

    if channel == ChannelType.EMAIL:
        for entry in (
            pref.find_category(category) if category else None,
            pref.find_type(notification_type) if notification_type else None,
        ):
            if entry is None:
                continue
            override = entry.channel_overrides.get(ChannelType.EMAIL)
            if override is not None and override.frequency is not None:
                settings["frequency"] = str(override.frequency)

    return settings


# ============================================================================
# Copy-on-write edits
# ============================================================================


def add_push_token(
    pref: PreferenceDocument,
    token: str,
    platform: str,
    device: str | None = None,
    *,
    now: datetime | None = None,
) -> PreferenceDocument:
    """Insert or refresh a push token.

    An existing token is updated in place: ``last_used`` and platform always,
    device only when one is given. Its ``active`` flag is left as is. A new
    token is appended.

    Returns:
        Updated copy of the document. ``pref`` is not modified.
    """
    now = now or datetime.now(UTC)
    updated = pref.model_copy(deep=True)
    tokens = updated.channels.push.tokens

    for existing in tokens:
        if existing.token == token:
            existing.last_used = now
            existing.platform = PushPlatform(platform)
            if device is not None:
                existing.device = device
            break
    else:
        tokens.append(PushToken(token=token, platform=platform, device=device, last_used=now))
    return updated


def remove_push_token(pref: PreferenceDocument, token: str) -> PreferenceDocument:
    """Return a copy of ``pref`` without the given push token."""
    updated = pref.model_copy(deep=True)
    updated.channels.push.tokens = [t for t in updated.channels.push.tokens if t.token != token]
    return updated


def add_webhook_endpoint(
    pref: PreferenceDocument,
    url: str,
    secret: str | None = None,
    description: str | None = None,
    events: list[str] | None = None,
) -> PreferenceDocument:
    """Append an active webhook endpoint and switch the webhook channel on.

    An endpoint with the same URL is replaced rather than duplicated.
    """
    updated = pref.model_copy(deep=True)
    endpoint = WebhookEndpoint(
        url=url,
        secret=secret,
        description=description,
        events=events or [],
    )
    webhook = updated.channels.webhook
    webhook.endpoints = [e for e in webhook.endpoints if e.url != url]
    webhook.endpoints.append(endpoint)
    webhook.enabled = True
    return updated


def remove_webhook_endpoint(pref: PreferenceDocument, url: str) -> PreferenceDocument:
    """Return a copy of ``pref`` without the endpoint registered at ``url``."""
    updated = pref.model_copy(deep=True)
    updated.channels.webhook.endpoints = [
        e for e in updated.channels.webhook.endpoints if e.url != url
    ]
    return updated


__all__ = [
    "DeliveryDecision",
    "add_push_token",
    "add_webhook_endpoint",
    "default_preferences",
    "get_delivery_settings",
    "is_enabled",
    "is_quiet_hours",
    "remove_push_token",
    "remove_webhook_endpoint",
    "resolve_enablement",
]
