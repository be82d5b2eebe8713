"""Enumerations shared across the notification engine."""

from __future__ import annotations

from enum import StrEnum


class ChannelType(StrEnum):
    """Kind of delivery mechanism a channel uses."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    WEBHOOK = "webhook"
    IN_APP = "in-app"
    CUSTOM = "custom"


class ChannelStatus(StrEnum):
    """Operational status of a configured channel."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    TESTING = "testing"
    ERROR = "error"


class NotificationStatus(StrEnum):
    """Lifecycle status of a notification record.

    Skips never produce a record, so there is no ``skipped`` member.
    """

    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    SENT = "sent"
    FAILED = "failed"
    ARCHIVED = "archived"


# Statuses the expiry sweep may move to ARCHIVED
ARCHIVABLE_STATUSES = (
    NotificationStatus.PENDING,
    NotificationStatus.SCHEDULED,
    NotificationStatus.SENT,
)


class Priority(StrEnum):
    """Notification priority. URGENT bypasses quiet hours."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class DeliveryOutcome(StrEnum):
    """Outcomes counted in a channel's delivery statistics."""

    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


class EmailFrequency(StrEnum):
    """How often email notifications are sent to a recipient."""

    IMMEDIATE = "immediate"
    DIGEST = "digest"
    DAILY = "daily"
    WEEKLY = "weekly"


class PushPlatform(StrEnum):
    """Platforms a push token may belong to."""

    IOS = "ios"
    ANDROID = "android"
    WEB = "web"
