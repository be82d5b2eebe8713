"""SQLAlchemy models for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from notification_service.core.database import JSONDocument, StringArray, UUIDv7TimestampedBase

DEFAULT_TAG = "default"


class NotificationPreference(UUIDv7TimestampedBase):
    """Per-recipient notification preferences.

    One row per recipient. The document sections are stored as JSON and
    validated through ``PreferenceDocument`` on read, so a row written by an
    older version with missing keys still yields complete defaults.

    A recipient without a row is treated as having the default document.
    """

    __tablename__ = "notification_preferences"

    recipient_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="Recipient identifier (opaque to the engine)",
    )
    global_settings: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=dict,
        comment="Master switch and quiet hours",
    )
    channels: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=dict,
        comment="Per-channel sections (in-app, email, sms, push, webhook)",
    )
    categories: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
        comment="Ordered category overrides",
    )
    types: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
        comment="Ordered type overrides",
    )
    templates: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
        comment="Ordered template overrides",
    )


class NotificationChannel(UUIDv7TimestampedBase):
    """A configured delivery channel.

    Channels are process-wide configuration. The ``default`` tag marks the
    preferred channel of its type; otherwise the first active channel in
    creation order is used.

    Indexes:
        - (type, status) for default channel resolution
    """

    __tablename__ = "notification_channels"

    # Identification
    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
        comment="Unique channel name (e.g., 'primary-email')",
    )
    display_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Human-readable name",
    )
    description: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
        comment="What the channel is used for",
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
        comment="Channel type: email, sms, push, webhook, in-app, custom",
    )
    config: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=dict,
        comment="Provider configuration for the channel type",
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(20),
        default="active",
        nullable=False,
        index=True,
        comment="Status: active, inactive, testing, error",
    )
    error_message: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
        comment="Last test failure message",
    )
    last_tested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the channel was last tested",
    )

    # Capabilities
    supports_templates: Mapped[bool] = mapped_column(Boolean(), default=True, nullable=False)
    supports_attachments: Mapped[bool] = mapped_column(Boolean(), default=False, nullable=False)
    supports_bulk_send: Mapped[bool] = mapped_column(Boolean(), default=False, nullable=False)
    supports_scheduling: Mapped[bool] = mapped_column(Boolean(), default=False, nullable=False)
    supports_tracking: Mapped[bool] = mapped_column(Boolean(), default=False, nullable=False)

    # Rate limiting
    rate_limit_enabled: Mapped[bool] = mapped_column(
        Boolean(),
        default=False,
        nullable=False,
        comment="Whether the rate limit is enforced",
    )
    rate_limit: Mapped[int] = mapped_column(
        Integer(),
        default=100,
        nullable=False,
        comment="Deliveries allowed per window",
    )
    rate_limit_window_seconds: Mapped[int] = mapped_column(
        Integer(),
        default=60,
        nullable=False,
        comment="Rate limit window length in seconds",
    )

    # Delivery statistics
    sent_count: Mapped[int] = mapped_column(Integer(), default=0, nullable=False)
    delivered_count: Mapped[int] = mapped_column(Integer(), default=0, nullable=False)
    failed_count: Mapped[int] = mapped_column(Integer(), default=0, nullable=False)
    last_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the channel last sent a notification",
    )

    tags: Mapped[list[str]] = mapped_column(
        StringArray(),
        nullable=False,
        default=list,
        comment="Free-form tags; 'default' marks the preferred channel of its type",
    )

    __table_args__ = (Index("idx_notification_channel_type_status", "type", "status"),)

    @property
    def is_default(self) -> bool:
        return DEFAULT_TAG in (self.tags or [])


class NotificationTemplate(UUIDv7TimestampedBase):
    """Versioned, multi-channel notification template.

    Every version is its own row sharing ``name``. Lookups by name pick the
    highest active version. Content fields use Jinja2 syntax.

    Unique constraint: (name, version)
    """

    __tablename__ = "notification_templates"

    # Identification
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Template identifier shared by all versions (e.g., 'welcome')",
    )
    version: Mapped[int] = mapped_column(
        Integer(),
        default=1,
        nullable=False,
        comment="Monotonic version number per name",
    )
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text(), nullable=True)

    # Classification
    type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Notification type produced by this template",
    )
    category: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Notification category produced by this template",
    )
    default_priority: Mapped[str] = mapped_column(
        String(20),
        default="normal",
        nullable=False,
        comment="Priority used when a request does not set one",
    )

    # Content
    title_template: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
        comment="Jinja2 template for the title",
    )
    message_template: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
        comment="Jinja2 template for the message body",
    )
    supported_channels: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
        comment="List of {type, enabled, content} per channel",
    )
    default_actions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
        comment="Action buttons: {label, url_template, style}",
    )
    variables: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
        comment="Declared variables: {name, description, required, default_value, example_value}",
    )

    # Lifecycle
    is_active: Mapped[bool] = mapped_column(
        Boolean(),
        default=True,
        nullable=False,
        comment="Whether the template can be used",
    )
    previous_version_id: Mapped[UUID | None] = mapped_column(
        nullable=True,
        comment="Template row this version was derived from",
    )
    tags: Mapped[list[str]] = mapped_column(StringArray(), nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint("name", "version", name="uq_notification_template_name_version"),
    )


class Notification(UUIDv7TimestampedBase):
    """One delivery attempt of a notification to a recipient on one channel.

    Lifecycle:
        pending -> sent | failed                  (immediate delivery)
        scheduled -> in_progress -> sent | failed (scheduled sweep)
        pending | scheduled | sent -> archived    (expiry sweep)

    Skipped notifications are never written.

    Indexes:
        - (recipient_id, status) for recipient listings
        - (status, scheduled_for) for the scheduled sweep
        - (status, expires_at) for the expiry sweep
    """

    __tablename__ = "notifications"

    # Recipient and classification
    recipient_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Recipient identifier",
    )
    type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(
        String(20),
        default="normal",
        nullable=False,
        comment="Priority: low, normal, high, urgent",
    )

    # Channel
    channel: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Channel type the notification is delivered through",
    )
    channel_id: Mapped[UUID | None] = mapped_column(
        nullable=True,
        comment="Configured channel that handled delivery",
    )

    # Template reference
    template_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    template_version: Mapped[int | None] = mapped_column(Integer(), nullable=True)

    # Content
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text(), nullable=False)
    actions: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONDocument, nullable=True)
    rendered_content: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Channel-specific rendered output",
    )
    delivery_settings: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Recipient delivery settings resolved at intake",
    )
    related_resource: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Resource the notification refers to: {type, id}",
    )
    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Caller supplied metadata",
    )

    # Status tracking
    status: Mapped[str] = mapped_column(
        String(20),
        default="pending",
        nullable=False,
        index=True,
        comment="Status: pending, scheduled, in_progress, sent, failed, archived",
    )
    error_message: Mapped[str | None] = mapped_column(Text(), nullable=True)
    provider_reference: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Identifier returned by the sender",
    )

    # Timing
    scheduled_for: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When to deliver (null = immediate)",
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the notification is archived by the expiry sweep",
    )
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the recipient read the notification",
    )

    # Claim bookkeeping for the scheduled sweep
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    claim_token: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        index=True,
        comment="Token of the sweep run that claimed the record",
    )

    __table_args__ = (
        Index("idx_notification_recipient_status", "recipient_id", "status"),
        Index("idx_notification_status_scheduled", "status", "scheduled_for"),
        Index("idx_notification_status_expires", "status", "expires_at"),
    )

    @property
    def is_read(self) -> bool:
        return self.read_at is not None
