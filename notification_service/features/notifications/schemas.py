"""Pydantic schemas for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from notification_service.features.notifications.enums import (
    ChannelStatus,
    ChannelType,
    Priority,
    PushPlatform,
)

# ============================================================================
# Notification intake
# ============================================================================


class RelatedResource(BaseModel):
    """Resource a notification refers to."""

    type: str = Field(..., min_length=1, max_length=100)
    id: str = Field(..., min_length=1, max_length=255)


class NotificationAction(BaseModel):
    """Action button shown with a notification."""

    label: str = Field(..., min_length=1, max_length=100)
    url: str | None = None
    style: str = "primary"


class NotificationRequest(BaseModel):
    """A notification intent.

    Either ``template`` or both ``title`` and ``message`` are required.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    recipient: str = Field(..., min_length=1, max_length=255, description="Recipient identifier")
    type: str = Field(..., min_length=1, max_length=100, description="Notification type")
    category: str = Field(..., min_length=1, max_length=100, description="Notification category")
    priority: Priority | None = Field(
        default=None,
        description="Priority (defaults to the template's priority, else normal)",
    )
    channel: ChannelType | None = Field(
        default=None,
        description="Channel type (defaults to the configured default channel)",
    )
    template: str | None = Field(default=None, max_length=100, description="Template name")
    template_version: int | None = Field(default=None, ge=1, description="Pin a template version")
    variables: dict[str, Any] = Field(default_factory=dict, description="Template variables")
    title: str | None = Field(default=None, max_length=500)
    message: str | None = None
    actions: list[NotificationAction] | None = None
    related_resource: RelatedResource | None = Field(default=None, alias="relatedResource")
    metadata: dict[str, Any] | None = None
    expires_at: datetime | None = Field(default=None, alias="expiresAt")
    scheduled_at: datetime | None = Field(default=None, alias="scheduledAt")

    @model_validator(mode="after")
    def require_content(self) -> NotificationRequest:
        """Require a template or a literal title and message."""
        if self.template is None and not (self.title and self.message):
            msg = "Either 'template' or both 'title' and 'message' are required"
            raise ValueError(msg)
        return self


class NotificationResponse(BaseModel):
    """Representation of a persisted notification."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_id: str
    type: str
    category: str
    priority: str
    channel: str
    channel_id: UUID | None
    template_name: str | None
    template_version: int | None
    title: str
    message: str
    actions: list[dict[str, Any]] | None
    rendered_content: dict[str, Any] | None
    related_resource: dict[str, Any] | None
    status: str
    error_message: str | None
    provider_reference: str | None
    scheduled_for: datetime | None
    sent_at: datetime | None
    failed_at: datetime | None
    expires_at: datetime | None
    archived_at: datetime | None
    read_at: datetime | None
    created_at: datetime
    updated_at: datetime


class SkippedResponse(BaseModel):
    """Returned instead of a record when preferences suppress delivery."""

    skipped: Literal[True] = True
    reason: str


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    unread_count: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int


class BatchRequest(BaseModel):
    """Batch of raw notification intents; each is validated independently."""

    notifications: list[dict[str, Any]] = Field(..., min_length=1, max_length=1000)


class BatchItemResult(BaseModel):
    index: int
    outcome: Literal["sent", "skipped", "failed", "scheduled"]
    notification_id: UUID | None = None
    reason: str | None = None
    error: str | None = None


class BatchResult(BaseModel):
    """Aggregate outcome of a batch; counts always add up to ``total``."""

    total: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    scheduled: int = 0
    details: list[BatchItemResult] = Field(default_factory=list)


class ScheduledSweepResult(BaseModel):
    total: int = 0
    sent: int = 0
    failed: int = 0


class ExpiredSweepResult(BaseModel):
    total: int = 0
    archived: int = 0
    failed: int = 0


# ============================================================================
# Channels
# ============================================================================


class ChannelCapabilities(BaseModel):
    supports_templates: bool = True
    supports_attachments: bool = False
    supports_bulk_send: bool = False
    supports_scheduling: bool = False
    supports_tracking: bool = False


class ChannelRateLimit(BaseModel):
    enabled: bool = False
    limit: int = Field(default=100, ge=1)
    window_seconds: int = Field(default=60, ge=1)


class ChannelCreate(BaseModel):
    """Payload for creating a channel."""

    name: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9_\-]*$")
    display_name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    type: ChannelType
    config: dict[str, Any] = Field(default_factory=dict, description="Provider config for the type")
    status: ChannelStatus = ChannelStatus.ACTIVE
    capabilities: ChannelCapabilities = Field(default_factory=ChannelCapabilities)
    rate_limit: ChannelRateLimit = Field(default_factory=ChannelRateLimit)
    tags: list[str] = Field(default_factory=list)


class ChannelUpdate(BaseModel):
    """Payload for updating a channel. Unset fields are left unchanged."""

    display_name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    config: dict[str, Any] | None = None
    status: ChannelStatus | None = None
    capabilities: ChannelCapabilities | None = None
    rate_limit: ChannelRateLimit | None = None
    tags: list[str] | None = None


class ChannelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    display_name: str
    description: str | None
    type: str
    config: dict[str, Any]
    status: str
    error_message: str | None
    last_tested_at: datetime | None
    supports_templates: bool
    supports_attachments: bool
    supports_bulk_send: bool
    supports_scheduling: bool
    supports_tracking: bool
    rate_limit_enabled: bool
    rate_limit: int
    rate_limit_window_seconds: int
    tags: list[str]
    created_at: datetime
    updated_at: datetime


class ChannelStats(BaseModel):
    sent: int
    delivered: int
    failed: int
    success_rate: float = Field(description="Percentage of attempts that did not fail")
    last_sent_at: datetime | None


class ChannelTestResponse(BaseModel):
    success: bool
    message: str
    timestamp: datetime


# ============================================================================
# Templates
# ============================================================================


class TemplateVariable(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    required: bool = False
    default_value: Any | None = None
    example_value: Any | None = None


class SupportedChannel(BaseModel):
    """Channel a template can render for, with optional channel-specific content.

    Content keys: email ``subject``/``html_body``/``text_body``, sms ``text``,
    push ``title``/``body``, webhook ``payload``.
    """

    type: ChannelType
    enabled: bool = True
    content: dict[str, Any] = Field(default_factory=dict)


class TemplateAction(BaseModel):
    label: str = Field(..., min_length=1, max_length=100)
    url_template: str | None = None
    style: str = "primary"


class TemplateCreate(BaseModel):
    """Payload for creating a template (version 1 of a name)."""

    name: str = Field(..., min_length=1, max_length=100)
    display_name: str | None = Field(default=None, max_length=200)
    description: str | None = None
    type: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., min_length=1, max_length=100)
    title_template: str = Field(..., min_length=1)
    message_template: str = Field(..., min_length=1)
    default_priority: Priority = Priority.NORMAL
    supported_channels: list[SupportedChannel] = Field(
        default_factory=lambda: [SupportedChannel(type=ChannelType.IN_APP)],
    )
    default_actions: list[TemplateAction] = Field(default_factory=list)
    variables: list[TemplateVariable] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class TemplateVersionCreate(BaseModel):
    """Overrides for a new version. Unset fields carry over from the source."""

    display_name: str | None = None
    description: str | None = None
    type: str | None = None
    category: str | None = None
    title_template: str | None = None
    message_template: str | None = None
    default_priority: Priority | None = None
    supported_channels: list[SupportedChannel] | None = None
    default_actions: list[TemplateAction] | None = None
    variables: list[TemplateVariable] | None = None
    tags: list[str] | None = None


class TemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    version: int
    display_name: str | None
    description: str | None
    type: str
    category: str
    title_template: str
    message_template: str
    default_priority: str
    supported_channels: list[dict[str, Any]]
    default_actions: list[dict[str, Any]]
    variables: list[dict[str, Any]]
    is_active: bool
    previous_version_id: UUID | None
    tags: list[str]
    created_at: datetime
    updated_at: datetime


class TemplateRenderRequest(BaseModel):
    variables: dict[str, Any] = Field(default_factory=dict)
    channel: ChannelType = ChannelType.IN_APP
    version: int | None = Field(default=None, ge=1)


class TemplatePreviewRequest(BaseModel):
    variables: dict[str, Any] = Field(default_factory=dict)
    channel: ChannelType = ChannelType.IN_APP


class TemplatePreviewResponse(BaseModel):
    preview: dict[str, Any]
    variables: dict[str, Any]


# ============================================================================
# Preferences
# ============================================================================


class PreferenceResponse(BaseModel):
    recipient_id: str
    preferences: dict[str, Any] = Field(description="Full preference document")


class PreferenceCheckRequest(BaseModel):
    category: str
    type: str
    channel: ChannelType
    priority: Priority = Priority.NORMAL
    template: str | None = None


class PreferenceCheckResponse(BaseModel):
    would_deliver: bool
    reason: str


class PushTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)
    platform: PushPlatform
    device: str | None = None


class PushTokenRemoveRequest(BaseModel):
    token: str = Field(..., min_length=1)


class WebhookEndpointRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048, pattern=r"^https?://")
    secret: str | None = None
    description: str | None = None
    events: list[str] = Field(default_factory=list)


class WebhookEndpointRemoveRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048)
