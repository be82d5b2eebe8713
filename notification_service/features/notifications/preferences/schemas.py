"""Typed preference document.

A recipient's preferences are stored as JSON columns and validated through
these models on every read, so the resolver always works with complete,
defaulted values.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from notification_service.features.notifications.enums import (
    ChannelType,
    EmailFrequency,
    Priority,
    PushPlatform,
)

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_hhmm(value: str) -> str:
    if not _HHMM.match(value):
        msg = f"Expected HH:MM in 24-hour format, got {value!r}"
        raise ValueError(msg)
    return value


# ============================================================================
# Global settings
# ============================================================================


class QuietHours(BaseModel):
    """Daily window during which non-urgent notifications are held back."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = False
    start: str = Field(default="22:00", description="Window start, HH:MM (24h)")
    end: str = Field(default="07:00", description="Window end, HH:MM (24h)")
    timezone: str = Field(default="UTC", description="IANA timezone of the window")

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Validate HH:MM format."""
        return _check_hhmm(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown timezone names."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"Unknown timezone: {v!r}"
            raise ValueError(msg) from exc
        return v


class GlobalPreferences(BaseModel):
    """Master switch plus quiet hours."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    enabled: bool = True
    quiet_hours: QuietHours = Field(default_factory=QuietHours, alias="quietHours")


# ============================================================================
# Channel settings
# ============================================================================


class ChannelSettings(BaseModel):
    """Fields common to every channel section."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = True


class InAppPreferences(ChannelSettings):
    show_badge: bool = True
    show_preview: bool = True


class EmailPreferences(ChannelSettings):
    address: str | None = None
    frequency: EmailFrequency = EmailFrequency.IMMEDIATE
    digest_time: str = Field(default="09:00", description="Time digests are sent, HH:MM")
    weekly_day: int = Field(default=1, ge=0, le=6, description="0 = Sunday, 1 = Monday, ...")

    @field_validator("digest_time")
    @classmethod
    def validate_digest_time(cls, v: str) -> str:
        """Validate HH:MM format."""
        return _check_hhmm(v)


class SmsPreferences(ChannelSettings):
    enabled: bool = False
    phone_number: str | None = None
    verification_status: str = Field(
        default="unverified",
        pattern=r"^(unverified|pending|verified)$",
    )


class PushToken(BaseModel):
    """A device token registered for push delivery."""

    token: str = Field(..., min_length=1)
    platform: PushPlatform
    device: str | None = None
    last_used: datetime = Field(default_factory=lambda: datetime.now(UTC))
    active: bool = True


class PushPreferences(ChannelSettings):
    tokens: list[PushToken] = Field(default_factory=list)


class WebhookEndpoint(BaseModel):
    """A recipient-owned HTTP endpoint that receives webhook notifications."""

    url: str = Field(..., min_length=1, max_length=2048)
    secret: str | None = None
    description: str | None = None
    events: list[str] = Field(default_factory=list)
    active: bool = True


class WebhookPreferences(ChannelSettings):
    enabled: bool = False
    endpoints: list[WebhookEndpoint] = Field(default_factory=list)


class ChannelPreferences(BaseModel):
    """Per-channel sections of the preference document."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    in_app: InAppPreferences = Field(default_factory=InAppPreferences, alias="in-app")
    email: EmailPreferences = Field(default_factory=EmailPreferences)
    sms: SmsPreferences = Field(default_factory=SmsPreferences)
    push: PushPreferences = Field(default_factory=PushPreferences)
    webhook: WebhookPreferences = Field(default_factory=WebhookPreferences)

    def for_channel(self, channel: str) -> ChannelSettings | None:
        """Return the section for a channel type, or None if it has none."""
        attr = {
            ChannelType.IN_APP: "in_app",
            ChannelType.EMAIL: "email",
            ChannelType.SMS: "sms",
            ChannelType.PUSH: "push",
            ChannelType.WEBHOOK: "webhook",
        }.get(channel)
        return getattr(self, attr) if attr else None


# ============================================================================
# Overrides
# ============================================================================


class ChannelOverride(BaseModel):
    """Override for one channel. Unset fields mean "no opinion"."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool | None = None
    frequency: EmailFrequency | None = None


class PriorityOverride(BaseModel):
    """Category override that applies to one priority level."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool | None = None
    channels: dict[str, bool] = Field(default_factory=dict)


class NamedOverride(BaseModel):
    """A named entry (type or template) with optional channel overrides."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(..., min_length=1)
    enabled: bool = True
    channel_overrides: dict[str, ChannelOverride] = Field(
        default_factory=dict,
        alias="channelOverrides",
    )


class TypePreference(NamedOverride):
    pass


class TemplatePreference(NamedOverride):
    pass


class CategoryPreference(NamedOverride):
    priority_overrides: dict[Priority, PriorityOverride] = Field(
        default_factory=dict,
        alias="priorityOverrides",
    )


# ============================================================================
# Document
# ============================================================================


class PreferenceDocument(BaseModel):
    """Complete preference document of one recipient.

    Categories, types and templates are ordered lists; the first entry whose
    name matches is the one that applies.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    global_: GlobalPreferences = Field(default_factory=GlobalPreferences, alias="global")
    channels: ChannelPreferences = Field(default_factory=ChannelPreferences)
    categories: list[CategoryPreference] = Field(default_factory=list)
    types: list[TypePreference] = Field(default_factory=list)
    templates: list[TemplatePreference] = Field(default_factory=list)

    def find_category(self, name: str) -> CategoryPreference | None:
        return next((c for c in self.categories if c.name == name), None)

    def find_type(self, name: str) -> TypePreference | None:
        return next((t for t in self.types if t.name == name), None)

    def find_template(self, name: str | None) -> TemplatePreference | None:
        if name is None:
            return None
        return next((t for t in self.templates if t.name == name), None)

    def to_storage(self) -> dict:
        """Serialize with wire aliases, ready for the JSON columns."""
        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "CategoryPreference",
    "ChannelOverride",
    "ChannelPreferences",
    "ChannelSettings",
    "EmailPreferences",
    "GlobalPreferences",
    "InAppPreferences",
    "PreferenceDocument",
    "PriorityOverride",
    "PushPreferences",
    "PushToken",
    "QuietHours",
    "SmsPreferences",
    "TemplatePreference",
    "TypePreference",
    "WebhookEndpoint",
    "WebhookPreferences",
]
