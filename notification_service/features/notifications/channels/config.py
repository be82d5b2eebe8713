"""Provider configuration per channel kind.

Each channel type owns one config variant. The stored JSON carries a ``kind``
field equal to the channel type, which pydantic uses to pick the variant.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

# ============================================================================
# Email
# ============================================================================


class SmtpSettings(BaseModel):
    host: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)
    secure: bool = True
    username: str | None = None
    password: str | None = None


class EmailChannelConfig(BaseModel):
    """Email provider settings."""

    model_config = ConfigDict(extra="ignore")

    kind: Literal["email"] = "email"
    provider: Literal["smtp", "sendgrid", "mailgun", "ses", "custom"] = "smtp"
    smtp: SmtpSettings | None = None
    api_key: str | None = Field(default=None, description="SendGrid/Mailgun API key")
    domain: str | None = Field(default=None, description="Mailgun sending domain")
    region: str = Field(default="us-east-1", description="AWS region for SES")
    default_from: str | None = None
    default_reply_to: str | None = None


# ============================================================================
# SMS
# ============================================================================


class SmsChannelConfig(BaseModel):
    """SMS provider settings."""

    model_config = ConfigDict(extra="ignore")

    kind: Literal["sms"] = "sms"
    provider: Literal["twilio", "sns", "nexmo", "custom"] = "twilio"
    account_sid: str | None = None
    auth_token: str | None = None
    from_number: str | None = None
    region: str = "us-east-1"


# ============================================================================
# Push
# ============================================================================


class PushChannelConfig(BaseModel):
    """Push provider settings."""

    model_config = ConfigDict(extra="ignore")

    kind: Literal["push"] = "push"
    provider: Literal["fcm", "apns", "web-push", "custom"] = "fcm"
    credentials: dict[str, Any] = Field(
        default_factory=dict,
        description="Provider credentials (service account, key id, VAPID keys)",
    )
    production: bool = True


# ============================================================================
# Webhook
# ============================================================================


class WebhookAuth(BaseModel):
    type: Literal["none", "basic", "bearer", "custom"] = "none"
    username: str | None = None
    password: str | None = None
    token: str | None = None


class WebhookRetry(BaseModel):
    enabled: bool = True
    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_factor: float = Field(default=2.0, ge=1.0)
    initial_delay_ms: int = Field(default=1000, ge=0)


class WebhookChannelConfig(BaseModel):
    """Settings shared by every webhook request sent through the channel."""

    model_config = ConfigDict(extra="ignore")

    kind: Literal["webhook"] = "webhook"
    default_headers: dict[str, str] = Field(default_factory=dict)
    auth: WebhookAuth = Field(default_factory=WebhookAuth)
    retry: WebhookRetry = Field(default_factory=WebhookRetry)


# ============================================================================
# In-app and custom
# ============================================================================


class InAppChannelConfig(BaseModel):
    """In-app storage and realtime settings."""

    model_config = ConfigDict(extra="ignore")

    kind: Literal["in-app"] = "in-app"
    storage: Literal["database", "redis", "custom"] = "database"
    realtime_enabled: bool = False
    realtime_provider: str | None = None


class CustomChannelConfig(BaseModel):
    """Free-form config handed to a deployment-provided sender."""

    model_config = ConfigDict(extra="ignore")

    kind: Literal["custom"] = "custom"
    handler: str | None = Field(default=None, description="Name of the sender that handles it")
    options: dict[str, Any] = Field(default_factory=dict)


ChannelConfig = Annotated[
    EmailChannelConfig
    | SmsChannelConfig
    | PushChannelConfig
    | WebhookChannelConfig
    | InAppChannelConfig
    | CustomChannelConfig,
    Field(discriminator="kind"),
]

_channel_config_adapter: TypeAdapter[ChannelConfig] = TypeAdapter(ChannelConfig)


def parse_channel_config(channel_type: str, raw: dict[str, Any] | None) -> ChannelConfig:
    """Validate stored config against the variant for ``channel_type``.

    Raises:
        pydantic.ValidationError: If the config does not match the channel type.
    """
    data = {**(raw or {}), "kind": channel_type}
    return _channel_config_adapter.validate_python(data)


__all__ = [
    "ChannelConfig",
    "CustomChannelConfig",
    "EmailChannelConfig",
    "InAppChannelConfig",
    "PushChannelConfig",
    "SmsChannelConfig",
    "WebhookChannelConfig",
    "parse_channel_config",
]
