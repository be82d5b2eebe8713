"""Webhook delivery configuration settings.

Provides settings for the HTTP webhook sender: timeouts and request signing.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WebhookSettings(BaseSettings):
    """Configuration for webhook delivery.

    Controls HTTP timeouts and HMAC signing for outbound webhook notifications.
    """

    # HTTP delivery settings
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Timeout for webhook HTTP requests (seconds)",
    )
    connect_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Connection timeout for webhook HTTP requests (seconds)",
    )

    # Signing
    enable_signature: bool = Field(
        default=True,
        description="Include HMAC signature in webhook requests when the endpoint has a secret",
    )
    signature_header: str = Field(
        default="X-Notification-Signature",
        min_length=1,
        description="Header carrying the hex HMAC-SHA256 of the request body",
    )

    model_config = SettingsConfigDict(
        env_prefix="WEBHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )


__all__ = ["WebhookSettings"]
