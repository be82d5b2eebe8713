"""Notification delivery engine settings.

Environment variables use NOTIFICATION_ prefix.
Example: NOTIFICATION_DISPATCH_TIMEOUT_SECONDS=5, NOTIFICATION_BATCH_CONCURRENCY=20
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotificationSettings(BaseSettings):
    """Configuration for notification intake, dispatch and sweeps."""

    default_channel: Literal["email", "sms", "push", "webhook", "in-app", "custom"] = Field(
        default="in-app",
        description="Channel used when a request does not name one",
    )

    # Dispatch
    dispatch_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=300.0,
        description="Upper bound for a single channel sender call (seconds)",
    )
    batch_concurrency: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Maximum number of batch items processed concurrently",
    )

    # Sweeps
    scheduled_batch_limit: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Default number of due scheduled notifications claimed per sweep",
    )
    expired_batch_limit: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Default number of expired notifications archived per sweep",
    )

    # Rate limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Honour per-channel rate limits before dispatch",
    )

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )


__all__ = ["NotificationSettings"]
