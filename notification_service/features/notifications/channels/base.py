"""Base protocols and types for channel senders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from notification_service.features.notifications.models import NotificationChannel


@dataclass
class DeliveryResult:
    """Result of a channel delivery attempt.

    Attributes:
        success: Whether delivery succeeded
        provider_ref: Identifier assigned by the provider, if any
        status_code: HTTP status code (webhook) or None
        response_time_ms: Time taken for delivery in milliseconds
        error_message: Error description if failed
        error_category: Error classification (network, timeout, http, ...)
        metadata: Channel-specific metadata
    """

    success: bool
    provider_ref: str | None = None
    status_code: int | None = None
    response_time_ms: int | None = None
    error_message: str | None = None
    error_category: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChannelTestResult:
    """Outcome of exercising a channel's capability."""

    success: bool
    message: str


class ChannelSender(Protocol):
    """Capability that delivers rendered content for one channel type.

    Senders report provider failures through ``DeliveryResult.success`` and
    never embed preference logic.
    """

    async def send(
        self,
        content: dict[str, Any],
        settings: dict[str, Any],
        channel: NotificationChannel,
    ) -> DeliveryResult:
        """Deliver rendered content.

        Args:
            content: Channel-specific rendered content
            settings: Recipient delivery settings for the channel type
            channel: Configured channel handling the delivery

        Returns:
            DeliveryResult with status and metadata
        """
        ...


class ChannelTester(Protocol):
    """Capability that checks whether a configured channel is usable."""

    async def __call__(self, channel: NotificationChannel) -> ChannelTestResult:
        ...


__all__ = ["ChannelSender", "ChannelTestResult", "ChannelTester", "DeliveryResult"]
