"""Delivery channels.

Provides:
- ChannelRegistry: configured channels, default resolution, statistics, testing
- Typed provider config per channel kind
- Sender capabilities (in-app, webhook) behind the ChannelSender protocol
- Fixed-window per-channel rate limiting
"""

from __future__ import annotations

from notification_service.features.notifications.channels.base import (
    ChannelSender,
    ChannelTester,
    ChannelTestResult,
    DeliveryResult,
)
from notification_service.features.notifications.channels.rate_limit import (
    FixedWindowRateLimiter,
    get_rate_limiter,
)
from notification_service.features.notifications.channels.registry import (
    ChannelRegistry,
    get_channel_registry,
)
from notification_service.features.notifications.channels.senders import (
    InAppSender,
    SenderRegistry,
    WebhookSender,
    get_sender_registry,
)

__all__ = [
    "ChannelRegistry",
    "ChannelSender",
    "ChannelTestResult",
    "ChannelTester",
    "DeliveryResult",
    "FixedWindowRateLimiter",
    "InAppSender",
    "SenderRegistry",
    "WebhookSender",
    "get_channel_registry",
    "get_rate_limiter",
    "get_sender_registry",
]
