"""Shipped channel senders and the sender registry.

The in-app sender needs no external delivery: the persisted record is the
notification. The webhook sender posts the rendered payload to every active
endpoint in the recipient's delivery settings. Email, SMS and push senders
are provider specific and registered by the deployment.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from notification_service.core.settings import get_webhook_settings
from notification_service.features.notifications.channels.base import (
    ChannelSender,
    ChannelTestResult,
    DeliveryResult,
)
from notification_service.features.notifications.channels.config import (
    WebhookChannelConfig,
    parse_channel_config,
)
from notification_service.features.notifications.enums import ChannelType
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from notification_service.core.settings import WebhookSettings
    from notification_service.features.notifications.models import NotificationChannel

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


class InAppSender:
    """Sender for in-app notifications (database-only).

    In-app notifications are displayed from the stored record, so delivery
    always succeeds.
    """

    async def send(
        self,
        content: dict[str, Any],
        settings: dict[str, Any],
        channel: NotificationChannel,
    ) -> DeliveryResult:
        """Accept the notification for in-app display."""
        lazy_logger.debug(lambda: f"in_app.send: channel={channel.name} title={content.get('title')!r}")
        return DeliveryResult(
            success=True,
            response_time_ms=0,
            metadata={
                "show_badge": settings.get("show_badge", True),
                "show_preview": settings.get("show_preview", True),
            },
        )


class WebhookSender:
    """HTTP sender for webhook notifications.

    Handles:
    - HMAC-SHA256 signature generation when the endpoint has a secret
    - Channel default headers and authentication
    - Timeout and error handling per endpoint
    """

    def __init__(
        self,
        settings: WebhookSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize webhook sender.

        Args:
            settings: Webhook settings (defaults to cached settings)
            client: Optional shared HTTP client; a client per send is used otherwise
        """
        self.settings = settings or get_webhook_settings()
        self._client = client

    def _generate_signature(self, secret: str, timestamp: str, payload: str) -> str:
        """Generate HMAC-SHA256 signature over ``timestamp.payload``."""
        message = f"{timestamp}.{payload}"
        return hmac.new(
            secret.encode("utf-8"),
            message.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def _base_headers(self, config: WebhookChannelConfig) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "notification-service/1.0",
            **config.default_headers,
        }
        auth = config.auth
        if auth.type == "bearer" and auth.token:
            headers["Authorization"] = f"Bearer {auth.token}"
        elif auth.type == "basic" and auth.username:
            credentials = f"{auth.username}:{auth.password or ''}".encode()
            headers["Authorization"] = f"Basic {base64.b64encode(credentials).decode('ascii')}"
        return headers

    async def _post(
        self,
        client: httpx.AsyncClient,
        url: str,
        body: str,
        headers: dict[str, str],
    ) -> DeliveryResult:
        start_time = time.time()
        try:
            response = await client.post(url, content=body, headers=headers)
        except httpx.TimeoutException:
            logger.warning("Webhook delivery timeout", extra={"url": url, "operation": "webhook.send"})
            return DeliveryResult(
                success=False,
                response_time_ms=_elapsed_ms(start_time),
                error_message=f"Request timeout after {self.settings.timeout_seconds}s",
                error_category="timeout",
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Webhook delivery network error",
                extra={"url": url, "error": str(exc), "operation": "webhook.send"},
            )
            return DeliveryResult(
                success=False,
                response_time_ms=_elapsed_ms(start_time),
                error_message=str(exc),
                error_category="network",
            )

        success = 200 <= response.status_code < 300
        return DeliveryResult(
            success=success,
            status_code=response.status_code,
            response_time_ms=_elapsed_ms(start_time),
            error_message=None if success else f"HTTP {response.status_code}",
            error_category=None if success else "http",
        )

    async def send(
        self,
        content: dict[str, Any],
        settings: dict[str, Any],
        channel: NotificationChannel,
    ) -> DeliveryResult:
        """Post the rendered payload to every active endpoint.

        Delivery succeeds only if every endpoint answers with a 2xx status.

        Args:
            content: Rendered webhook content (``payload`` key)
            settings: Recipient delivery settings (``endpoints`` key)
            channel: Webhook channel supplying headers and auth

        Returns:
            DeliveryResult aggregated over all endpoints
        """
        endpoints = settings.get("endpoints") or []
        if not endpoints:
            return DeliveryResult(
                success=False,
                error_message="No active webhook endpoints",
                error_category="configuration",
            )

        config = parse_channel_config(ChannelType.WEBHOOK, channel.config)
        body = json.dumps(content.get("payload", content), separators=(",", ":"), default=str)
        timestamp = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        start_time = time.time()

        client = self._client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                self.settings.timeout_seconds,
                connect=self.settings.connect_timeout_seconds,
            )
        )
        results: list[tuple[str, DeliveryResult]] = []
        try:
            for endpoint in endpoints:
                headers = self._base_headers(config)
                headers["X-Notification-Timestamp"] = timestamp
                secret = endpoint.get("secret")
                if secret and self.settings.enable_signature:
                    headers[self.settings.signature_header] = self._generate_signature(
                        secret, timestamp, body
                    )
                lazy_logger.debug(lambda: f"webhook.send: url={endpoint['url']} bytes={len(body)}")
                results.append((endpoint["url"], await self._post(client, endpoint["url"], body, headers)))
        finally:
            if self._client is None:
                await client.aclose()

        failures = [(url, r) for url, r in results if not r.success]
        if failures:
            url, first = failures[0]
            return DeliveryResult(
                success=False,
                status_code=first.status_code,
                response_time_ms=_elapsed_ms(start_time),
                error_message=f"{len(failures)}/{len(results)} endpoints failed; {url}: {first.error_message}",
                error_category=first.error_category,
                metadata={"endpoints": len(results), "failed": len(failures)},
            )

        logger.info(
            "Webhook notification delivered",
            extra={"channel": channel.name, "endpoints": len(results), "operation": "webhook.send"},
        )
        return DeliveryResult(
            success=True,
            status_code=results[-1][1].status_code,
            response_time_ms=_elapsed_ms(start_time),
            metadata={"endpoints": len(results)},
        )


class SenderRegistry:
    """Maps channel types to sender capabilities.

    Example:
        registry = SenderRegistry()
        registry.register("email", SesEmailSender(...))
        sender = registry.get("email")
    """

    def __init__(self, senders: dict[str, ChannelSender] | None = None) -> None:
        self._senders: dict[str, ChannelSender] = dict(senders or {})

    def register(self, channel_type: str, sender: ChannelSender) -> None:
        self._senders[str(channel_type)] = sender

    def get(self, channel_type: str) -> ChannelSender | None:
        return self._senders.get(str(channel_type))

    def __contains__(self, channel_type: object) -> bool:
        return str(channel_type) in self._senders

    async def check_channel(self, channel: NotificationChannel) -> ChannelTestResult:
        """Default channel test: the type must have a registered sender."""
        if channel.type in self:
            return ChannelTestResult(True, f"Sender available for '{channel.type}'")
        return ChannelTestResult(False, f"No sender registered for channel type '{channel.type}'")


def default_sender_registry() -> SenderRegistry:
    """Registry with the senders that ship with the service."""
    return SenderRegistry(
        {
            ChannelType.IN_APP: InAppSender(),
            ChannelType.WEBHOOK: WebhookSender(),
        }
    )


_sender_registry: SenderRegistry | None = None


def get_sender_registry() -> SenderRegistry:
    """Get the process-wide sender registry."""
    global _sender_registry
    if _sender_registry is None:
        _sender_registry = default_sender_registry()
    return _sender_registry


__all__ = [
    "InAppSender",
    "SenderRegistry",
    "WebhookSender",
    "default_sender_registry",
    "get_sender_registry",
]
