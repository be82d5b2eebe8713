"""Channel registry: configured channels, default resolution and statistics."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from notification_service.core.database import as_utc
from notification_service.core.exceptions import ConflictError, NotFoundError, ValidationError
from notification_service.core.services import BaseService
from notification_service.features.notifications.channels.config import (
    ChannelConfig,
    parse_channel_config,
)
from notification_service.features.notifications.channels.senders import get_sender_registry
from notification_service.features.notifications.enums import ChannelStatus, DeliveryOutcome
from notification_service.features.notifications.models import DEFAULT_TAG, NotificationChannel
from notification_service.features.notifications.repository import (
    ChannelRepository,
    get_channel_repository,
)
from notification_service.features.notifications.schemas import (
    ChannelCreate,
    ChannelStats,
    ChannelTestResponse,
    ChannelUpdate,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.features.notifications.channels.base import ChannelTester

_STAT_COLUMNS = {
    DeliveryOutcome.SENT: "sent_count",
    DeliveryOutcome.DELIVERED: "delivered_count",
    DeliveryOutcome.FAILED: "failed_count",
}


def _validated_config(channel_type: str, raw: dict) -> dict:
    try:
        config = parse_channel_config(channel_type, raw)
    except PydanticValidationError as exc:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        ]
        raise ValidationError(
            detail=f"Invalid config for channel type '{channel_type}'",
            type="invalid-channel-config",
            extra={"errors": errors},
        ) from exc
    return config.model_dump(mode="json", exclude={"kind"})


class ChannelRegistry(BaseService):
    """Service for configured delivery channels.

    Provides:
    - Channel CRUD with per-type config validation
    - Default channel resolution per type
    - Delivery statistics
    - Channel testing through an injected capability
    """

    def __init__(
        self,
        repository: ChannelRepository | None = None,
        tester: ChannelTester | None = None,
    ) -> None:
        """Initialize with repository and tester.

        Args:
            repository: Optional repository (defaults to singleton)
            tester: Capability used by ``test`` (defaults to checking that a
                sender is registered for the channel type)
        """
        super().__init__()
        self._repository = repository or get_channel_repository()
        self._tester: ChannelTester = tester or get_sender_registry().check_channel

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def find_active_by_type(
        self,
        session: AsyncSession,
        channel_type: str,
    ) -> Sequence[NotificationChannel]:
        """All active channels of a type, in creation order."""
        return await self._repository.find_active_by_type(session, channel_type)

    async def find_default_by_type(
        self,
        session: AsyncSession,
        channel_type: str,
    ) -> NotificationChannel | None:
        """Resolve the channel to use for a type.

        The first active channel tagged ``default`` wins; otherwise the first
        active channel in creation order. A tagged but inactive channel is
        never returned.

        Returns:
            Channel, or None when no active channel of the type exists
        """
        active = await self._repository.find_active_by_type(session, channel_type)
        channel = next((c for c in active if c.is_default), None)
        if channel is None and active:
            channel = active[0]

        self._lazy.debug(
            lambda: f"registry.find_default_by_type({channel_type}) -> "
            f"{channel.name if channel else None} (of {len(active)} active)"
        )
        return channel

    def get_config(self, channel: NotificationChannel) -> ChannelConfig:
        """Provider config of the channel, typed by its channel type."""
        return parse_channel_config(channel.type, channel.config)

    async def get_channel(self, session: AsyncSession, channel_id: UUID) -> NotificationChannel:
        """Get a channel by id.

        Raises:
            NotFoundError: If the channel does not exist
        """
        channel = await self._repository.get(session, channel_id)
        if channel is None:
            raise NotFoundError(
                detail=f"Channel {channel_id} not found",
                type="channel-not-found",
                extra={"channel_id": str(channel_id)},
            )
        return channel

    async def get_channel_by_name(self, session: AsyncSession, name: str) -> NotificationChannel:
        """Get a channel by its unique name.

        Raises:
            NotFoundError: If the channel does not exist
        """
        channel = await self._repository.get_by_name(session, name)
        if channel is None:
            raise NotFoundError(
                detail=f"Channel '{name}' not found",
                type="channel-not-found",
                extra={"name": name},
            )
        return channel

    async def list_channels(
        self,
        session: AsyncSession,
        *,
        channel_type: str | None = None,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[NotificationChannel]:
        return await self._repository.list_filtered(
            session,
            channel_type=channel_type,
            status=status,
            limit=limit,
            offset=offset,
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def create_channel(self, session: AsyncSession, data: ChannelCreate) -> NotificationChannel:
        """Create a channel after validating its provider config.

        Raises:
            ConflictError: If the name is taken
            ValidationError: If the config does not match the channel type
        """
        if await self._repository.get_by_name(session, data.name) is not None:
            raise ConflictError(
                detail=f"Channel '{data.name}' already exists",
                type="channel-name-conflict",
                extra={"name": data.name},
            )

        channel = NotificationChannel(
            name=data.name,
            display_name=data.display_name,
            description=data.description,
            type=str(data.type),
            config=_validated_config(data.type, data.config),
            status=str(data.status),
            supports_templates=data.capabilities.supports_templates,
            supports_attachments=data.capabilities.supports_attachments,
            supports_bulk_send=data.capabilities.supports_bulk_send,
            supports_scheduling=data.capabilities.supports_scheduling,
            supports_tracking=data.capabilities.supports_tracking,
            rate_limit_enabled=data.rate_limit.enabled,
            rate_limit=data.rate_limit.limit,
            rate_limit_window_seconds=data.rate_limit.window_seconds,
            tags=list(dict.fromkeys(data.tags)),
        )
        channel = await self._repository.create(session, channel)

        self.logger.info(
            "Channel created",
            extra={"channel_id": str(channel.id), "channel": channel.name, "type": channel.type},
        )
        return channel

    async def update_channel(
        self,
        session: AsyncSession,
        channel_id: UUID,
        data: ChannelUpdate,
    ) -> NotificationChannel:
        """Apply a partial update to a channel."""
        channel = await self.get_channel(session, channel_id)
        changes = data.model_dump(exclude_unset=True)

        for field in ("display_name", "description"):
            if field in changes:
                setattr(channel, field, changes[field])
        if data.config is not None:
            channel.config = _validated_config(channel.type, data.config)
        if data.status is not None:
            channel.status = str(data.status)
        if data.capabilities is not None:
            for field, value in data.capabilities.model_dump().items():
                setattr(channel, field, value)
        if data.rate_limit is not None:
            channel.rate_limit_enabled = data.rate_limit.enabled
            channel.rate_limit = data.rate_limit.limit
            channel.rate_limit_window_seconds = data.rate_limit.window_seconds
        if data.tags is not None:
            channel.tags = list(dict.fromkeys(data.tags))

        channel = await self._repository.save(session, channel)
        self.logger.info(
            "Channel updated",
            extra={"channel_id": str(channel.id), "fields": sorted(changes)},
        )
        return channel

    async def set_as_default(self, session: AsyncSession, channel_id: UUID) -> NotificationChannel:
        """Make a channel the default of its type.

        Removes the ``default`` tag from every other channel of the same type.
        """
        channel = await self.get_channel(session, channel_id)
        for other in await self._repository.list_other_defaults(session, channel):
            other.tags = [t for t in other.tags if t != DEFAULT_TAG]
        if DEFAULT_TAG not in channel.tags:
            channel.tags = [*channel.tags, DEFAULT_TAG]

        channel = await self._repository.save(session, channel)
        self.logger.info(
            "Channel set as default",
            extra={"channel_id": str(channel.id), "channel": channel.name, "type": channel.type},
        )
        return channel

    async def update_delivery_stats(
        self,
        session: AsyncSession,
        channel: NotificationChannel,
        outcome: str,
        *,
        now: datetime | None = None,
    ) -> None:
        """Increment the counter for a delivery outcome.

        ``sent`` also stamps ``last_sent_at``.

        Raises:
            ValueError: If ``outcome`` is not sent, delivered or failed
        """
        try:
            key = DeliveryOutcome(outcome)
        except ValueError:
            msg = f"Unknown delivery outcome: {outcome!r}"
            raise ValueError(msg) from None

        sent_at = (now or datetime.now(UTC)) if key is DeliveryOutcome.SENT else None
        await self._repository.increment_stat(session, channel.id, _STAT_COLUMNS[key], sent_at=sent_at)
        self._lazy.debug(lambda: f"registry.update_delivery_stats({channel.name}, {key})")

    async def get_stats(self, session: AsyncSession, channel_id: UUID) -> ChannelStats:
        """Delivery statistics of a channel.

        ``success_rate`` is the percentage of sent-or-failed attempts that
        were not failures (100.0 when nothing was attempted).
        """
        channel = await self.get_channel(session, channel_id)
        await session.refresh(channel)
        attempts = channel.sent_count + channel.failed_count
        success_rate = 100.0 if attempts == 0 else round(channel.sent_count / attempts * 100, 2)
        return ChannelStats(
            sent=channel.sent_count,
            delivered=channel.delivered_count,
            failed=channel.failed_count,
            success_rate=success_rate,
            last_sent_at=as_utc(channel.last_sent_at),
        )

    async def test(self, session: AsyncSession, channel: NotificationChannel) -> ChannelTestResponse:
        """Exercise the channel and persist the resulting status.

        Success sets ``active`` and clears the error; failure (a negative
        result or an exception from the tester) sets ``error`` and stores the
        message.
        """
        now = datetime.now(UTC)
        try:
            result = await self._tester(channel)
            success, message = result.success, result.message
        except Exception as exc:  # noqa: BLE001
            success, message = False, str(exc) or exc.__class__.__name__

        channel.last_tested_at = now
        if success:
            channel.status = ChannelStatus.ACTIVE
            channel.error_message = None
            self.logger.info("Channel test passed", extra={"channel": channel.name})
        else:
            channel.status = ChannelStatus.ERROR
            channel.error_message = message
            self.logger.warning(
                "Channel test failed",
                extra={"channel": channel.name, "error": message},
            )
        await self._repository.save(session, channel)

        return ChannelTestResponse(success=success, message=message, timestamp=now)


_channel_registry: ChannelRegistry | None = None


def get_channel_registry() -> ChannelRegistry:
    """Get ChannelRegistry singleton instance."""
    global _channel_registry
    if _channel_registry is None:
        _channel_registry = ChannelRegistry()
    return _channel_registry


__all__ = ["ChannelRegistry", "get_channel_registry"]
