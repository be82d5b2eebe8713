"""Repositories for the notifications feature."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, or_, select, update

from notification_service.core.database import BaseRepository
from notification_service.features.notifications.enums import (
    ARCHIVABLE_STATUSES,
    ChannelStatus,
    NotificationStatus,
)
from notification_service.features.notifications.models import (
    DEFAULT_TAG,
    Notification,
    NotificationChannel,
    NotificationPreference,
    NotificationTemplate,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession


class PreferenceRepository(BaseRepository[NotificationPreference]):
    """Repository for NotificationPreference model."""

    def __init__(self) -> None:
        """Initialize with NotificationPreference model."""
        super().__init__(NotificationPreference)

    async def get_for_recipient(
        self,
        session: AsyncSession,
        recipient_id: str,
        *,
        for_update: bool = False,
    ) -> NotificationPreference | None:
        """Get the preference row of a recipient.

        Args:
            session: Database session
            recipient_id: Recipient identifier
            for_update: Lock the row for a read-modify-write (no-op on SQLite)

        Returns:
            Preference row if the recipient saved preferences, None otherwise
        """
        stmt = select(NotificationPreference).where(
            NotificationPreference.recipient_id == recipient_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        pref = result.scalar_one_or_none()

        self._lazy.debug(lambda: f"db.get_for_recipient({recipient_id=}, {for_update=}) -> {pref is not None}")
        return pref


class ChannelRepository(BaseRepository[NotificationChannel]):
    """Repository for NotificationChannel model.

    Ordering is always creation order (UUIDv7 ids are time-sortable), which
    makes the default channel fallback deterministic.
    """

    def __init__(self) -> None:
        """Initialize with NotificationChannel model."""
        super().__init__(NotificationChannel)

    async def get_by_name(self, session: AsyncSession, name: str) -> NotificationChannel | None:
        return await self.get_by(session, NotificationChannel.name, name)

    async def list_filtered(
        self,
        session: AsyncSession,
        *,
        channel_type: str | None = None,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[NotificationChannel]:
        """List channels filtered by type and status, in creation order."""
        stmt = select(NotificationChannel)
        if channel_type:
            stmt = stmt.where(NotificationChannel.type == channel_type)
        if status:
            stmt = stmt.where(NotificationChannel.status == status)
        stmt = stmt.order_by(NotificationChannel.created_at, NotificationChannel.id)
        stmt = stmt.limit(limit).offset(offset)

        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.list_channels({channel_type=}, {status=}) -> {len(items)} channels")
        return items

    async def find_active_by_type(
        self,
        session: AsyncSession,
        channel_type: str,
    ) -> Sequence[NotificationChannel]:
        """All active channels of a type, in creation order."""
        stmt = (
            select(NotificationChannel)
            .where(
                and_(
                    NotificationChannel.type == channel_type,
                    NotificationChannel.status == ChannelStatus.ACTIVE,
                ),
            )
            .order_by(NotificationChannel.created_at, NotificationChannel.id)
        )
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.find_active_by_type({channel_type=}) -> {len(items)} channels")
        return items

    async def list_other_defaults(
        self,
        session: AsyncSession,
        channel: NotificationChannel,
    ) -> list[NotificationChannel]:
        """Channels of the same type, other than ``channel``, tagged default."""
        stmt = select(NotificationChannel).where(
            and_(
                NotificationChannel.type == channel.type,
                NotificationChannel.id != channel.id,
            ),
        )
        result = await session.execute(stmt)
        # Tags are an ARRAY on PostgreSQL but JSON text on SQLite; filter in Python
        return [c for c in result.scalars().all() if DEFAULT_TAG in c.tags]

    async def increment_stat(
        self,
        session: AsyncSession,
        channel_id: UUID,
        column: str,
        *,
        sent_at: datetime | None = None,
    ) -> None:
        """Atomically increment one delivery counter.

        Args:
            session: Database session
            channel_id: Channel UUID
            column: Counter column (sent_count, delivered_count, failed_count)
            sent_at: Also stamp ``last_sent_at`` when given
        """
        counter = getattr(NotificationChannel, column)
        values: dict[str, Any] = {column: counter + 1}
        if sent_at is not None:
            values["last_sent_at"] = sent_at
        stmt = (
            update(NotificationChannel)
            .where(NotificationChannel.id == channel_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await session.execute(stmt)
        self._lazy.debug(lambda: f"db.increment_stat({channel_id}, {column})")


class TemplateRepository(BaseRepository[NotificationTemplate]):
    """Repository for NotificationTemplate model.

    Versions of a template share a name; "latest" means the highest active
    version.
    """

    def __init__(self) -> None:
        """Initialize with NotificationTemplate model."""
        super().__init__(NotificationTemplate)

    async def get_latest(self, session: AsyncSession, name: str) -> NotificationTemplate | None:
        """Get the highest active version of a template."""
        stmt = (
            select(NotificationTemplate)
            .where(
                and_(
                    NotificationTemplate.name == name,
                    NotificationTemplate.is_active.is_(True),
                ),
            )
            .order_by(NotificationTemplate.version.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        template = result.scalar_one_or_none()

        self._lazy.debug(
            lambda: f"db.get_latest({name=}) -> {f'v{template.version}' if template else 'not found'}"
        )
        return template

    async def get_version(
        self,
        session: AsyncSession,
        name: str,
        version: int,
    ) -> NotificationTemplate | None:
        """Get a specific version of a template, active or not."""
        stmt = select(NotificationTemplate).where(
            and_(
                NotificationTemplate.name == name,
                NotificationTemplate.version == version,
            ),
        )
        result = await session.execute(stmt)
        template = result.scalar_one_or_none()

        self._lazy.debug(lambda: f"db.get_version({name=}, {version=}) -> {template is not None}")
        return template

    async def max_version(self, session: AsyncSession, name: str) -> int:
        """Highest version number stored for a name (0 if none)."""
        stmt = select(func.max(NotificationTemplate.version)).where(NotificationTemplate.name == name)
        result = await session.execute(stmt)
        return result.scalar() or 0

    async def has_active(self, session: AsyncSession, name: str) -> bool:
        """Whether any active version of ``name`` exists."""
        stmt = select(func.count()).where(
            and_(
                NotificationTemplate.name == name,
                NotificationTemplate.is_active.is_(True),
            ),
        )
        result = await session.execute(stmt)
        return (result.scalar() or 0) > 0

    async def list_templates(
        self,
        session: AsyncSession,
        *,
        active_only: bool = True,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[NotificationTemplate]:
        """List templates ordered by name, newest version first."""
        stmt = select(NotificationTemplate)
        if active_only:
            stmt = stmt.where(NotificationTemplate.is_active.is_(True))
        stmt = stmt.order_by(NotificationTemplate.name, NotificationTemplate.version.desc())
        stmt = stmt.limit(limit).offset(offset)

        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.list_templates({active_only=}) -> {len(items)} templates")
        return items


class NotificationRepository(BaseRepository[Notification]):
    """Repository for Notification model.

    Besides listings, provides the two atomic primitives the sweeps rely on:
    claiming due scheduled records and archiving expired ones.
    """

    def __init__(self) -> None:
        """Initialize with Notification model."""
        super().__init__(Notification)

    async def claim_due_scheduled(
        self,
        session: AsyncSession,
        claim_token: str,
        *,
        limit: int = 100,
        now: datetime | None = None,
    ) -> Sequence[Notification]:
        """Atomically claim due scheduled notifications.

        One conditional UPDATE moves up to ``limit`` due, unexpired records
        from ``scheduled`` to ``in_progress`` and stamps them with
        ``claim_token``. A record another sweep claimed first no longer matches
        ``status = 'scheduled'`` and is skipped.

        Args:
            session: Database session
            claim_token: Unique token of this sweep run
            limit: Max records to claim
            now: Reference time (defaults to current UTC time)

        Returns:
            Records claimed by this call, oldest schedule first
        """
        now = now or datetime.now(UTC)
        due_ids = (
            select(Notification.id)
            .where(
                and_(
                    Notification.status == NotificationStatus.SCHEDULED,
                    Notification.scheduled_for.is_not(None),
                    Notification.scheduled_for <= now,
                    or_(Notification.expires_at.is_(None), Notification.expires_at > now),
                ),
            )
            .order_by(Notification.scheduled_for.asc())
            .limit(limit)
        )
        stmt = (
            update(Notification)
            .where(
                and_(
                    Notification.id.in_(due_ids.scalar_subquery()),
                    Notification.status == NotificationStatus.SCHEDULED,
                ),
            )
            .values(
                status=NotificationStatus.IN_PROGRESS,
                claim_token=claim_token,
                claimed_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await session.execute(stmt)

        result = await session.execute(
            select(Notification)
            .where(Notification.claim_token == claim_token)
            .order_by(Notification.scheduled_for.asc())
            .execution_options(populate_existing=True)
        )
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.claim_due_scheduled({claim_token=}, {limit=}) -> {len(items)} claimed")
        return items

    async def find_expired_candidates(
        self,
        session: AsyncSession,
        *,
        limit: int = 100,
        now: datetime | None = None,
    ) -> Sequence[UUID]:
        """Ids of archivable records whose expiry has passed."""
        now = now or datetime.now(UTC)
        stmt = (
            select(Notification.id)
            .where(
                and_(
                    Notification.status.in_(ARCHIVABLE_STATUSES),
                    Notification.expires_at.is_not(None),
                    Notification.expires_at <= now,
                ),
            )
            .order_by(Notification.expires_at.asc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        ids = result.scalars().all()

        self._lazy.debug(lambda: f"db.find_expired_candidates({limit=}) -> {len(ids)} candidates")
        return ids

    async def archive(
        self,
        session: AsyncSession,
        notification_id: UUID,
        *,
        now: datetime | None = None,
    ) -> bool:
        """Conditionally archive one record.

        Returns:
            True if this call archived it, False if it was no longer archivable
        """
        now = now or datetime.now(UTC)
        stmt = (
            update(Notification)
            .where(
                and_(
                    Notification.id == notification_id,
                    Notification.status.in_(ARCHIVABLE_STATUSES),
                ),
            )
            .values(status=NotificationStatus.ARCHIVED, archived_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        archived = result.rowcount == 1

        self._lazy.debug(lambda: f"db.archive({notification_id}) -> {archived}")
        return archived

    async def fail_claimed(
        self,
        session: AsyncSession,
        notification_id: UUID,
        claim_token: str,
        error: str,
        *,
        now: datetime | None = None,
    ) -> bool:
        """Move a claimed record that could not be processed to ``failed``.

        Matches only while the record is still ``in_progress`` under
        ``claim_token``, so a record that already reached a terminal status
        is left alone.

        Returns:
            True if the record was marked failed
        """
        now = now or datetime.now(UTC)
        stmt = (
            update(Notification)
            .where(
                and_(
                    Notification.id == notification_id,
                    Notification.status == NotificationStatus.IN_PROGRESS,
                    Notification.claim_token == claim_token,
                ),
            )
            .values(status=NotificationStatus.FAILED, failed_at=now, error_message=error)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        failed = result.rowcount == 1

        self._lazy.debug(lambda: f"db.fail_claimed({notification_id}, {claim_token=}) -> {failed}")
        return failed

    async def list_for_recipient(
        self,
        session: AsyncSession,
        recipient_id: str,
        *,
        unread_only: bool = False,
        category: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[Notification], int]:
        """List a recipient's non-archived notifications, newest first.

        Returns:
            Tuple of (notifications, total_count)
        """
        stmt = select(Notification).where(
            and_(
                Notification.recipient_id == recipient_id,
                Notification.status != NotificationStatus.ARCHIVED,
            ),
        )
        if category:
            stmt = stmt.where(Notification.category == category)
        if unread_only:
            stmt = stmt.where(Notification.read_at.is_(None))

        count_stmt = select(func.count()).select_from(stmt.subquery())
        count_result = await session.execute(count_stmt)
        total = count_result.scalar() or 0

        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit).offset(offset)
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.list_for_recipient({recipient_id=}) -> {len(items)}/{total} notifications")
        return items, total

    async def count_unread(
        self,
        session: AsyncSession,
        recipient_id: str,
        category: str | None = None,
    ) -> int:
        """Count a recipient's unread, non-archived notifications."""
        stmt = select(func.count()).where(
            and_(
                Notification.recipient_id == recipient_id,
                Notification.read_at.is_(None),
                Notification.status != NotificationStatus.ARCHIVED,
            ),
        )
        if category:
            stmt = stmt.where(Notification.category == category)

        result = await session.execute(stmt)
        count = result.scalar() or 0

        self._lazy.debug(lambda: f"db.count_unread({recipient_id=}) -> {count}")
        return count

    async def mark_as_read(
        self,
        session: AsyncSession,
        notification_id: UUID,
        recipient_id: str,
    ) -> Notification | None:
        """Mark one of the recipient's notifications as read.

        Returns:
            Updated notification, or None if it does not belong to the recipient
        """
        notification = await self.get(session, notification_id)
        if notification is None or notification.recipient_id != recipient_id:
            return None
        if notification.read_at is None:
            notification.read_at = datetime.now(UTC)
            await session.flush()
        self._lazy.debug(lambda: f"db.mark_as_read({notification_id}) -> marked")
        return notification

    async def mark_all_as_read(
        self,
        session: AsyncSession,
        recipient_id: str,
        category: str | None = None,
    ) -> int:
        """Mark every unread notification of a recipient as read.

        Returns:
            Number of notifications updated
        """
        stmt = update(Notification).where(
            and_(
                Notification.recipient_id == recipient_id,
                Notification.read_at.is_(None),
            ),
        )
        if category:
            stmt = stmt.where(Notification.category == category)
        stmt = stmt.values(read_at=datetime.now(UTC)).execution_options(synchronize_session=False)

        result = await session.execute(stmt)
        updated = result.rowcount or 0

        self._lazy.debug(lambda: f"db.mark_all_as_read({recipient_id=}, {category=}) -> {updated}")
        return updated


# Factory functions for dependency injection
_preference_repository: PreferenceRepository | None = None
_channel_repository: ChannelRepository | None = None
_template_repository: TemplateRepository | None = None
_notification_repository: NotificationRepository | None = None


def get_preference_repository() -> PreferenceRepository:
    """Get PreferenceRepository singleton instance."""
    global _preference_repository
    if _preference_repository is None:
        _preference_repository = PreferenceRepository()
    return _preference_repository


def get_channel_repository() -> ChannelRepository:
    """Get ChannelRepository singleton instance."""
    global _channel_repository
    if _channel_repository is None:
        _channel_repository = ChannelRepository()
    return _channel_repository


def get_template_repository() -> TemplateRepository:
    """Get TemplateRepository singleton instance."""
    global _template_repository
    if _template_repository is None:
        _template_repository = TemplateRepository()
    return _template_repository


def get_notification_repository() -> NotificationRepository:
    """Get NotificationRepository singleton instance."""
    global _notification_repository
    if _notification_repository is None:
        _notification_repository = NotificationRepository()
    return _notification_repository
