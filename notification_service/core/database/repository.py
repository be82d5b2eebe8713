"""Minimal generic repository for SQLAlchemy models.

Provides basic persistence helpers with explicit session passing.
For complex queries, use the session directly - this is a convenience, not a cage.

Example:
    from notification_service.core.database import BaseRepository

    class ChannelRepository(BaseRepository[NotificationChannel]):
        async def find_by_name(self, session: AsyncSession, name: str) -> NotificationChannel | None:
            return await self.get_by(session, NotificationChannel.name, name)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import select

from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Minimal generic repository.

    Provides:
        - get(session, id) -> T | None
        - get_by(session, attr, value) -> T | None
        - create(session, instance) -> T
        - save(session, instance) -> T

    Session is always explicit and nothing is committed here; services flush,
    callers own the transaction.
    """

    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        """Initialize repository with model class.

        Args:
            model: SQLAlchemy model class (e.g., NotificationChannel)
        """
        self.model = model
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get(self, session: AsyncSession, id: Any) -> T | None:  # noqa: A002
        """Get entity by primary key.

        Returns:
            Entity if found, None otherwise
        """
        instance = await session.get(self.model, id)

        self._lazy.debug(
            lambda: f"db.get: {self.model.__name__}({id}) -> {'found' if instance else 'not found'}"
        )
        return instance

    async def get_by(
        self,
        session: AsyncSession,
        attr: InstrumentedAttribute[Any],
        value: Any,
    ) -> T | None:
        """Get the first entity whose ``attr`` equals ``value``.

        Args:
            session: Database session
            attr: Model attribute to filter by (e.g., NotificationChannel.name)
            value: Value to match
        """
        stmt = select(self.model).where(attr == value).limit(1)
        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self._lazy.debug(
            lambda: f"db.get_by: {self.model.__name__}.{attr.key}={value!r} -> {'found' if instance else 'not found'}"
        )
        return instance

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Persist a new entity.

        Adds to session, flushes to get generated values (like id),
        and refreshes so server defaults are loaded.
        """
        session.add(instance)
        await session.flush()
        await session.refresh(instance)

        entity_id = getattr(instance, "id", None)
        self._lazy.debug(lambda: f"db.create: {self.model.__name__}(id={entity_id})")
        return instance

    async def save(self, session: AsyncSession, instance: T) -> T:
        """Flush pending modifications of a tracked entity and refresh it."""
        session.add(instance)
        await session.flush()
        await session.refresh(instance)

        entity_id = getattr(instance, "id", None)
        self._lazy.debug(lambda: f"db.save: {self.model.__name__}(id={entity_id})")
        return instance
