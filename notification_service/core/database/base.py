"""Base database model classes with composable mixins.

This module provides the foundation for the notification service models:
- UUID v7 primary keys (time-sortable, so creation order is stable)
- Timestamp tracking (created_at, updated_at)
- Automatic table name generation

Examples:
    class NotificationChannel(UUIDv7TimestampedBase):
        __tablename__ = "notification_channels"
        name: Mapped[str] = mapped_column(String(100), unique=True)
"""

from __future__ import annotations

import os
import time
import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

# Consistent naming convention for database constraints
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base with automatic table naming.

    Provides:
    - Consistent constraint naming via NAMING_CONVENTION
    - Automatic table name generation from class name (lowercase)
    - Metadata registry for all models
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """Auto-derive table name from class name (lowercase)."""
        return cls.__name__.lower()


# ============================================================================
# Primary Key Mixins
# ============================================================================


class UUIDv7PKMixin:
    """UUID v7 primary key (time-sortable).

    UUID v7 encodes Unix timestamp in the first 48 bits, providing:
    - Natural time-ordering (later IDs sort after earlier ones)
    - Better B-tree index locality for sequential inserts
    - Global uniqueness (safe for distributed systems)

    Provides:
        id: UUID v7 primary key (time-ordered)
    """

    __allow_unmapped__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=lambda: generate_uuid7(),
        comment="UUID v7 primary key (time-sortable)",
    )


def generate_uuid7() -> uuid.UUID:
    """Generate a UUID v7 value."""
    timestamp_ms = int(time.time() * 1000)
    random_bytes = os.urandom(10)

    uuid_bytes = bytearray(16)
    uuid_bytes[0:6] = timestamp_ms.to_bytes(6, byteorder="big")
    uuid_bytes[6] = (random_bytes[0] & 0x0F) | 0x70  # Version 7
    uuid_bytes[7] = random_bytes[1]
    uuid_bytes[8] = (random_bytes[2] & 0x3F) | 0x80  # Variant
    uuid_bytes[9:16] = random_bytes[3:10]

    return uuid.UUID(bytes=bytes(uuid_bytes))


# ============================================================================
# Audit and Tracking Mixins
# ============================================================================


class TimestampMixin:
    """Timestamp tracking for create and update operations.

    Uses both Python-side defaults (for test environments) and database
    server defaults (for direct SQL inserts).

    Provides:
        created_at: Timestamp of record creation (immutable)
        updated_at: Timestamp of last modification (auto-updates)
    """

    __allow_unmapped__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        nullable=False,
        comment="Timestamp of record creation",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
        comment="Timestamp of last update",
    )


# ============================================================================
# Convenience Base Classes
# ============================================================================


class UUIDv7TimestampedBase(Base, UUIDv7PKMixin, TimestampMixin):
    """Convenience base with time-sortable UUID PK and timestamps.

    Example:
            class NotificationTemplate(UUIDv7TimestampedBase):
            __tablename__ = "notification_templates"
            name: Mapped[str] = mapped_column(String(100))
    """

    __abstract__ = True


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes loaded from backends without tz support.

    SQLite returns naive values for ``DateTime(timezone=True)`` columns.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
