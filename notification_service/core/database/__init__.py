"""Core database package with base classes, column types, and repository.

Base Classes and Mixins:
    - Base: Declarative base with auto table naming
    - UUIDv7PKMixin: Time-sortable UUID primary keys
    - TimestampMixin: created_at, updated_at tracking
    - UUIDv7TimestampedBase: UUID v7 PK + timestamps

Column Types:
    - JSONDocument: JSONB on PostgreSQL, JSON on SQLite
    - StringArray: ARRAY on PostgreSQL, JSON text elsewhere

Repository:
    - BaseRepository[T]: Generic persistence helpers with explicit session passing
"""

from notification_service.core.database.base import (
    Base,
    TimestampMixin,
    UUIDv7PKMixin,
    UUIDv7TimestampedBase,
    as_utc,
    generate_uuid7,
)
from notification_service.core.database.repository import BaseRepository
from notification_service.core.database.types import JSONDocument, StringArray

__all__ = [
    "Base",
    "BaseRepository",
    "JSONDocument",
    "StringArray",
    "TimestampMixin",
    "UUIDv7PKMixin",
    "UUIDv7TimestampedBase",
    "as_utc",
    "generate_uuid7",
]
