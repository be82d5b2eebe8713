"""Cross-database column types.

PostgreSQL gets native ARRAY/JSONB columns while SQLite (tests, local
development) falls back to JSON text.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, String, Text, TypeDecorator
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.sql.type_api import TypeEngine

# JSON document column: JSONB on PostgreSQL, JSON elsewhere
JSONDocument = JSONB().with_variant(JSON(), "sqlite")


class StringArray(TypeDecorator):
    """Cross-database type for string arrays.

    Uses native ARRAY in PostgreSQL, JSON in SQLite/other databases.
    Ensures consistent behavior across development (SQLite) and production (PostgreSQL).
    """

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        """Return native ARRAY for Postgres, Text for other dialects."""
        if dialect.name == "postgresql":
            return dialect.type_descriptor(ARRAY(String(100)))
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value: list[str] | None, dialect: Dialect) -> Any:
        """Serialize the array before binding to the database."""
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value
        return json.dumps(value)

    def process_result_value(self, value: Any, dialect: Dialect) -> list[str]:
        """Deserialize the stored array back into Python list."""
        if value is None:
            return []
        if dialect.name == "postgresql":
            return value
        return json.loads(value) if value else []


__all__ = ["JSONDocument", "StringArray"]
