"""Database type compatibility layer for PostgreSQL and SQLite."""

from datetime import datetime, timezone
from typing import Any, Optional, Type

from sqlalchemy import DateTime, String, TypeDecorator


def utcnow_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class IsoTimestamp(TypeDecorator):
    """Timestamp column that always crosses the Python boundary as ISO text.

    Rows travel between the local replica, the remote store and snapshot
    documents as plain JSON, so timestamps are accepted as ISO strings (or
    datetimes) and always read back as ISO strings. PostgreSQL stores a real
    ``timestamptz``; SQLite stores the text unchanged.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def load_dialect_impl(self, dialect: Any) -> Any:
        """Degrade to text on SQLite."""
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(DateTime(timezone=True))

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        """Process value before binding to database."""
        if value is None:
            return None
        if dialect.name == "sqlite":
            return value.isoformat() if isinstance(value, datetime) else str(value)
        if isinstance(value, str):
            return parse_timestamp(value)
        return value

    def process_result_value(self, value: Any, dialect: Any) -> Optional[str]:
        """Process value when loading from database."""
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.isoformat()
        return str(value)

    @property
    def python_type(self) -> Type[str]:
        """Python type."""
        return str
