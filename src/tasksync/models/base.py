"""Base model classes for database models."""

from typing import Any

from sqlalchemy import Column
from sqlalchemy.orm import declarative_base

from .db_types import IsoTimestamp, utcnow_iso

Base: Any = declarative_base()


class TimestampMixin:
    """Mixin for adding timestamp fields to models."""

    created_at = Column(IsoTimestamp, nullable=False, default=utcnow_iso)

    updated_at = Column(
        IsoTimestamp, nullable=False, default=utcnow_iso, onupdate=utcnow_iso
    )
