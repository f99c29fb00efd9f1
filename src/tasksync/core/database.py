"""Database connection management for the remote relational store."""

from functools import lru_cache
from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from tasksync.config import Settings, get_settings
from tasksync.models.base import Base


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    """SQLite leaves foreign keys unenforced unless asked per connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_remote_engine(settings: Optional[Settings] = None) -> Engine:
    """Create the engine for the remote store described by ``settings``."""
    settings = settings or get_settings()
    url = settings.database_url

    if settings.is_sqlite:
        # SQLite doesn't support these pool settings
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    else:
        # PostgreSQL settings
        engine = create_engine(
            url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
        )

    return engine


@lru_cache()
def get_engine() -> Engine:
    """Get the process-wide engine for the configured remote store."""
    return create_remote_engine(get_settings())


def init_db(engine: Optional[Engine] = None) -> None:
    """Create the entity tables if they do not exist."""
    Base.metadata.create_all(bind=engine or get_engine())


def drop_db(engine: Optional[Engine] = None) -> None:
    """Drop all entity tables (use with caution)."""
    Base.metadata.drop_all(bind=engine or get_engine())
