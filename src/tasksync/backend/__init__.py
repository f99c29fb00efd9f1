"""Remote backend access.

User handles behave as if row-level security were enforced for the signed-in
user. Elevated handles are only obtainable through :func:`grant_elevated_scope`,
which requires the service credential and writes an audit record.
"""

import hashlib
from typing import Optional

from sqlalchemy.engine import Engine

from tasksync.backend.base import AccessScope, Filter, QueryResult, RemoteBackend, Row
from tasksync.backend.sql_backend import SqlAlchemyBackend
from tasksync.config import Settings, get_settings
from tasksync.core.exceptions import ConfigurationError
from tasksync.utils.logging import AuditLogger


def grant_elevated_scope(purpose: str, settings: Optional[Settings] = None) -> AccessScope:
    """
    Hand out a scope that bypasses per-row ownership.

    Args:
        purpose: What the capability is used for (recorded in the audit log)
        settings: Settings holding the service credential

    Returns:
        Elevated AccessScope

    Raises:
        ConfigurationError: if the service credential is not configured
    """
    settings = settings or get_settings()
    if not settings.service_role_key:
        raise ConfigurationError("Service role key is not configured")

    fingerprint = hashlib.sha256(settings.service_role_key.encode()).hexdigest()[:12]
    AuditLogger().log_elevated_access(purpose, fingerprint)
    return AccessScope(is_elevated=True, purpose=purpose)


def open_user_backend(engine: Engine, owner_id: str) -> SqlAlchemyBackend:
    """Backend handle limited to ``owner_id``'s rows."""
    return SqlAlchemyBackend(engine, AccessScope.for_user(owner_id))


def open_service_backend(
    engine: Engine, purpose: str, settings: Optional[Settings] = None
) -> SqlAlchemyBackend:
    """Elevated backend handle; see :func:`grant_elevated_scope`."""
    return SqlAlchemyBackend(engine, grant_elevated_scope(purpose, settings))


__all__ = [
    "AccessScope",
    "Filter",
    "QueryResult",
    "RemoteBackend",
    "Row",
    "SqlAlchemyBackend",
    "grant_elevated_scope",
    "open_user_backend",
    "open_service_backend",
]
