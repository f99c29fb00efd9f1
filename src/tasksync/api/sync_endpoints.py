"""Sync API endpoints consumed by the local sync runtime."""

from typing import Any, Dict

from fastapi import APIRouter
from sqlalchemy.engine import Engine

from tasksync.api.dependencies import (
    engine_dependency,
    http_error,
    session_dependency,
    settings_dependency,
)
from tasksync.auth import Session, StaticSessionProvider
from tasksync.backend import open_user_backend
from tasksync.config import Settings
from tasksync.core.exceptions import TaskSyncError
from tasksync.sync import SyncConnector

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/credentials")
async def get_sync_credentials(
    session: Session = session_dependency,
    engine: Engine = engine_dependency,
    settings: Settings = settings_dependency,
) -> Dict[str, Any]:
    """Hand the sync runtime its endpoint and the caller's bearer token."""
    connector = SyncConnector(
        open_user_backend(engine, session.identity.owner),
        StaticSessionProvider(session),
        settings,
    )
    try:
        return connector.fetch_credentials().to_dict()
    except TaskSyncError as e:
        raise http_error(e) from e
