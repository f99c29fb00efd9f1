"""Backup API endpoints: export, scheduled export, download, restore, status.

Export and restore run in the threadpool bounded by the request timeout.
Restore reads the raw JSON body so an incomplete document is answered with
400 rather than a schema error.
"""

import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.engine import Engine

from tasksync.api.dependencies import (
    engine_dependency,
    http_error,
    response_body,
    run_bounded,
    security_dependency,
    session_dependency,
    settings_dependency,
    store_dependency,
)
from tasksync.auth import Session
from tasksync.backend import open_service_backend
from tasksync.backup import SnapshotExporter, SnapshotImporter, SnapshotStore
from tasksync.config import Settings
from tasksync.core.exceptions import TaskSyncError
from tasksync.utils.logging import get_logger

router = APIRouter(prefix="/backup", tags=["backup"])
logger = get_logger(__name__)


@router.post("")
async def create_backup(
    session: Session = session_dependency,
    engine: Engine = engine_dependency,
    store: SnapshotStore = store_dependency,
    settings: Settings = settings_dependency,
) -> Dict[str, Any]:
    """Export the caller's data and replace their stored snapshot."""
    identity = session.identity

    def work() -> Dict[str, Any]:
        backend = open_service_backend(engine, "manual_export", settings)
        result = SnapshotExporter(backend, store).export(identity.user_id, identity.owner)
        return result.to_dict()

    try:
        return await run_bounded(work, settings.request_timeout_seconds)
    except TaskSyncError as e:
        raise http_error(e) from e


@router.get("")
async def scheduled_backup(
    credentials: Optional[HTTPAuthorizationCredentials] = security_dependency,
    engine: Engine = engine_dependency,
    store: SnapshotStore = store_dependency,
    settings: Settings = settings_dependency,
) -> Dict[str, Any]:
    """Export every user. Authorized by the cron secret, not a session."""
    if not settings.cron_secret:
        logger.error("cron_secret_missing")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Scheduled backup is not configured",
        )
    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode(), settings.cron_secret.encode()
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    def work() -> Dict[str, Any]:
        backend = open_service_backend(engine, "scheduled_export", settings)
        outcomes = SnapshotExporter(backend, store).export_all()
        succeeded = sum(1 for o in outcomes if o.success)
        return {
            "success": True,
            "message": f"Backup completed: {succeeded} success, {len(outcomes) - succeeded} failed",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "results": [o.to_dict() for o in outcomes],
        }

    try:
        return await run_bounded(work, settings.request_timeout_seconds)
    except TaskSyncError as e:
        raise http_error(e) from e


@router.get("/download")
async def download_backup(
    session: Session = session_dependency,
    store: SnapshotStore = store_dependency,
) -> Response:
    """Return the caller's stored snapshot as a file."""
    try:
        content = await run_in_threadpool(store.load_raw, session.identity.user_id)
    except TaskSyncError as e:
        raise http_error(e) from e

    filename = f"tasksync-backup-{datetime.now(timezone.utc).date().isoformat()}.json"
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/restore")
async def restore_backup(
    request: Request,
    session: Session = session_dependency,
    engine: Engine = engine_dependency,
    settings: Settings = settings_dependency,
) -> Dict[str, Any]:
    """Replace the caller's data with the snapshot in the request body."""
    try:
        payload = await request.json()
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid backup format"
        ) from e

    def work() -> Dict[str, Any]:
        backend = open_service_backend(engine, "restore", settings)
        report = SnapshotImporter(backend, settings=settings).restore(payload, session.identity)
        return report.to_dict()

    try:
        return await run_bounded(work, settings.request_timeout_seconds)
    except TaskSyncError as e:
        raise http_error(e) from e


@router.get("/status")
async def backup_status(
    session: Session = session_dependency,
    store: SnapshotStore = store_dependency,
) -> Dict[str, Any]:
    """Describe the caller's stored snapshot."""
    try:
        info = await run_in_threadpool(store.status, session.identity.user_id)
    except TaskSyncError as e:
        raise http_error(e) from e
    return response_body(info)
