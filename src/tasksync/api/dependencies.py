"""Shared FastAPI dependencies and error translation."""

import asyncio
from functools import lru_cache
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from fastapi import Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.engine import Engine

from tasksync.auth import Session, decode_session_token
from tasksync.backup import SnapshotStore
from tasksync.config import Settings, get_settings
from tasksync.core.database import get_engine
from tasksync.core.exceptions import (
    BackendError,
    ConfigurationError,
    MalformedInputError,
    OwnershipViolationError,
    SnapshotNotFoundError,
    StorageError,
    TaskSyncError,
    UnauthenticatedError,
)
from tasksync.storage import create_storage_backend
from tasksync.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

security = HTTPBearer(auto_error=False)

# Dependency injection
security_dependency = Depends(security)
settings_dependency = Depends(get_settings)

ERROR_STATUS: Dict[Type[TaskSyncError], int] = {
    UnauthenticatedError: status.HTTP_401_UNAUTHORIZED,
    OwnershipViolationError: status.HTTP_403_FORBIDDEN,
    MalformedInputError: status.HTTP_400_BAD_REQUEST,
    SnapshotNotFoundError: status.HTTP_404_NOT_FOUND,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    StorageError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    BackendError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_error(error: TaskSyncError) -> HTTPException:
    """Translate a domain error into the matching HTTP error."""
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS:
            code = ERROR_STATUS[cls]
            break
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if code >= 500:
        logger.error("request_failed", error_code=error.code, error=error.message)
    return HTTPException(status_code=code, detail=error.message)


async def run_bounded(fn: Callable[[], T], timeout: float) -> T:
    """Run blocking work in the threadpool, answering 504 after ``timeout``.

    The work itself is not cancelled; callers are told to check the status
    endpoint instead.
    """
    task = asyncio.ensure_future(run_in_threadpool(fn))
    try:
        # Threadpool work cannot be interrupted, so only the wait is bounded
        return await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("request_timed_out", timeout=timeout)
        task.add_done_callback(_log_late_outcome)
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Operation did not finish in time; check the backup status for its outcome",
        ) from e


def _log_late_outcome(task: "asyncio.Future[Any]") -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("late_operation_failed", error=str(error))
    else:
        logger.info("late_operation_finished")


def get_remote_engine() -> Engine:
    """Engine of the remote store."""
    return get_engine()


@lru_cache()
def _snapshot_store() -> SnapshotStore:
    return SnapshotStore(create_storage_backend(get_settings()))


def get_snapshot_store() -> SnapshotStore:
    """Process-wide snapshot store."""
    return _snapshot_store()


def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = security_dependency,
    settings: Settings = settings_dependency,
) -> Session:
    """Verify the bearer token of the request."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
        )
    try:
        return decode_session_token(credentials.credentials, settings)
    except UnauthenticatedError as e:
        raise http_error(e) from e


engine_dependency = Depends(get_remote_engine)
store_dependency = Depends(get_snapshot_store)
session_dependency = Depends(get_current_session)


def response_body(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset optional fields from a response body."""
    return {k: v for k, v in data.items() if v is not None}
