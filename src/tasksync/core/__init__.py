"""Core building blocks: errors and database wiring."""

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

__all__ = [
    "TaskSyncError",
    "UnauthenticatedError",
    "ConfigurationError",
    "OwnershipViolationError",
    "MalformedInputError",
    "BackendError",
    "StorageError",
    "SnapshotNotFoundError",
]
