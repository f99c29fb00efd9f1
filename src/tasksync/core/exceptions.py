"""Core Exceptions Module.

This module defines the error taxonomy shared by the sync connector, the
snapshot exporter and the snapshot importer. Fatal errors abort the current
operation; ``BackendError`` is the one per-table failure that export and
restore record and move past.
"""

from typing import Optional


class TaskSyncError(Exception):
    """Base exception for all tasksync errors."""

    default_code = "TASKSYNC_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        """Initialize exception.

        Args:
            message: Error message
            code: Optional error code
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class UnauthenticatedError(TaskSyncError):
    """Raised when there is no session, or the session has expired."""

    default_code = "UNAUTHENTICATED"


class ConfigurationError(TaskSyncError):
    """Raised when required environment wiring is missing or invalid."""

    default_code = "CONFIGURATION_ERROR"


class OwnershipViolationError(TaskSyncError):
    """Raised when a snapshot is restored by someone other than its owner."""

    default_code = "OWNERSHIP_VIOLATION"


class MalformedInputError(TaskSyncError):
    """Raised when a snapshot document is missing required fields."""

    default_code = "MALFORMED_INPUT"


class BackendError(TaskSyncError):
    """Raised when a single remote table operation fails."""

    default_code = "BACKEND_ERROR"

    def __init__(
        self, message: str, table: Optional[str] = None, code: Optional[str] = None
    ):
        """Initialize BackendError.

        Args:
            message: Error message
            table: Table the failed operation targeted
            code: Optional error code
        """
        super().__init__(message, code)
        self.table = table


class StorageError(TaskSyncError):
    """Raised when a durable blob write, read or delete fails."""

    default_code = "STORAGE_ERROR"


class SnapshotNotFoundError(StorageError):
    """Raised when no snapshot exists for a user."""

    default_code = "SNAPSHOT_NOT_FOUND"
