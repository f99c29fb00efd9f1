"""Result accumulators for export and restore.

Per-table failures are values here, not exceptions: a run keeps going past a
failed table and the caller reads what happened from the result.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from tasksync.backup.snapshot import SnapshotDocument


class RestoreStatus(str, Enum):
    """How a restore ended, as shown on the settings surface."""

    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class TableResult:
    """What happened to one table during a restore."""

    table: str
    deleted: int = 0
    inserted: int = 0
    skipped: int = 0
    error: Optional[str] = None
    clear_error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None or self.clear_error is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "table": self.table,
            "deleted": self.deleted,
            "inserted": self.inserted,
        }
        if self.skipped:
            data["skipped"] = self.skipped
        if self.error is not None:
            data["error"] = self.error
        if self.clear_error is not None:
            data["clear_error"] = self.clear_error
        return data


@dataclass
class RestoreReport:
    """Outcome of a restore, table by table."""

    backup_date: Optional[str]
    results: List[TableResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True only when no table reported an error."""
        return not any(r.failed for r in self.results)

    @property
    def total_records_restored(self) -> int:
        return sum(r.inserted for r in self.results)

    @property
    def status(self) -> RestoreStatus:
        if self.success:
            return RestoreStatus.SUCCEEDED
        if self.total_records_restored == 0 and all(r.failed for r in self.results):
            return RestoreStatus.FAILED
        return RestoreStatus.PARTIAL

    @property
    def message(self) -> str:
        if self.success:
            return "Restore completed successfully"
        return "Restore completed with some errors"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the response body."""
        return {
            "success": self.success,
            "status": self.status.value,
            "message": self.message,
            "backup_date": self.backup_date,
            "total_records_restored": self.total_records_restored,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class TableFailure:
    """A table whose read failed during export."""

    table: str
    error: str


@dataclass
class ExportResult:
    """A built (and possibly stored) snapshot plus its read statistics."""

    document: SnapshotDocument
    tables_attempted: int
    failures: List[TableFailure] = field(default_factory=list)

    @property
    def tables_succeeded(self) -> int:
        return self.tables_attempted - len(self.failures)

    @property
    def complete(self) -> bool:
        """Whether every table was read."""
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the manual export response body."""
        return {
            "success": True,
            "message": "Backup created successfully",
            "created_at": self.document.created_at,
            "tables_count": self.document.tables_count,
            "total_records": self.document.total_records,
            "tables_attempted": self.tables_attempted,
            "tables_succeeded": self.tables_succeeded,
            "failures": [{"table": f.table, "error": f.error} for f in self.failures],
        }


@dataclass
class UserExportOutcome:
    """One user's line in the scheduled export report."""

    user_id: str
    email: Optional[str]
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "user_id": self.user_id,
            "email": self.email,
            "success": self.success,
        }
        if self.error is not None:
            data["error"] = self.error
        return data
