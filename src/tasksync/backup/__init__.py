"""Snapshot backup and restore."""

from tasksync.backup.exporter import SnapshotExporter
from tasksync.backup.importer import SnapshotImporter
from tasksync.backup.results import (
    ExportResult,
    RestoreReport,
    RestoreStatus,
    TableFailure,
    TableResult,
    UserExportOutcome,
)
from tasksync.backup.snapshot import (
    SNAPSHOT_VERSION,
    SnapshotDocument,
    parse_document,
    snapshot_key,
)
from tasksync.backup.store import SnapshotStore

__all__ = [
    "ExportResult",
    "RestoreReport",
    "RestoreStatus",
    "SNAPSHOT_VERSION",
    "SnapshotDocument",
    "SnapshotExporter",
    "SnapshotImporter",
    "SnapshotStore",
    "TableFailure",
    "TableResult",
    "UserExportOutcome",
    "parse_document",
    "snapshot_key",
]
