"""Snapshot export: every catalog table of one user into one document."""

from typing import List, Optional, Tuple

from tasksync.backend import Filter, RemoteBackend, Row
from tasksync.backup.results import ExportResult, TableFailure, UserExportOutcome
from tasksync.backup.snapshot import SNAPSHOT_VERSION, SnapshotDocument
from tasksync.backup.store import SnapshotStore
from tasksync.catalog import CATALOG, IDENTITY_TABLE, TableDef, TableKind, get_table
from tasksync.core.exceptions import ConfigurationError, TaskSyncError
from tasksync.models.db_types import utcnow_iso
from tasksync.utils.logging import get_logger

logger = get_logger(__name__)


class SnapshotExporter:
    """Builds snapshot documents and hands them to the snapshot store.

    A table whose read fails is exported as an empty list and listed in
    :attr:`ExportResult.failures`; only storage failures abort an export.
    """

    def __init__(self, backend: RemoteBackend, store: Optional[SnapshotStore] = None):
        """
        Initialize the exporter.

        Args:
            backend: Elevated backend handle (reads across users)
            store: Destination of exported documents

        Raises:
            ConfigurationError: if ``backend`` is not elevated
        """
        if not backend.is_elevated:
            raise ConfigurationError("Snapshot export needs an elevated backend handle")
        self.backend = backend
        self.store = store

    def build_document(self, user_id: str, owner_id: Optional[str] = None) -> ExportResult:
        """
        Read one user's rows from every catalog table.

        Args:
            user_id: Identity recorded in the document
            owner_id: Id the rows are owned by (defaults to ``user_id``)

        Returns:
            ExportResult with the document and per-table failures
        """
        owner = owner_id or user_id
        tables = {}
        failures: List[TableFailure] = []

        for table_def in CATALOG:
            rows, error = self._read_table(table_def, owner)
            tables[table_def.name] = rows
            if error is not None:
                logger.warning(
                    "export_table_failed", table=table_def.name, user_id=user_id, error=error
                )
                failures.append(TableFailure(table=table_def.name, error=error))

        document = SnapshotDocument(
            version=SNAPSHOT_VERSION,
            created_at=utcnow_iso(),
            user_id=user_id,
            tables=tables,
        )
        return ExportResult(document=document, tables_attempted=len(CATALOG), failures=failures)

    def export(self, user_id: str, owner_id: Optional[str] = None) -> ExportResult:
        """
        Build the user's snapshot and replace the stored one.

        Raises:
            ConfigurationError: if no snapshot store is configured
            StorageError: if the snapshot could not be stored
        """
        if self.store is None:
            raise ConfigurationError("No snapshot store configured")

        result = self.build_document(user_id, owner_id)
        self.store.save(result.document)
        logger.info(
            "snapshot_exported",
            user_id=user_id,
            total_records=result.document.total_records,
            tables_succeeded=result.tables_succeeded,
            tables_attempted=result.tables_attempted,
        )
        return result

    def export_all(self) -> List[UserExportOutcome]:
        """
        Export every known user, one after the other.

        A failure for one user is recorded in that user's outcome and does
        not stop the others.

        Raises:
            BackendError: if the list of users cannot be read
        """
        profiles = self.backend.select(
            IDENTITY_TABLE.name, columns=[IDENTITY_TABLE.key_columns[0], "email"]
        ).raise_for_error()

        outcomes: List[UserExportOutcome] = []
        for profile in profiles.data:
            user_id = profile[IDENTITY_TABLE.key_columns[0]]
            try:
                self.export(user_id)
            except TaskSyncError as e:
                logger.error("scheduled_export_failed", user_id=user_id, error=e.message)
                outcomes.append(
                    UserExportOutcome(user_id, profile.get("email"), success=False, error=e.message)
                )
            else:
                outcomes.append(UserExportOutcome(user_id, profile.get("email"), success=True))

        logger.info(
            "scheduled_export_finished",
            succeeded=sum(1 for o in outcomes if o.success),
            failed=sum(1 for o in outcomes if not o.success),
        )
        return outcomes

    def _read_table(self, table_def: TableDef, owner: str) -> Tuple[List[Row], Optional[str]]:
        """Scoped read of one table; returns (rows, error message)."""
        if table_def.kind is TableKind.IDENTITY:
            result = self.backend.select(
                table_def.name, [Filter.eq(table_def.key_columns[0], owner)]
            )
        elif table_def.kind is TableKind.JOIN:
            scope_def = get_table(table_def.scope_table)  # type: ignore[arg-type]
            owned = self.backend.select(
                scope_def.name, [Filter.eq(scope_def.owner_field, owner)], columns=["id"]  # type: ignore[arg-type]
            )
            if owned.error is not None:
                return [], f"Could not resolve owned {scope_def.name}: {owned.error.message}"
            ids = [row["id"] for row in owned.data]
            if not ids:
                return [], None
            result = self.backend.select(table_def.name, [Filter.in_(table_def.scope_field, ids)])  # type: ignore[arg-type]
        else:
            result = self.backend.select(
                table_def.name, [Filter.eq(table_def.owner_field, owner)]  # type: ignore[arg-type]
            )

        if result.error is not None:
            return [], result.error.message
        return result.data, None
