"""Snapshot restore: replace a user's rows with a snapshot's rows.

Restore runs in two phases. The clear phase deletes the caller's rows child
tables first; the insert phase writes the snapshot's rows parent tables
first, in batches, stamping every owned row with the caller's owner id.
Tables are independent remote operations, so a restore is not atomic across
tables. Running the same restore again is safe and is the way to recover
from a partial result.
"""

from collections import defaultdict, deque
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

from tasksync.auth import CallerIdentity
from tasksync.backend import Filter, RemoteBackend, Row
from tasksync.backup.results import RestoreReport, TableResult
from tasksync.backup.snapshot import SnapshotDocument, parse_document
from tasksync.catalog import (
    CLEAR_ORDER,
    IDENTITY_TABLE,
    RESTORE_ORDER,
    TableDef,
    TableKind,
    get_table,
)
from tasksync.config import Settings, get_settings
from tasksync.core.exceptions import ConfigurationError, OwnershipViolationError
from tasksync.utils.logging import AuditLogger, get_logger

logger = get_logger(__name__)

# Join columns and the tables they must point into
JOIN_REFERENCES = {"task_id": "tasks", "label_id": "labels"}


class SnapshotImporter:
    """Restores snapshot documents for their owner."""

    def __init__(
        self,
        backend: RemoteBackend,
        batch_size: Optional[int] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the importer.

        Args:
            backend: Elevated backend handle
            batch_size: Rows per insert statement
            settings: Application settings (default batch size)

        Raises:
            ConfigurationError: if ``backend`` is not elevated
        """
        if not backend.is_elevated:
            raise ConfigurationError("Snapshot restore needs an elevated backend handle")
        self.backend = backend
        self.batch_size = batch_size or (settings or get_settings()).restore_batch_size
        self.audit = AuditLogger()

    def restore(
        self,
        document: Union[SnapshotDocument, Mapping[str, Any]],
        caller: CallerIdentity,
    ) -> RestoreReport:
        """
        Replace the caller's rows with the document's rows.

        Args:
            document: Snapshot document, parsed or raw
            caller: Authenticated caller

        Returns:
            RestoreReport with one entry per syncable table

        Raises:
            MalformedInputError: the document is incomplete (nothing is touched)
            OwnershipViolationError: the document belongs to someone else
                (nothing is touched)
        """
        snapshot = parse_document(document)
        if snapshot.user_id != caller.user_id:
            self.audit.log_ownership_violation(caller.user_id, snapshot.user_id)
            raise OwnershipViolationError("Backup belongs to a different user")

        owner = caller.owner
        results = {table_def.name: TableResult(table_def.name) for table_def in RESTORE_ORDER}

        logger.info("restore_started", user_id=caller.user_id, owner_id=owner)
        self._clear(owner, results)
        self._insert(snapshot, owner, results)

        report = RestoreReport(
            backup_date=snapshot.created_at,
            results=[results[table_def.name] for table_def in RESTORE_ORDER],
        )
        logger.info(
            "restore_finished",
            user_id=caller.user_id,
            status=report.status.value,
            total_records_restored=report.total_records_restored,
        )
        return report

    # ------------------------------------------------------------------ #
    # Clear phase
    # ------------------------------------------------------------------ #

    def _clear(self, owner: str, results: Dict[str, TableResult]) -> None:
        for table_def in CLEAR_ORDER:
            result = results[table_def.name]

            if table_def.kind is TableKind.JOIN:
                scope_def = get_table(table_def.scope_table)  # type: ignore[arg-type]
                owned = self.backend.select(
                    scope_def.name, [Filter.eq(scope_def.owner_field, owner)], columns=["id"]  # type: ignore[arg-type]
                )
                if owned.error is not None:
                    result.clear_error = owned.error.message
                    logger.warning("restore_clear_failed", table=table_def.name, error=result.clear_error)
                    continue
                ids = [row["id"] for row in owned.data]
                if not ids:
                    continue
                outcome = self.backend.delete(
                    table_def.name, [Filter.in_(table_def.scope_field, ids)]  # type: ignore[arg-type]
                )
            else:
                outcome = self.backend.delete(
                    table_def.name, [Filter.eq(table_def.owner_field, owner)]  # type: ignore[arg-type]
                )

            if outcome.error is not None:
                result.clear_error = outcome.error.message
                logger.warning("restore_clear_failed", table=table_def.name, error=result.clear_error)
            else:
                result.deleted = outcome.count

    # ------------------------------------------------------------------ #
    # Insert phase
    # ------------------------------------------------------------------ #

    def _insert(
        self, snapshot: SnapshotDocument, owner: str, results: Dict[str, TableResult]
    ) -> None:
        restored_ids = {
            column: {row.get("id") for row in snapshot.tables.get(table, [])}
            for column, table in JOIN_REFERENCES.items()
        }

        for table_def in RESTORE_ORDER:
            result = results[table_def.name]
            rows = self._prepare_rows(table_def, snapshot.tables.get(table_def.name, []), owner)

            if table_def.kind is TableKind.JOIN:
                rows, skipped = _drop_dangling(rows, restored_ids)
                result.skipped = skipped
                if skipped:
                    logger.warning("restore_rows_skipped", table=table_def.name, skipped=skipped)

            for start in range(0, len(rows), self.batch_size):
                batch = rows[start : start + self.batch_size]
                outcome = self.backend.insert(table_def.name, batch)
                if outcome.error is not None:
                    result.error = outcome.error.message
                    logger.error(
                        "restore_table_failed",
                        table=table_def.name,
                        inserted=result.inserted,
                        error=result.error,
                    )
                    break
                result.inserted += len(batch)

        unknown = sorted(
            name
            for name in snapshot.tables
            if name not in results and name != IDENTITY_TABLE.name
        )
        if unknown:
            logger.warning("restore_tables_ignored", tables=unknown)

    def _prepare_rows(
        self, table_def: TableDef, rows: List[Dict[str, Any]], owner: str
    ) -> List[Row]:
        prepared = [dict(row) for row in rows]
        if table_def.owner_field:
            for row in prepared:
                row[table_def.owner_field] = owner
        if table_def.parent_field:
            prepared = _parents_first(prepared, table_def.parent_field)
        return prepared


def _parents_first(rows: List[Row], parent_field: str) -> List[Row]:
    """Order self-referencing rows so every parent precedes its children.

    Rows whose parent is not among ``rows`` count as roots. Rows caught in a
    reference cycle keep their relative order at the end.
    """
    ids = {row.get("id") for row in rows}
    children: Dict[Any, List[Row]] = defaultdict(list)
    roots: List[Row] = []
    for row in rows:
        parent = row.get(parent_field)
        if parent is not None and parent in ids and parent != row.get("id"):
            children[parent].append(row)
        else:
            roots.append(row)

    ordered: List[Row] = []
    queue = deque(roots)
    while queue:
        row = queue.popleft()
        ordered.append(row)
        queue.extend(children.pop(row.get("id"), []))

    for remaining in children.values():
        ordered.extend(remaining)
    return ordered


def _drop_dangling(rows: List[Row], restored_ids: Dict[str, Set[Any]]) -> Tuple[List[Row], int]:
    """Keep join rows whose task and label are both part of the restore."""
    kept = [
        row
        for row in rows
        if all(row.get(column) in ids for column, ids in restored_ids.items())
    ]
    return kept, len(rows) - len(kept)
