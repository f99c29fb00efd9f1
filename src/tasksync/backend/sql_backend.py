"""SQLAlchemy implementation of the remote backend.

Every call opens its own transaction, so each table operation succeeds or
fails on its own. User-scoped handles emulate row-level security: reads,
updates and deletes are silently narrowed to the owner's rows, and writes of
rows that belong (or would belong) to somebody else are rejected.
"""

from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import Table, and_, delete, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from tasksync.backend.base import AccessScope, Filter, QueryResult, RemoteBackend, Row
from tasksync.catalog import TableDef, TableKind, get_table
from tasksync.core.exceptions import BackendError
from tasksync.models import Base
from tasksync.utils.logging import get_logger

logger = get_logger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SqlAlchemyBackend(RemoteBackend):
    """Remote backend over a SQLAlchemy engine."""

    def __init__(self, engine: Engine, scope: AccessScope, metadata: Any = None):
        """
        Initialize the backend.

        Args:
            engine: Engine bound to the remote store
            scope: Rows this handle may see and touch
            metadata: Table metadata (defaults to the entity models)
        """
        self.engine = engine
        self.scope = scope
        self.metadata = metadata if metadata is not None else Base.metadata

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        columns: Optional[Sequence[str]] = None,
    ) -> QueryResult:
        """Read rows, narrowed to the scope, ordered by key."""

        def op() -> QueryResult:
            tbl, table_def = self._resolve(table)
            selected = [self._column(tbl, c) for c in columns] if columns else [tbl]
            stmt = select(*selected)
            clauses = self._clauses(tbl, filters) + self._scope_clauses(tbl, table_def)
            if clauses:
                stmt = stmt.where(and_(*clauses))
            stmt = stmt.order_by(*[tbl.c[k] for k in table_def.key_columns])

            with self.engine.connect() as conn:
                rows = [dict(r._mapping) for r in conn.execute(stmt)]
            return QueryResult(data=rows, count=len(rows))

        return self._run(table, "select", op)

    def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> QueryResult:
        """Insert rows in a single transaction."""

        def op() -> QueryResult:
            tbl, table_def = self._resolve(table)
            payload = [dict(r) for r in rows]
            if not payload:
                return QueryResult()
            for row in payload:
                self._check_columns(tbl, row)

            with self.engine.begin() as conn:
                for row in payload:
                    self._check_row_ownership(conn, table_def, row)
                # executemany needs one key set per statement; keep row order
                for group in _group_by_keys(payload):
                    conn.execute(insert(tbl), group)
            return QueryResult(count=len(payload))

        return self._run(table, "insert", op)

    def upsert(self, table: str, record: Mapping[str, Any]) -> QueryResult:
        """Insert or replace, keyed on the table's key columns."""

        def op() -> QueryResult:
            tbl, table_def = self._resolve(table)
            row = dict(record)
            self._check_columns(tbl, row)
            missing = [k for k in table_def.key_columns if row.get(k) in (None, "")]
            if missing:
                raise BackendError(
                    f"Upsert on {table} is missing key column(s): {', '.join(missing)}",
                    table=table,
                )

            with self.engine.begin() as conn:
                self._check_row_ownership(conn, table_def, row)
                self._check_not_foreign(conn, tbl, table_def, row)
                self._execute_upsert(conn, tbl, table_def, row)
            return QueryResult(count=1)

        return self._run(table, "upsert", op)

    def update(
        self, table: str, values: Mapping[str, Any], filters: Sequence[Filter]
    ) -> QueryResult:
        """Update matching rows within the scope."""

        def op() -> QueryResult:
            tbl, table_def = self._resolve(table)
            payload = dict(values)
            if not payload:
                return QueryResult()
            if not filters:
                raise BackendError(f"Refusing unfiltered update on {table}", table=table)
            self._check_columns(tbl, payload)
            clauses = self._clauses(tbl, filters) + self._scope_clauses(tbl, table_def)

            with self.engine.begin() as conn:
                self._check_row_ownership(conn, table_def, payload, partial=True)
                result = conn.execute(update(tbl).where(and_(*clauses)).values(**payload))
            return QueryResult(count=result.rowcount or 0)

        return self._run(table, "update", op)

    def delete(self, table: str, filters: Sequence[Filter]) -> QueryResult:
        """Delete matching rows within the scope."""

        def op() -> QueryResult:
            tbl, table_def = self._resolve(table)
            if not filters:
                raise BackendError(f"Refusing unfiltered delete on {table}", table=table)
            clauses = self._clauses(tbl, filters) + self._scope_clauses(tbl, table_def)

            with self.engine.begin() as conn:
                result = conn.execute(delete(tbl).where(and_(*clauses)))
            return QueryResult(count=result.rowcount or 0)

        return self._run(table, "delete", op)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _run(self, table: str, operation: str, fn: Callable[[], QueryResult]) -> QueryResult:
        """Execute ``fn`` and fold any failure into the result."""
        try:
            return fn()
        except BackendError as e:
            logger.warning(
                "backend_operation_rejected",
                table=table,
                operation=operation,
                scope=self.scope.describe(),
                error=e.message,
            )
            return QueryResult(error=e)
        except SQLAlchemyError as e:
            detail = str(getattr(e, "orig", None) or e)
            logger.error(
                "backend_operation_failed",
                table=table,
                operation=operation,
                scope=self.scope.describe(),
                error=detail,
            )
            return QueryResult(
                error=BackendError(f"{operation} on {table} failed: {detail}", table=table)
            )

    def _resolve(self, name: str) -> Tuple[Table, TableDef]:
        try:
            table_def = get_table(name)
        except KeyError as e:
            raise BackendError(f"Unknown table: {name}", table=name) from e
        table = self.metadata.tables.get(name)
        if table is None:
            raise BackendError(f"Table {name} is not mapped", table=name)
        return table, table_def

    def _column(self, table: Table, name: str) -> Any:
        if name not in table.c:
            raise BackendError(f"Unknown column {name!r} on {table.name}", table=table.name)
        return table.c[name]

    def _check_columns(self, table: Table, row: Mapping[str, Any]) -> None:
        unknown = sorted(set(row) - set(table.c.keys()))
        if unknown:
            raise BackendError(
                f"Unknown column(s) on {table.name}: {', '.join(unknown)}",
                table=table.name,
            )

    def _clauses(self, table: Table, filters: Sequence[Filter]) -> List[Any]:
        clauses = []
        for f in filters:
            column = self._column(table, f.column)
            if f.op == "eq":
                clauses.append(column == f.value)
            elif f.op == "in":
                clauses.append(column.in_(list(f.value)))
            else:
                raise BackendError(f"Unsupported filter operator: {f.op}", table=table.name)
        return clauses

    def _scope_clauses(self, table: Table, table_def: TableDef) -> List[Any]:
        if self.scope.is_elevated:
            return []
        owner = self.scope.owner_id
        if table_def.kind is TableKind.IDENTITY:
            return [table.c[table_def.key_columns[0]] == owner]
        if table_def.kind is TableKind.JOIN:
            owned = self._owned_ids(table_def.scope_table)  # type: ignore[arg-type]
            return [table.c[table_def.scope_field].in_(owned)]
        return [table.c[table_def.owner_field] == owner]

    def _owned_ids(self, name: str) -> Any:
        scope_table, scope_def = self._resolve(name)
        return select(scope_table.c.id).where(
            scope_table.c[scope_def.owner_field] == self.scope.owner_id
        )

    def _check_row_ownership(
        self,
        conn: Connection,
        table_def: TableDef,
        row: Mapping[str, Any],
        partial: bool = False,
    ) -> None:
        """Reject rows a user scope may not write.

        With ``partial`` only the columns present in ``row`` are checked, as
        for an update.
        """
        if self.scope.is_elevated:
            return
        owner = self.scope.owner_id

        if table_def.kind is TableKind.IDENTITY:
            field = table_def.key_columns[0]
            if (field in row or not partial) and row.get(field) != owner:
                raise BackendError(
                    f"Row violates row-level security for {table_def.name}",
                    table=table_def.name,
                )
        elif table_def.kind is TableKind.JOIN:
            field = table_def.scope_field
            if field in row or not partial:
                owned = conn.execute(
                    self._owned_ids(table_def.scope_table).where(  # type: ignore[arg-type]
                        self._resolve(table_def.scope_table)[0].c.id == row.get(field)  # type: ignore[arg-type]
                    )
                ).first()
                if owned is None:
                    raise BackendError(
                        f"Row violates row-level security for {table_def.name}",
                        table=table_def.name,
                    )
        else:
            field = table_def.owner_field
            if (field in row or not partial) and row.get(field) != owner:
                raise BackendError(
                    f"Row violates row-level security for {table_def.name}",
                    table=table_def.name,
                )

    def _check_not_foreign(
        self, conn: Connection, table: Table, table_def: TableDef, row: Row
    ) -> None:
        """An upsert must not take over a row owned by someone else."""
        if self.scope.is_elevated:
            return
        key_clauses = [table.c[k] == row[k] for k in table_def.key_columns]
        key_columns = [table.c[k] for k in table_def.key_columns]
        existing = conn.execute(select(*key_columns).where(and_(*key_clauses))).first()
        if existing is None:
            return
        visible = conn.execute(
            select(*key_columns).where(
                and_(*key_clauses, *self._scope_clauses(table, table_def))
            )
        ).first()
        if visible is None:
            raise BackendError(
                f"Row {table_def.row_id(row)} in {table.name} belongs to another user",
                table=table.name,
            )

    def _execute_upsert(
        self, conn: Connection, table: Table, table_def: TableDef, row: Row
    ) -> None:
        keys = list(table_def.key_columns)
        dialect_insert = _UPSERT_DIALECTS.get(conn.dialect.name)

        if dialect_insert is not None:
            stmt = dialect_insert(table).values(**row)
            updates = {k: stmt.excluded[k] for k in row if k not in keys}
            if updates:
                stmt = stmt.on_conflict_do_update(index_elements=keys, set_=updates)
            else:
                stmt = stmt.on_conflict_do_nothing(index_elements=keys)
            conn.execute(stmt)
            return

        # Generic path: update first, insert when nothing matched
        key_clauses = and_(*[table.c[k] == row[k] for k in keys])
        values = {k: v for k, v in row.items() if k not in keys}
        if values:
            if conn.execute(update(table).where(key_clauses).values(**values)).rowcount:
                return
        elif conn.execute(select(*[table.c[k] for k in keys]).where(key_clauses)).first():
            return
        conn.execute(insert(table).values(**row))


def _group_by_keys(rows: List[Row]) -> List[List[Row]]:
    """Split rows into consecutive runs sharing the same column set."""
    groups: List[List[Row]] = []
    current_keys: Optional[frozenset] = None
    for row in rows:
        keys = frozenset(row)
        if keys != current_keys:
            groups.append([])
            current_keys = keys
        groups[-1].append(row)
    return groups


__all__ = ["SqlAlchemyBackend"]
