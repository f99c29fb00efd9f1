"""Table catalog shared by the sync connector, the exporter and the importer.

Tables are declared parents first. Inserts walk the catalog forwards and
deletes walk it backwards, so no foreign key is ever left dangling mid-way.

Usage:
    from tasksync.catalog import CATALOG, RESTORE_ORDER, get_table

    for table in RESTORE_ORDER:
        ...
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

COMPOSITE_KEY_SEPARATOR = ":"


class TableKind(str, Enum):
    """How a table's rows are tied to a user."""

    IDENTITY = "identity"  # the user row itself, matched on its primary key
    OWNED = "owned"  # rows carrying an owner column
    JOIN = "join"  # no owner column; ownership resolved through another table


@dataclass(frozen=True)
class TableDef:
    """Definition of a table for sync, export and restore."""

    name: str
    kind: TableKind = TableKind.OWNED
    key_columns: Tuple[str, ...] = ("id",)
    owner_field: Optional[str] = "user_id"
    parent_field: Optional[str] = None  # self reference (parents inserted first)
    scope_table: Optional[str] = None  # join tables: table that carries the owner
    scope_field: Optional[str] = None  # join tables: column pointing at scope_table

    @property
    def syncable(self) -> bool:
        """Identity rows are managed by the auth layer, never synced or restored."""
        return self.kind is not TableKind.IDENTITY

    @property
    def composite(self) -> bool:
        """Whether rows are keyed by more than one column."""
        return len(self.key_columns) > 1

    def key_filter(self, row_id: str) -> Dict[str, str]:
        """Map a row identifier onto this table's key columns.

        Composite keys travel as a single identifier joined with ``:``,
        e.g. ``"<task_id>:<label_id>"``.

        Raises:
            ValueError: if the identifier does not split into every key column
        """
        if not self.composite:
            return {self.key_columns[0]: row_id}
        parts = row_id.split(COMPOSITE_KEY_SEPARATOR)
        if len(parts) != len(self.key_columns) or not all(parts):
            raise ValueError(
                f"Row id {row_id!r} does not address {self.name} "
                f"({', '.join(self.key_columns)})"
            )
        return dict(zip(self.key_columns, parts))

    def row_id(self, row: Mapping[str, Any]) -> str:
        """Build the row identifier of ``row``."""
        return COMPOSITE_KEY_SEPARATOR.join(str(row[c]) for c in self.key_columns)


CATALOG: Tuple[TableDef, ...] = (
    TableDef("profiles", kind=TableKind.IDENTITY, owner_field=None),
    TableDef("categories"),
    TableDef("themes"),
    TableDef("subjects"),
    TableDef("labels"),
    TableDef("tasks", parent_field="parent_task_id"),
    TableDef(
        "task_labels",
        kind=TableKind.JOIN,
        key_columns=("task_id", "label_id"),
        owner_field=None,
        scope_table="tasks",
        scope_field="task_id",
    ),
    TableDef("task_attachments"),
    TableDef("pending_items"),
    TableDef("user_preferences"),
)

_BY_NAME: Dict[str, TableDef] = {table.name: table for table in CATALOG}

IDENTITY_TABLE: TableDef = next(t for t in CATALOG if t.kind is TableKind.IDENTITY)

RESTORE_ORDER: Tuple[TableDef, ...] = tuple(t for t in CATALOG if t.syncable)

CLEAR_ORDER: Tuple[TableDef, ...] = tuple(reversed(RESTORE_ORDER))

SYNCABLE_TABLES: Tuple[str, ...] = tuple(t.name for t in RESTORE_ORDER)


def get_table(name: str) -> TableDef:
    """Look up a catalog entry by table name.

    Raises:
        KeyError: if the table is not in the catalog
    """
    return _BY_NAME[name]


def is_syncable(name: str) -> bool:
    """Whether local mutations against ``name`` may be uploaded."""
    table = _BY_NAME.get(name)
    return table is not None and table.syncable
