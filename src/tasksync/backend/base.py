"""Remote backend abstraction layer.

The connector, the exporter and the importer only ever talk to the remote
store through :class:`RemoteBackend`: scoped read, insert, upsert, update and
delete-by-filter, one table at a time. Every operation returns a
:class:`QueryResult` carrying either data or an error, so callers that keep
going after a failed table (export, restore) never need exception-driven
control flow, while callers that must stop (upload) call
:meth:`QueryResult.raise_for_error`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from tasksync.core.exceptions import BackendError

Row = Dict[str, Any]


@dataclass(frozen=True)
class Filter:
    """Equality or membership condition on one column."""

    column: str
    op: str
    value: Any

    @classmethod
    def eq(cls, column: str, value: Any) -> "Filter":
        """``column = value``."""
        return cls(column, "eq", value)

    @classmethod
    def in_(cls, column: str, values: Iterable[Any]) -> "Filter":
        """``column IN (values)``."""
        return cls(column, "in", tuple(values))


@dataclass
class QueryResult:
    """Outcome of one table operation."""

    data: List[Row] = field(default_factory=list)
    count: int = 0
    error: Optional[BackendError] = None

    @property
    def ok(self) -> bool:
        """True when the operation succeeded."""
        return self.error is None

    def raise_for_error(self) -> "QueryResult":
        """Raise the captured error, if any; return self otherwise."""
        if self.error is not None:
            raise self.error
        return self


@dataclass(frozen=True)
class AccessScope:
    """Which rows a backend handle may see and touch.

    A user scope behaves like row-level security for ``owner_id``. An
    elevated scope sees every row; it is only handed out by
    :func:`tasksync.backend.grant_elevated_scope`, which checks the service
    credential and leaves an audit record.
    """

    owner_id: Optional[str] = None
    is_elevated: bool = False
    purpose: Optional[str] = None

    @classmethod
    def for_user(cls, owner_id: str) -> "AccessScope":
        """Scope limited to the rows owned by ``owner_id``."""
        if not owner_id:
            raise ValueError("A user scope needs an owner id")
        return cls(owner_id=owner_id)

    def describe(self) -> str:
        """Short human-readable form for logs."""
        if self.is_elevated:
            return f"elevated:{self.purpose or 'unspecified'}"
        return f"user:{self.owner_id}"


class RemoteBackend(ABC):
    """Abstract base class for remote stores."""

    scope: AccessScope

    @property
    def is_elevated(self) -> bool:
        """Whether this handle bypasses per-row ownership checks."""
        return self.scope.is_elevated

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        columns: Optional[Sequence[str]] = None,
    ) -> QueryResult:
        """
        Read rows from a table.

        Args:
            table: Table name
            filters: Conditions all rows must satisfy
            columns: Columns to return (all when None)

        Returns:
            QueryResult with the matching rows
        """

    @abstractmethod
    def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> QueryResult:
        """
        Insert rows in one statement; all or nothing.

        Args:
            table: Table name
            rows: Full rows to insert

        Returns:
            QueryResult whose count is the number of inserted rows
        """

    @abstractmethod
    def upsert(self, table: str, record: Mapping[str, Any]) -> QueryResult:
        """
        Insert a row, or replace the provided columns of the row with the same key.

        Args:
            table: Table name
            record: Row including its key columns

        Returns:
            QueryResult whose count is 1 on success
        """

    @abstractmethod
    def update(
        self, table: str, values: Mapping[str, Any], filters: Sequence[Filter]
    ) -> QueryResult:
        """
        Update the given columns on every matching row.

        Args:
            table: Table name
            values: Columns to set
            filters: Conditions selecting the rows

        Returns:
            QueryResult whose count is the number of updated rows
        """

    @abstractmethod
    def delete(self, table: str, filters: Sequence[Filter]) -> QueryResult:
        """
        Delete every matching row.

        Args:
            table: Table name
            filters: Conditions selecting the rows

        Returns:
            QueryResult whose count is the number of deleted rows
        """
