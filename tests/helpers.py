"""Shared test data and test doubles."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from tasksync.auth import CallerIdentity, Session
from tasksync.backend import AccessScope, Filter, QueryResult, RemoteBackend, SqlAlchemyBackend
from tasksync.catalog import RESTORE_ORDER
from tasksync.core.exceptions import BackendError
from tasksync.sync.mutations import MutationTransaction, QueuedMutation


def elevated_backend(engine: Any) -> SqlAlchemyBackend:
    """Elevated handle for tests (skips the credential check)."""
    return SqlAlchemyBackend(engine, AccessScope(is_elevated=True, purpose="test"))


def build_dataset(owner: str) -> Dict[str, List[Dict[str, Any]]]:
    """One user's rows across every syncable table, parents first."""
    p = owner
    return {
        "categories": [{"id": f"{p}-cat", "user_id": owner, "title": "Work"}],
        "themes": [
            {"id": f"{p}-theme", "user_id": owner, "category_id": f"{p}-cat", "title": "Clients"}
        ],
        "subjects": [
            {"id": f"{p}-subject", "theme_id": f"{p}-theme", "user_id": owner, "title": "Acme"}
        ],
        "labels": [
            {"id": f"{p}-label-a", "user_id": owner, "name": "urgent"},
            {"id": f"{p}-label-b", "user_id": owner, "name": "later"},
        ],
        "tasks": [
            {
                "id": f"{p}-task-1",
                "user_id": owner,
                "subject_id": f"{p}-subject",
                "title": "Draft proposal",
            },
            {
                "id": f"{p}-task-2",
                "user_id": owner,
                "parent_task_id": f"{p}-task-1",
                "title": "Outline",
            },
            {
                "id": f"{p}-task-3",
                "user_id": owner,
                "title": "Call back",
                "status": "waiting_for",
                "waiting_for_note": "Bob",
            },
        ],
        "task_labels": [
            {"task_id": f"{p}-task-1", "label_id": f"{p}-label-a"},
            {"task_id": f"{p}-task-2", "label_id": f"{p}-label-b"},
        ],
        "task_attachments": [
            {
                "id": f"{p}-att",
                "task_id": f"{p}-task-1",
                "user_id": owner,
                "file_name": "brief.pdf",
                "file_type": "application/pdf",
                "file_size": 1024,
                "storage_path": f"{owner}/brief.pdf",
            }
        ],
        "pending_items": [
            {"id": f"{p}-pending", "user_id": owner, "title": "Invoice", "task_id": f"{p}-task-3"}
        ],
        "user_preferences": [{"id": f"{p}-prefs", "user_id": owner}],
    }


DATASET_COUNTS = {
    "categories": 1,
    "themes": 1,
    "subjects": 1,
    "labels": 2,
    "tasks": 3,
    "task_labels": 2,
    "task_attachments": 1,
    "pending_items": 1,
    "user_preferences": 1,
}


def seed_profile(engine: Any, user_id: str, email: Optional[str] = None) -> None:
    """Create the identity row of ``user_id``."""
    elevated_backend(engine).insert(
        "profiles", [{"id": user_id, "email": email or f"{user_id}@example.com"}]
    ).raise_for_error()


def seed_user(engine: Any, user_id: str, email: Optional[str] = None) -> None:
    """Create ``user_id`` with the full dataset."""
    seed_profile(engine, user_id, email)
    backend = elevated_backend(engine)
    for table, rows in build_dataset(user_id).items():
        backend.insert(table, rows).raise_for_error()


def table_counts(engine: Any, owner: str) -> Dict[str, int]:
    """Row count per syncable table for ``owner``."""
    backend = elevated_backend(engine)
    counts = {}
    task_ids = [r["id"] for r in backend.select("tasks", [Filter.eq("user_id", owner)]).data]
    for table_def in RESTORE_ORDER:
        if table_def.owner_field:
            result = backend.select(table_def.name, [Filter.eq(table_def.owner_field, owner)])
        else:
            result = backend.select(table_def.name, [Filter.in_("task_id", task_ids)])
        counts[table_def.name] = len(result.raise_for_error().data)
    return counts


def make_session(
    user_id: str = "alice",
    owner_id: Optional[str] = None,
    expires_in: timedelta = timedelta(hours=1),
) -> Session:
    return Session(
        access_token=f"token-{user_id}",
        identity=CallerIdentity(user_id=user_id, owner_id=owner_id),
        expires_at=datetime.now(timezone.utc) + expires_in,
    )


class ListSource:
    """Transaction source over an in-memory list of mutation batches."""

    def __init__(self, batches: Sequence[Sequence[QueuedMutation]]):
        self.batches = [list(b) for b in batches]
        self.completed: List[int] = []

    def get_next_transaction(self) -> Optional[MutationTransaction]:
        if not self.batches:
            return None
        return MutationTransaction(len(self.completed) + 1, self.batches[0], self._complete)

    def _complete(self, transaction_id: int) -> None:
        self.batches.pop(0)
        self.completed.append(transaction_id)


class FaultyBackend(RemoteBackend):
    """Delegates to a real backend but fails chosen operations on chosen tables.

    ``failures`` maps an operation name to the tables it fails on.
    ``remaining`` limits how many times each failure fires (None = always).
    """

    def __init__(
        self,
        inner: RemoteBackend,
        failures: Mapping[str, Set[str]],
        remaining: Optional[int] = None,
    ):
        self.inner = inner
        self.scope = inner.scope
        self.failures = {op: set(tables) for op, tables in failures.items()}
        self.remaining = remaining
        self.calls: List[tuple] = []

    def _fail(self, op: str, table: str) -> Optional[QueryResult]:
        self.calls.append((op, table))
        if table not in self.failures.get(op, set()):
            return None
        if self.remaining is not None:
            if self.remaining <= 0:
                return None
            self.remaining -= 1
        return QueryResult(error=BackendError(f"simulated {op} failure", table=table))

    def select(self, table, filters=(), columns=None):
        return self._fail("select", table) or self.inner.select(table, filters, columns)

    def insert(self, table, rows):
        return self._fail("insert", table) or self.inner.insert(table, rows)

    def upsert(self, table, record):
        return self._fail("upsert", table) or self.inner.upsert(table, record)

    def update(self, table, values, filters):
        return self._fail("update", table) or self.inner.update(table, values, filters)

    def delete(self, table, filters):
        return self._fail("delete", table) or self.inner.delete(table, filters)
