"""SQLite-backed local replica with an ordered mutation queue."""

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from tasksync.sync.mutations import MutationKind, MutationTransaction, QueuedMutation
from tasksync.utils.logging import get_logger

logger = get_logger(__name__)

MEMORY_PATH = ":memory:"


class LocalReplica:
    """Offline copy of the user's rows plus the writes not yet uploaded.

    Every write updates the stored row and appends a mutation to the queue.
    Writes made inside :meth:`transaction` share one queued transaction;
    writes outside it each get their own.
    """

    def __init__(self, path: str = MEMORY_PATH):
        """Initialize local replica.

        Args:
            path: Database file, or ``":memory:"``
        """
        if path != MEMORY_PATH:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._current_tx: Optional[int] = None

        self._init_database()

    def _init_database(self) -> None:
        """Initialize SQLite database schema."""
        with self._lock:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS replica_rows (
                    table_name TEXT NOT NULL,
                    row_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (table_name, row_id)
                );

                CREATE TABLE IF NOT EXISTS replica_transactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS mutation_queue (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    tx_id INTEGER NOT NULL REFERENCES replica_transactions(id),
                    op TEXT NOT NULL,
                    table_name TEXT NOT NULL,
                    row_id TEXT NOT NULL,
                    data TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_mutation_queue_tx ON mutation_queue(tx_id);
            """
            )
            self._conn.commit()

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    @contextmanager
    def transaction(self) -> Iterator["LocalReplica"]:
        """Group the writes of the block into one queued transaction.

        Nothing is queued if the block raises.
        """
        with self._lock:
            if self._current_tx is not None:
                # Nested blocks join the outer transaction
                yield self
                return

            self._current_tx = self._open_transaction()
            try:
                yield self
                self._discard_if_empty(self._current_tx)
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
            finally:
                self._current_tx = None

    def put(self, table: str, row_id: str, record: Mapping[str, Any]) -> None:
        """Store a full row and queue an upsert."""
        data = dict(record)
        with self._write() as tx_id:
            self._store_row(table, row_id, data)
            self._enqueue(tx_id, MutationKind.UPSERT, table, row_id, data)

    def patch(self, table: str, row_id: str, changes: Mapping[str, Any]) -> None:
        """Merge ``changes`` into a stored row and queue a partial update."""
        changes = dict(changes)
        with self._write() as tx_id:
            current = self.get(table, row_id) or {}
            current.update(changes)
            self._store_row(table, row_id, current)
            self._enqueue(tx_id, MutationKind.PARTIAL_UPDATE, table, row_id, changes)

    def delete(self, table: str, row_id: str) -> None:
        """Remove a stored row and queue a delete."""
        with self._write() as tx_id:
            self._conn.execute(
                "DELETE FROM replica_rows WHERE table_name = ? AND row_id = ?",
                (table, row_id),
            )
            self._enqueue(tx_id, MutationKind.DELETE, table, row_id, None)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored row, or None."""
        with self._lock:
            row = self._conn.execute(
                "SELECT data FROM replica_rows WHERE table_name = ? AND row_id = ?",
                (table, row_id),
            ).fetchone()
        return json.loads(row["data"]) if row else None

    def pending_count(self) -> int:
        """Number of queued mutations not yet acknowledged."""
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) AS n FROM mutation_queue").fetchone()
        return int(row["n"])

    def get_next_transaction(self) -> Optional[MutationTransaction]:
        """Return the oldest unacknowledged transaction, or None."""
        with self._lock:
            head = self._conn.execute(
                "SELECT MIN(tx_id) AS tx_id FROM mutation_queue"
            ).fetchone()
            if head is None or head["tx_id"] is None:
                return None
            tx_id = int(head["tx_id"])
            rows = self._conn.execute(
                """
                SELECT op, table_name, row_id, data
                FROM mutation_queue
                WHERE tx_id = ?
                ORDER BY id
            """,
                (tx_id,),
            ).fetchall()

        mutations: List[QueuedMutation] = [
            QueuedMutation(
                kind=MutationKind(row["op"]),
                table=row["table_name"],
                row_id=row["row_id"],
                data=json.loads(row["data"]) if row["data"] is not None else None,
            )
            for row in rows
        ]
        return MutationTransaction(tx_id, mutations, self._acknowledge)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @contextmanager
    def _write(self) -> Iterator[int]:
        """Yield the transaction id a single write belongs to."""
        with self._lock:
            if self._current_tx is not None:
                yield self._current_tx
                return
            tx_id = self._open_transaction()
            try:
                yield tx_id
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _open_transaction(self) -> int:
        cursor = self._conn.execute(
            "INSERT INTO replica_transactions (created_at) VALUES (?)", (_now(),)
        )
        return int(cursor.lastrowid)

    def _discard_if_empty(self, tx_id: int) -> None:
        # A block without writes has nothing to acknowledge later
        queued = self._conn.execute(
            "SELECT 1 FROM mutation_queue WHERE tx_id = ? LIMIT 1", (tx_id,)
        ).fetchone()
        if queued is None:
            self._conn.execute("DELETE FROM replica_transactions WHERE id = ?", (tx_id,))

    def _store_row(self, table: str, row_id: str, data: Dict[str, Any]) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO replica_rows (table_name, row_id, data, updated_at)
            VALUES (?, ?, ?, ?)
        """,
            (table, row_id, json.dumps(data), _now()),
        )

    def _enqueue(
        self,
        tx_id: int,
        kind: MutationKind,
        table: str,
        row_id: str,
        data: Optional[Dict[str, Any]],
    ) -> None:
        self._conn.execute(
            """
            INSERT INTO mutation_queue (tx_id, op, table_name, row_id, data)
            VALUES (?, ?, ?, ?, ?)
        """,
            (tx_id, kind.value, table, row_id, json.dumps(data) if data is not None else None),
        )

    def _acknowledge(self, tx_id: int) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM mutation_queue WHERE tx_id = ?", (tx_id,))
            self._conn.execute("DELETE FROM replica_transactions WHERE id = ?", (tx_id,))
            self._conn.commit()
        logger.debug("transaction_acknowledged", transaction_id=tx_id)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
