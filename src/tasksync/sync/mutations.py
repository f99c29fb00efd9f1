"""Queued local mutations and the values exchanged with the sync runtime."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol


class MutationKind(str, Enum):
    """Kind of a queued local write."""

    UPSERT = "PUT"
    PARTIAL_UPDATE = "PATCH"
    DELETE = "DELETE"


@dataclass(frozen=True)
class QueuedMutation:
    """One local write awaiting upload.

    ``data`` is the full record for an upsert, the changed fields for a
    partial update and unused for a delete.
    """

    kind: MutationKind
    table: str
    row_id: str
    data: Optional[Dict[str, Any]] = None


class MutationTransaction:
    """Ordered batch of mutations acknowledged as a whole."""

    def __init__(
        self,
        transaction_id: int,
        mutations: List[QueuedMutation],
        on_complete: Callable[[int], None],
    ):
        """
        Initialize the transaction.

        Args:
            transaction_id: Identifier assigned by the local replica
            mutations: Mutations in the order they were written
            on_complete: Called once with the id when acknowledged
        """
        self.transaction_id = transaction_id
        self.mutations = list(mutations)
        self._on_complete = on_complete
        self._completed = False

    @property
    def completed(self) -> bool:
        """Whether the transaction has been acknowledged."""
        return self._completed

    def complete(self) -> None:
        """Acknowledge the transaction so it is never handed out again."""
        if self._completed:
            return
        self._on_complete(self.transaction_id)
        self._completed = True

    def __len__(self) -> int:
        return len(self.mutations)


class TransactionSource(Protocol):
    """Anything that hands out pending transactions, oldest first."""

    def get_next_transaction(self) -> Optional[MutationTransaction]:
        """Return the oldest unacknowledged transaction, or None."""
        ...


@dataclass(frozen=True)
class SyncCredentials:
    """What the local sync runtime needs to keep pulling remote changes."""

    endpoint: str
    token: str
    expires_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire form with the expiry as an ISO-8601 string."""
        return {
            "endpoint": self.endpoint,
            "token": self.token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass
class UploadSummary:
    """Outcome of one acknowledged upload pass."""

    transaction_id: int
    applied: int = 0
    skipped: List[str] = field(default_factory=list)
