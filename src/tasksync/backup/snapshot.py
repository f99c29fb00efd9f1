"""Snapshot document: the versioned export of one user's rows."""

import json
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, ValidationError

from tasksync.core.exceptions import MalformedInputError

SNAPSHOT_VERSION = "1.0"
SNAPSHOT_CONTENT_TYPE = "application/json"


def snapshot_key(user_id: str) -> str:
    """Storage key of a user's snapshot; one object per user.

    The id is percent-encoded, dots and tildes included, so the key holds
    no path characters and distinct ids never share a key.
    """
    encoded = quote(user_id, safe="").replace(".", "%2E").replace("~", "%7E")
    return f"backup-{encoded}.json"


class SnapshotDocument(BaseModel):
    """Immutable export of one user's data across the catalog tables."""

    model_config = ConfigDict(frozen=True)

    version: str = SNAPSHOT_VERSION
    created_at: Optional[str] = None
    user_id: str
    tables: Dict[str, List[Dict[str, Any]]]

    @property
    def tables_count(self) -> int:
        """Number of table sections."""
        return len(self.tables)

    @property
    def total_records(self) -> int:
        """Number of rows across all sections."""
        return sum(len(rows) for rows in self.tables.values())

    def to_json(self) -> bytes:
        """Serialize to the wire format (2-space indented JSON)."""
        return json.dumps(self.model_dump(), indent=2, default=str).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes) -> "SnapshotDocument":
        """Parse a stored snapshot.

        Raises:
            MalformedInputError: if ``raw`` is not a valid snapshot document
        """
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MalformedInputError(f"Snapshot is not valid JSON: {e}") from e
        return parse_document(payload)


def parse_document(raw: Any) -> SnapshotDocument:
    """
    Validate a snapshot document received from a caller.

    The document must be an object with a version, a user id and a non-empty
    ``tables`` object whose values are lists of row objects.

    Raises:
        MalformedInputError: describing the first problem found
    """
    if isinstance(raw, SnapshotDocument):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        raise MalformedInputError("Invalid backup format: expected a JSON object")

    if not raw.get("version") or not isinstance(raw.get("version"), str):
        raise MalformedInputError("Invalid backup format: missing version")
    if not raw.get("user_id") or not isinstance(raw.get("user_id"), str):
        raise MalformedInputError("Invalid backup format: missing user_id")

    tables = raw.get("tables")
    if not isinstance(tables, Mapping) or not tables:
        raise MalformedInputError("Invalid backup format: missing tables")
    for name, rows in tables.items():
        if not isinstance(rows, list) or not all(isinstance(r, Mapping) for r in rows):
            raise MalformedInputError(
                f"Invalid backup format: table {name!r} must be a list of rows"
            )

    try:
        return SnapshotDocument.model_validate(dict(raw))
    except ValidationError as e:
        raise MalformedInputError(f"Invalid backup format: {e.error_count()} error(s)") from e
