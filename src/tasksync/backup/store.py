"""Keeps at most one snapshot per user in blob storage."""

from typing import Any, Dict

from tasksync.backup.snapshot import SNAPSHOT_CONTENT_TYPE, SnapshotDocument, snapshot_key
from tasksync.core.exceptions import MalformedInputError, SnapshotNotFoundError, StorageError
from tasksync.storage import ObjectMetadata, StorageBackend, StorageFileNotFoundError
from tasksync.utils.logging import get_logger

logger = get_logger(__name__)


class SnapshotStore:
    """Snapshot persistence on top of a storage backend."""

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    def save(self, document: SnapshotDocument) -> ObjectMetadata:
        """
        Replace the user's snapshot with ``document``.

        The previous object is removed before the new one is written.

        Raises:
            StorageError: if the delete or the write fails
        """
        key = snapshot_key(document.user_id)
        payload = document.to_json()
        try:
            self.storage.delete(key)
            metadata = self.storage.put(key, payload, content_type=SNAPSHOT_CONTENT_TYPE)
        except StorageError as e:
            logger.error("snapshot_store_failed", key=key, error=e.message)
            raise

        logger.info("snapshot_stored", key=key, size=metadata.size)
        return metadata

    def load_raw(self, user_id: str) -> bytes:
        """
        Return the stored snapshot bytes as written.

        Raises:
            SnapshotNotFoundError: if the user has no snapshot
        """
        try:
            data, _ = self.storage.get(snapshot_key(user_id))
        except StorageFileNotFoundError as e:
            raise SnapshotNotFoundError("No backup found. Create a backup first.") from e
        return data

    def load(self, user_id: str) -> SnapshotDocument:
        """Return the user's parsed snapshot."""
        return SnapshotDocument.from_json(self.load_raw(user_id))

    def status(self, user_id: str) -> Dict[str, Any]:
        """Describe the user's snapshot, if there is one."""
        key = snapshot_key(user_id)
        try:
            metadata = self.storage.head(key)
        except StorageFileNotFoundError:
            return {"exists": False, "message": "No backup found"}

        status: Dict[str, Any] = {
            "exists": True,
            "file_size": metadata.size,
            "updated_at": metadata.modified_at.isoformat(),
        }
        try:
            document = self.load(user_id)
        except (SnapshotNotFoundError, MalformedInputError) as e:
            # Size and timestamp are still worth reporting
            logger.warning("snapshot_unreadable", key=key, error=e.message)
            return status

        status.update(
            version=document.version,
            created_at=document.created_at,
            tables_count=document.tables_count,
            total_records=document.total_records,
        )
        return status
