"""Local filesystem storage backend.

Objects are written under ``base_path/data`` with a JSON metadata record
beside them under ``base_path/metadata``. Used for development and tests.
"""

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from tasksync.core.exceptions import StorageError
from tasksync.storage.base import ObjectMetadata, StorageBackend, StorageFileNotFoundError
from tasksync.utils.logging import get_logger

logger = get_logger(__name__)


class LocalStorageBackend(StorageBackend):
    """Filesystem storage backend."""

    def __init__(self, config: Dict[str, Any]):
        """Initialize local storage backend.

        Args:
            config: Configuration dictionary containing:
                - base_path: Base directory for storage
                - create_dirs: Whether to create directories if missing
        """
        super().__init__(config)
        self.base_path = Path(
            config.get("base_path", os.path.join(tempfile.gettempdir(), "tasksync_storage"))
        )
        self.create_dirs = config.get("create_dirs", True)

        self._init_storage()

    def _validate_config(self) -> None:
        """Validate local backend configuration."""
        base_path = self.config.get("base_path")
        if base_path is not None and not str(base_path):
            raise StorageError("base_path must not be empty")

    def _init_storage(self) -> None:
        """Initialize storage directories."""
        if self.create_dirs:
            (self.base_path / "data").mkdir(parents=True, exist_ok=True)
            (self.base_path / "metadata").mkdir(parents=True, exist_ok=True)

    def _sanitize_key(self, key: str) -> str:
        """Sanitize storage key to prevent path traversal attacks."""
        # Remove any path traversal attempts
        key = key.replace("..", "")
        key = key.replace("~", "")
        key = os.path.normpath(key).lstrip("/\\")

        if not key or key == ".":
            raise StorageError("Empty storage key")

        # Replace path separators with safe character
        return key.replace("/", "_").replace("\\", "_")

    def _data_path(self, key: str) -> Path:
        return self.base_path / "data" / self._sanitize_key(key)

    def _metadata_path(self, key: str) -> Path:
        return self.base_path / "metadata" / f"{self._sanitize_key(key)}.json"

    def put(
        self, key: str, data: bytes, content_type: Optional[str] = None
    ) -> ObjectMetadata:
        """Store an object on disk."""
        now = datetime.now(timezone.utc)
        metadata = ObjectMetadata(
            key=key,
            size=len(data),
            content_type=content_type or "application/octet-stream",
            checksum=self.calculate_checksum(data),
            created_at=now,
            modified_at=now,
        )

        try:
            self._write_atomic(self._data_path(key), data)
            self._write_atomic(
                self._metadata_path(key), json.dumps(metadata.to_dict()).encode("utf-8")
            )
        except OSError as e:
            raise StorageError(f"Failed to store {key}: {e}") from e

        logger.debug("object_stored", key=key, size=metadata.size)
        return metadata

    def get(self, key: str) -> Tuple[bytes, ObjectMetadata]:
        """Retrieve an object from disk."""
        metadata = self.head(key)
        try:
            data = self._data_path(key).read_bytes()
        except FileNotFoundError as e:
            raise StorageFileNotFoundError(f"File not found: {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e
        return data, metadata

    def head(self, key: str) -> ObjectMetadata:
        """Read an object's metadata record."""
        try:
            with open(self._metadata_path(key), encoding="utf-8") as f:
                record = json.load(f)
        except FileNotFoundError as e:
            raise StorageFileNotFoundError(f"File not found: {key}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read metadata for {key}: {e}") from e

        return ObjectMetadata(
            key=record["key"],
            size=record["size"],
            content_type=record["content_type"],
            checksum=record["checksum"],
            created_at=datetime.fromisoformat(record["created_at"]),
            modified_at=datetime.fromisoformat(record["modified_at"]),
        )

    def exists(self, key: str) -> bool:
        """Check if an object exists on disk."""
        return self._data_path(key).exists()

    def delete(self, key: str) -> bool:
        """Delete an object and its metadata record."""
        removed = False
        try:
            for path in (self._data_path(key), self._metadata_path(key)):
                if path.exists():
                    path.unlink()
                    removed = True
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

        if removed:
            logger.debug("object_deleted", key=key)
        return removed

    def _write_atomic(self, path: Path, data: bytes) -> None:
        """Write through a temp file so readers never see a torn object."""
        fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
