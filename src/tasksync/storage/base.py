"""Base blob storage abstraction layer."""

import hashlib
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from tasksync.core.exceptions import StorageError
from tasksync.utils.logging import get_logger

logger = get_logger(__name__)


class StorageType(str, Enum):
    """Types of storage backends."""

    S3 = "s3"
    LOCAL = "local"


class ObjectMetadata:
    """Metadata for stored objects."""

    def __init__(
        self,
        key: str,
        size: int,
        content_type: str,
        checksum: str,
        created_at: datetime,
        modified_at: datetime,
    ):
        """Initialize object metadata."""
        self.key = key
        self.size = size
        self.content_type = content_type
        self.checksum = checksum
        self.created_at = created_at
        self.modified_at = modified_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary."""
        return {
            "key": self.key,
            "size": self.size,
            "content_type": self.content_type,
            "checksum": self.checksum,
            "created_at": self.created_at.isoformat(),
            "modified_at": self.modified_at.isoformat(),
        }


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize storage backend.

        Args:
            config: Backend-specific configuration
        """
        self.config = config
        self._validate_config()

    @abstractmethod
    def _validate_config(self) -> None:
        """Validate backend configuration."""

    @abstractmethod
    def put(
        self, key: str, data: bytes, content_type: Optional[str] = None
    ) -> ObjectMetadata:
        """
        Store an object, replacing any object under the same key.

        Args:
            key: Object key
            data: Object contents
            content_type: MIME type of the object

        Returns:
            ObjectMetadata of the stored object

        Raises:
            StorageError: if the write fails
        """

    @abstractmethod
    def get(self, key: str) -> Tuple[bytes, ObjectMetadata]:
        """
        Retrieve an object.

        Args:
            key: Object key

        Returns:
            Tuple of (contents, metadata)

        Raises:
            StorageFileNotFoundError: if no object exists under ``key``
            StorageError: if the read fails
        """

    @abstractmethod
    def head(self, key: str) -> ObjectMetadata:
        """
        Retrieve an object's metadata without its contents.

        Raises:
            StorageFileNotFoundError: if no object exists under ``key``
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """
        Check if an object exists.

        Args:
            key: Object key

        Returns:
            True if the object exists
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Delete an object.

        Args:
            key: Object key

        Returns:
            True if an object was removed, False if there was none

        Raises:
            StorageError: if the delete fails
        """

    def calculate_checksum(self, data: bytes) -> str:
        """
        Calculate SHA-256 checksum of data.

        Args:
            data: Object contents

        Returns:
            Hex digest of checksum
        """
        return hashlib.sha256(data).hexdigest()


class StorageFileNotFoundError(StorageError):
    """Raised when an object does not exist."""

    default_code = "STORAGE_NOT_FOUND"
