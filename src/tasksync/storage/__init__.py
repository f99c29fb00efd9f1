"""Blob storage for snapshot documents."""

from pathlib import Path
from typing import Optional

from tasksync.config import Settings, get_settings
from tasksync.storage.base import (
    ObjectMetadata,
    StorageBackend,
    StorageFileNotFoundError,
    StorageType,
)
from tasksync.storage.local_backend import LocalStorageBackend
from tasksync.storage.s3_backend import S3StorageBackend


def create_storage_backend(settings: Optional[Settings] = None) -> StorageBackend:
    """Build the storage backend selected by ``settings.storage_backend``."""
    settings = settings or get_settings()

    if settings.storage_backend == StorageType.S3.value:
        return S3StorageBackend(
            {
                "bucket_name": settings.snapshot_bucket,
                "region": settings.aws_region,
                "access_key_id": settings.aws_access_key_id,
                "secret_access_key": settings.aws_secret_access_key,
                "endpoint_url": settings.s3_endpoint_url,
            }
        )

    return LocalStorageBackend(
        {"base_path": str(Path(settings.snapshot_local_path) / settings.snapshot_bucket)}
    )


__all__ = [
    "LocalStorageBackend",
    "ObjectMetadata",
    "S3StorageBackend",
    "StorageBackend",
    "StorageFileNotFoundError",
    "StorageType",
    "create_storage_backend",
]
