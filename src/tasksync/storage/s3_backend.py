"""AWS S3 storage backend."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tasksync.core.exceptions import StorageError
from tasksync.storage.base import ObjectMetadata, StorageBackend, StorageFileNotFoundError
from tasksync.utils.logging import get_logger

logger = get_logger(__name__)

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


class S3StorageBackend(StorageBackend):
    """AWS S3 implementation of storage backend."""

    def __init__(self, config: Dict[str, Any], client: Any = None):
        """
        Initialize S3 storage backend.

        Config should include:
        - bucket_name: S3 bucket name
        - region: AWS region
        - access_key_id: AWS access key ID (optional if using IAM role)
        - secret_access_key: AWS secret access key (optional if using IAM role)
        - endpoint_url: Custom endpoint (S3-compatible stores)

        Args:
            config: Backend configuration
            client: Pre-built S3 client (skips client construction)
        """
        super().__init__(config)
        self.bucket = self.config["bucket_name"]
        if client is not None:
            self.s3_client = client
        else:
            self._init_s3_client()

    def _validate_config(self) -> None:
        """Validate S3 backend configuration."""
        required = ["bucket_name", "region"]
        for field in required:
            if not self.config.get(field):
                raise StorageError(f"Missing required config field: {field}")

    def _init_s3_client(self) -> None:
        """Initialize S3 client."""
        try:
            client_config: Dict[str, Any] = {"region_name": self.config["region"]}

            # Add credentials if provided
            if self.config.get("access_key_id") and self.config.get("secret_access_key"):
                client_config["aws_access_key_id"] = self.config["access_key_id"]
                client_config["aws_secret_access_key"] = self.config["secret_access_key"]

            if self.config.get("endpoint_url"):
                client_config["endpoint_url"] = self.config["endpoint_url"]

            self.s3_client = boto3.client("s3", **client_config)
            logger.info("s3_client_initialized", bucket=self.bucket)

        except (BotoCoreError, ClientError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to initialize S3 client: {e}") from e

    def put(
        self, key: str, data: bytes, content_type: Optional[str] = None
    ) -> ObjectMetadata:
        """Upload an object to S3."""
        checksum = self.calculate_checksum(data)
        content_type = content_type or "application/octet-stream"
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata={"checksum": checksum},
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to upload to S3: {e}") from e

        now = datetime.now(timezone.utc)
        logger.info("s3_object_stored", bucket=self.bucket, key=key, size=len(data))
        return ObjectMetadata(
            key=key,
            size=len(data),
            content_type=content_type,
            checksum=checksum,
            created_at=now,
            modified_at=now,
        )

    def get(self, key: str) -> Tuple[bytes, ObjectMetadata]:
        """Retrieve an object from S3."""
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=key)
            data = response["Body"].read()
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise StorageFileNotFoundError(f"File not found: {key}") from e
            raise StorageError(f"Failed to download from S3: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to download from S3: {e}") from e

        return data, self._metadata(key, response)

    def head(self, key: str) -> ObjectMetadata:
        """Retrieve an object's metadata from S3."""
        try:
            response = self.s3_client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise StorageFileNotFoundError(f"File not found: {key}") from e
            raise StorageError(f"Failed to read S3 metadata: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to read S3 metadata: {e}") from e
        return self._metadata(key, response)

    def exists(self, key: str) -> bool:
        """Check if an object exists in S3."""
        try:
            self.head(key)
            return True
        except StorageFileNotFoundError:
            return False

    def delete(self, key: str) -> bool:
        """Delete an object from S3."""
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to delete from S3: {e}") from e

        logger.info("s3_object_deleted", bucket=self.bucket, key=key)
        return True

    def _metadata(self, key: str, response: Dict[str, Any]) -> ObjectMetadata:
        modified = response.get("LastModified") or datetime.now(timezone.utc)
        return ObjectMetadata(
            key=key,
            size=int(response.get("ContentLength", 0)),
            content_type=response.get("ContentType", "application/octet-stream"),
            checksum=response.get("Metadata", {}).get("checksum", ""),
            created_at=modified,
            modified_at=modified,
        )


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))
