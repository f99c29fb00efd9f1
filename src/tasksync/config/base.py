"""Base configuration settings."""

import os
import secrets
import warnings
from typing import Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values are read from the environment (case-insensitive) and from an
    optional ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "tasksync"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_format: str = "console"  # console | json

    # API
    api_prefix: str = "/api"
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    allowed_origins: list[str] = ["*"]
    request_timeout_seconds: float = Field(
        default=55.0,
        description="Upper bound for export/restore work inside one request",
    )

    # Remote relational store
    database_url: str = "sqlite:///./tasksync.db"
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Sync service the local runtime pulls remote changes from
    sync_endpoint_url: Optional[str] = Field(
        default=None, description="Endpoint handed to the local sync runtime"
    )

    # Sessions
    jwt_secret_key: str = Field(
        default_factory=lambda: os.getenv("JWT_SECRET_KEY", ""),
        validate_default=True,
        description="Signing key of user session tokens - MUST be set in production",
    )
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = "authenticated"

    # Elevated capabilities
    service_role_key: Optional[str] = Field(
        default=None,
        description="Credential that unlocks cross-row (elevated) backend access",
    )
    cron_secret: Optional[str] = Field(
        default=None, description="Static secret authorizing the scheduled export"
    )

    # Snapshot storage
    storage_backend: str = "local"  # local | s3
    snapshot_bucket: str = "backups"
    snapshot_local_path: str = "./var/snapshots"
    aws_region: str = "us-east-1"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    s3_endpoint_url: Optional[str] = None

    # Restore
    restore_batch_size: int = 100

    # Local replica and upload loop
    local_replica_path: str = "./var/replica.db"
    upload_max_attempts: int = 5
    upload_backoff_seconds: float = 1.0
    upload_backoff_max_seconds: float = 60.0

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret_key(cls, v: str, info: ValidationInfo) -> str:
        """Refuse an empty signing key outside development."""
        if not v:
            env = os.getenv("ENVIRONMENT", "development").lower()
            if env in ["production", "staging"]:
                raise ValueError(
                    f"{info.field_name} must be set in the {env} environment"
                )
            generated = secrets.token_urlsafe(48)
            warnings.warn(
                f"{info.field_name} is not set; generated a temporary key for "
                f"development. Sessions will not survive a restart.",
                stacklevel=2,
            )
            return generated
        return v

    @field_validator("restore_batch_size", "upload_max_attempts")
    @classmethod
    def validate_positive(cls, v: int, info: ValidationInfo) -> int:
        """Batch sizes and attempt counts must be positive."""
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1, got {v}")
        return v

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        """Only the local and s3 backends are wired."""
        v = v.lower()
        if v not in ("local", "s3"):
            raise ValueError(f"Unsupported storage backend: {v}")
        return v

    @property
    def is_sqlite(self) -> bool:
        """Whether the remote store is SQLite (tests, local development)."""
        return self.database_url.startswith("sqlite")
