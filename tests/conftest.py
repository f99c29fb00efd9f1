"""Test configuration for tasksync.

Every test gets its own in-memory SQLite remote store (foreign keys
enforced) and its own snapshot directory under ``tmp_path``.
"""

import os

# Set testing environment BEFORE any tasksync imports read settings
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("JWT_SECRET_KEY", "tasksync-test-signing-key")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from tasksync.api.dependencies import get_remote_engine, get_snapshot_store  # noqa: E402
from tasksync.backup import SnapshotStore  # noqa: E402
from tasksync.config import Settings, get_settings  # noqa: E402
from tasksync.core.database import create_remote_engine, init_db  # noqa: E402
from tasksync.main import create_app  # noqa: E402
from tasksync.storage import LocalStorageBackend  # noqa: E402

TEST_JWT_SECRET = "tasksync-test-signing-key"
TEST_SERVICE_ROLE_KEY = "service-role-test-key"
TEST_CRON_SECRET = "cron-test-secret"
TEST_SYNC_ENDPOINT = "https://sync.example.test"


@pytest.fixture
def settings(tmp_path):
    """Settings wired to per-test resources."""
    return Settings(
        environment="testing",
        database_url="sqlite://",
        jwt_secret_key=TEST_JWT_SECRET,
        service_role_key=TEST_SERVICE_ROLE_KEY,
        cron_secret=TEST_CRON_SECRET,
        sync_endpoint_url=TEST_SYNC_ENDPOINT,
        storage_backend="local",
        snapshot_local_path=str(tmp_path / "snapshots"),
        local_replica_path=str(tmp_path / "replica.db"),
        upload_max_attempts=3,
        upload_backoff_seconds=0.0,
        upload_backoff_max_seconds=0.0,
    )


@pytest.fixture
def engine(settings):
    """Fresh in-memory remote store with the entity tables created."""
    engine = create_remote_engine(settings)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def storage(tmp_path):
    """Local blob storage under the test's temp directory."""
    return LocalStorageBackend({"base_path": str(tmp_path / "blobs")})


@pytest.fixture
def store(storage):
    """Snapshot store over local storage."""
    return SnapshotStore(storage)


@pytest.fixture
def app(settings, engine, store):
    """Application with its resources overridden."""
    application = create_app(settings)
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_remote_engine] = lambda: engine
    application.dependency_overrides[get_snapshot_store] = lambda: store
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Test client (lifespan not run; tables come from the engine fixture)."""
    return TestClient(app)
