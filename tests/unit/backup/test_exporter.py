"""Tests for snapshot export."""

import pytest

from tasksync.backend import open_user_backend
from tasksync.backup import SnapshotExporter, SnapshotStore
from tasksync.catalog import CATALOG
from tasksync.core.exceptions import ConfigurationError, StorageError
from tasksync.storage import LocalStorageBackend
from tests.helpers import DATASET_COUNTS, FaultyBackend, elevated_backend, seed_profile, seed_user


class PickyStorage(LocalStorageBackend):
    """Local storage that refuses one key."""

    refused_key = "backup-bob.json"

    def put(self, key, data, content_type=None):
        if key == self.refused_key:
            raise StorageError(f"quota exceeded for {key}")
        return super().put(key, data, content_type)


@pytest.fixture
def seeded(engine):
    seed_user(engine, "alice")
    seed_user(engine, "bob")
    return engine


class TestBuildDocument:
    """Test reading one user's rows."""

    def test_every_catalog_table_present(self, seeded):
        result = SnapshotExporter(elevated_backend(seeded)).build_document("alice")
        document = result.document

        assert list(document.tables) == [t.name for t in CATALOG]
        assert document.user_id == "alice"
        assert document.version == "1.0"
        assert document.created_at
        assert result.complete
        assert result.tables_attempted == len(CATALOG)

    def test_only_the_users_rows(self, seeded):
        tables = SnapshotExporter(elevated_backend(seeded)).build_document("alice").document.tables

        assert [p["id"] for p in tables["profiles"]] == ["alice"]
        for name, count in DATASET_COUNTS.items():
            assert len(tables[name]) == count, name
        assert {t["user_id"] for t in tables["tasks"]} == {"alice"}
        assert {link["task_id"] for link in tables["task_labels"]} == {
            "alice-task-1",
            "alice-task-2",
        }

    def test_user_without_tasks(self, engine):
        seed_profile(engine, "carol")

        result = SnapshotExporter(elevated_backend(engine)).build_document("carol")

        assert result.complete
        assert result.document.tables["task_labels"] == []
        assert result.document.total_records == 1

    def test_owner_differs_from_identity(self, seeded):
        result = SnapshotExporter(elevated_backend(seeded)).build_document("alice@sso", "alice")

        assert result.document.user_id == "alice@sso"
        assert len(result.document.tables["tasks"]) == 3

    def test_failed_table_is_empty_and_reported(self, seeded):
        backend = FaultyBackend(elevated_backend(seeded), {"select": {"labels"}})

        result = SnapshotExporter(backend).build_document("alice")

        assert result.document.tables["labels"] == []
        assert [f.table for f in result.failures] == ["labels"]
        assert result.tables_succeeded == len(CATALOG) - 1
        assert len(result.document.tables["tasks"]) == 3

    def test_join_table_fails_with_its_scope_table(self, seeded):
        backend = FaultyBackend(elevated_backend(seeded), {"select": {"tasks"}})

        result = SnapshotExporter(backend).build_document("alice")

        assert {f.table for f in result.failures} == {"tasks", "task_labels"}
        assert result.document.tables["task_labels"] == []

    def test_requires_elevated_backend(self, seeded):
        with pytest.raises(ConfigurationError):
            SnapshotExporter(open_user_backend(seeded, "alice"))


class TestExport:
    """Test exporting into the snapshot store."""

    def test_export_stores_document(self, seeded, store):
        result = SnapshotExporter(elevated_backend(seeded), store).export("alice")

        stored = store.load("alice")
        assert stored == result.document
        assert stored.total_records == sum(DATASET_COUNTS.values()) + 1

    def test_export_summary(self, seeded, store):
        summary = SnapshotExporter(elevated_backend(seeded), store).export("alice").to_dict()

        assert summary["success"] is True
        assert summary["message"] == "Backup created successfully"
        assert summary["tables_count"] == len(CATALOG)
        assert summary["failures"] == []

    def test_export_without_store(self, seeded):
        with pytest.raises(ConfigurationError):
            SnapshotExporter(elevated_backend(seeded)).export("alice")

    def test_export_all(self, seeded, store):
        outcomes = SnapshotExporter(elevated_backend(seeded), store).export_all()

        assert [(o.user_id, o.email, o.success) for o in outcomes] == [
            ("alice", "alice@example.com", True),
            ("bob", "bob@example.com", True),
        ]
        assert store.load("bob").user_id == "bob"

    def test_export_all_continues_past_failures(self, seeded, tmp_path):
        store = SnapshotStore(PickyStorage({"base_path": str(tmp_path / "picky")}))

        outcomes = SnapshotExporter(elevated_backend(seeded), store).export_all()

        by_user = {o.user_id: o for o in outcomes}
        assert by_user["alice"].success
        assert not by_user["bob"].success
        assert "quota exceeded" in by_user["bob"].to_dict()["error"]
        assert store.load("alice").user_id == "alice"

    def test_export_all_with_no_users(self, engine, store):
        assert SnapshotExporter(elevated_backend(engine), store).export_all() == []
