"""Tests for snapshot restore."""

import pytest

from tasksync.auth import CallerIdentity
from tasksync.backend import Filter, open_user_backend
from tasksync.backup import RestoreStatus, SnapshotExporter, SnapshotImporter
from tasksync.backup.importer import _parents_first
from tasksync.catalog import CLEAR_ORDER, RESTORE_ORDER
from tasksync.core.exceptions import ConfigurationError, MalformedInputError, OwnershipViolationError
from tests.helpers import (
    DATASET_COUNTS,
    FaultyBackend,
    build_dataset,
    elevated_backend,
    seed_profile,
    seed_user,
    table_counts,
)

ALICE = CallerIdentity("alice")
EMPTY_COUNTS = {name: 0 for name in DATASET_COUNTS}


def snapshot_of(user_id, tables=None, created_at="2026-01-05T10:00:00+00:00"):
    return {
        "version": "1.0",
        "created_at": created_at,
        "user_id": user_id,
        "tables": tables if tables is not None else build_dataset(user_id),
    }


@pytest.fixture
def seeded(engine):
    seed_user(engine, "alice")
    seed_user(engine, "bob")
    return engine


@pytest.fixture
def importer(seeded, settings):
    return SnapshotImporter(elevated_backend(seeded), settings=settings)


class TestRestore:
    """Test the clear and insert phases."""

    def test_round_trip(self, seeded, settings):
        exported = SnapshotExporter(elevated_backend(seeded)).build_document("alice").document
        elevated_backend(seeded).delete("user_preferences", [Filter.eq("user_id", "alice")])
        open_user_backend(seeded, "alice").update(
            "tasks", {"title": "changed"}, [Filter.eq("id", "alice-task-1")]
        )

        report = SnapshotImporter(elevated_backend(seeded), settings=settings).restore(
            exported, ALICE
        )

        assert report.success, report.to_dict()
        assert table_counts(seeded, "alice") == DATASET_COUNTS
        task = elevated_backend(seeded).select("tasks", [Filter.eq("id", "alice-task-1")]).data[0]
        assert task["title"] == "Draft proposal"
        assert report.backup_date == exported.created_at

    def test_report_counts(self, importer):
        report = importer.restore(snapshot_of("alice"), ALICE)

        assert report.status is RestoreStatus.SUCCEEDED
        assert report.total_records_restored == sum(DATASET_COUNTS.values())
        assert [r.table for r in report.results] == [t.name for t in RESTORE_ORDER]
        assert {r.table: r.deleted for r in report.results} == DATASET_COUNTS
        assert {r.table: r.inserted for r in report.results} == DATASET_COUNTS

    def test_restore_is_repeatable(self, importer, seeded):
        importer.restore(snapshot_of("alice"), ALICE)
        report = importer.restore(snapshot_of("alice"), ALICE)

        assert report.success
        assert table_counts(seeded, "alice") == DATASET_COUNTS

    def test_other_users_untouched(self, importer, seeded):
        importer.restore(snapshot_of("alice", {"labels": []}), ALICE)

        assert table_counts(seeded, "alice") == EMPTY_COUNTS
        assert table_counts(seeded, "bob") == DATASET_COUNTS

    def test_clears_children_before_parents(self, seeded, settings):
        backend = FaultyBackend(elevated_backend(seeded), {})

        SnapshotImporter(backend, settings=settings).restore(snapshot_of("alice"), ALICE)

        deletes = [table for op, table in backend.calls if op == "delete"]
        inserts = [table for op, table in backend.calls if op == "insert"]
        assert deletes == [t.name for t in CLEAR_ORDER]
        assert inserts == [t.name for t in RESTORE_ORDER]

    def test_ownership_violation_touches_nothing(self, importer, seeded):
        with pytest.raises(OwnershipViolationError, match="different user"):
            importer.restore(snapshot_of("bob"), ALICE)

        assert table_counts(seeded, "alice") == DATASET_COUNTS
        assert table_counts(seeded, "bob") == DATASET_COUNTS

    def test_malformed_document_touches_nothing(self, importer, seeded):
        with pytest.raises(MalformedInputError):
            importer.restore({"version": "1.0", "user_id": "alice"}, ALICE)

        assert table_counts(seeded, "alice") == DATASET_COUNTS

    def test_rows_are_stamped_with_callers_owner(self, engine, settings):
        seed_profile(engine, "alice-v2")
        importer = SnapshotImporter(elevated_backend(engine), settings=settings)

        # Exported before the account was recreated under a new internal id
        report = importer.restore(snapshot_of("alice"), CallerIdentity("alice", "alice-v2"))

        assert report.success, report.to_dict()
        assert table_counts(engine, "alice-v2") == DATASET_COUNTS

    def test_missing_owner_field_is_filled_in(self, importer, seeded):
        tables = {"labels": [{"id": "alice-label-x", "name": "no owner"}]}

        report = importer.restore(snapshot_of("alice", tables), ALICE)

        assert report.success
        (label,) = elevated_backend(seeded).select("labels", [Filter.eq("user_id", "alice")]).data
        assert label["id"] == "alice-label-x"

    def test_one_failing_table(self, seeded, settings):
        backend = FaultyBackend(elevated_backend(seeded), {"insert": {"pending_items"}})

        report = SnapshotImporter(backend, settings=settings).restore(snapshot_of("alice"), ALICE)

        failed = [r for r in report.results if r.failed]
        assert [r.table for r in failed] == ["pending_items"]
        assert "simulated insert failure" in failed[0].error
        assert report.status is RestoreStatus.PARTIAL
        assert not report.success
        counts = table_counts(seeded, "alice")
        assert counts["pending_items"] == 0
        assert counts["user_preferences"] == 1
        assert report.total_records_restored == sum(DATASET_COUNTS.values()) - 1

    def test_every_table_failing(self, seeded, settings):
        tables = {t.name for t in RESTORE_ORDER}
        backend = FaultyBackend(elevated_backend(seeded), {"insert": tables})

        report = SnapshotImporter(backend, settings=settings).restore(snapshot_of("alice"), ALICE)

        assert report.status is RestoreStatus.FAILED
        assert report.total_records_restored == 0

    def test_clear_failure_is_reported(self, seeded, settings):
        backend = FaultyBackend(elevated_backend(seeded), {"delete": {"user_preferences"}})

        report = SnapshotImporter(backend, settings=settings).restore(snapshot_of("alice"), ALICE)

        prefs = next(r for r in report.results if r.table == "user_preferences")
        assert prefs.clear_error
        assert prefs.to_dict()["clear_error"] == prefs.clear_error
        assert not report.success
        assert table_counts(seeded, "alice")["tasks"] == 3

    def test_batches(self, seeded, settings):
        backend = FaultyBackend(elevated_backend(seeded), {})

        report = SnapshotImporter(backend, batch_size=1, settings=settings).restore(
            snapshot_of("alice"), ALICE
        )

        assert report.success
        assert backend.calls.count(("insert", "tasks")) == 3

    def test_failed_batch_stops_table(self, seeded, settings):
        backend = FaultyBackend(elevated_backend(seeded), {"insert": {"labels"}}, remaining=1)

        report = SnapshotImporter(backend, batch_size=1, settings=settings).restore(
            snapshot_of("alice", {"labels": build_dataset("alice")["labels"]}), ALICE
        )

        labels = next(r for r in report.results if r.table == "labels")
        assert labels.inserted == 0
        assert labels.error
        assert backend.calls.count(("insert", "labels")) == 1

    def test_children_listed_before_parents(self, importer, seeded):
        tables = build_dataset("alice")
        tables["tasks"] = list(reversed(tables["tasks"]))

        report = importer.restore(snapshot_of("alice", tables), ALICE)

        assert report.success, report.to_dict()

    def test_dangling_join_rows_are_skipped(self, importer, seeded):
        tables = build_dataset("alice")
        tables["task_labels"].append({"task_id": "bob-task-1", "label_id": "alice-label-a"})
        tables["task_labels"].append({"task_id": "alice-task-3", "label_id": "gone"})

        report = importer.restore(snapshot_of("alice", tables), ALICE)

        links = next(r for r in report.results if r.table == "task_labels")
        assert report.success
        assert links.inserted == 2
        assert links.skipped == 2
        assert table_counts(seeded, "bob")["task_labels"] == 2

    def test_identity_and_unknown_tables_ignored(self, importer, seeded):
        tables = build_dataset("alice")
        tables["profiles"] = [{"id": "alice", "email": "changed@example.com"}]
        tables["local_drafts"] = [{"id": "d-1"}]

        report = importer.restore(snapshot_of("alice", tables), ALICE)

        assert report.success
        profile = elevated_backend(seeded).select("profiles", [Filter.eq("id", "alice")]).data[0]
        assert profile["email"] == "alice@example.com"

    def test_requires_elevated_backend(self, seeded, settings):
        with pytest.raises(ConfigurationError):
            SnapshotImporter(open_user_backend(seeded, "alice"), settings=settings)

    def test_batch_size_from_settings(self, seeded, settings):
        settings = settings.model_copy(update={"restore_batch_size": 7})

        assert SnapshotImporter(elevated_backend(seeded), settings=settings).batch_size == 7


class TestParentsFirst:
    """Test ordering of self-referencing rows."""

    def test_orders_chain(self):
        rows = [
            {"id": "c", "parent_task_id": "b"},
            {"id": "b", "parent_task_id": "a"},
            {"id": "a", "parent_task_id": None},
        ]

        assert [r["id"] for r in _parents_first(rows, "parent_task_id")] == ["a", "b", "c"]

    def test_unknown_parent_is_root(self):
        rows = [{"id": "x", "parent_task_id": "elsewhere"}]

        assert _parents_first(rows, "parent_task_id") == rows

    def test_cycle_rows_kept(self):
        rows = [
            {"id": "a", "parent_task_id": "b"},
            {"id": "b", "parent_task_id": "a"},
            {"id": "r", "parent_task_id": None},
        ]

        ordered = _parents_first(rows, "parent_task_id")

        assert ordered[0]["id"] == "r"
        assert sorted(r["id"] for r in ordered) == ["a", "b", "r"]
