"""Tests for snapshot documents and result reporting."""

import json

import pytest
from pydantic import ValidationError

from tasksync.backup import (
    RestoreReport,
    RestoreStatus,
    SnapshotDocument,
    TableResult,
    parse_document,
    snapshot_key,
)
from tasksync.core.exceptions import MalformedInputError


def valid_payload():
    return {
        "version": "1.0",
        "created_at": "2026-01-05T10:00:00+00:00",
        "user_id": "alice",
        "tables": {"labels": [{"id": "l-1", "name": "x"}], "tasks": []},
    }


class TestParseDocument:
    """Test validation of caller-supplied documents."""

    def test_valid(self):
        document = parse_document(valid_payload())

        assert document.user_id == "alice"
        assert document.tables_count == 2
        assert document.total_records == 1

    def test_created_at_optional(self):
        payload = valid_payload()
        del payload["created_at"]

        assert parse_document(payload).created_at is None

    @pytest.mark.parametrize(
        "mutate, fragment",
        [
            (lambda p: p.pop("version"), "missing version"),
            (lambda p: p.pop("user_id"), "missing user_id"),
            (lambda p: p.update(user_id=""), "missing user_id"),
            (lambda p: p.pop("tables"), "missing tables"),
            (lambda p: p.update(tables={}), "missing tables"),
            (lambda p: p.update(tables=[]), "missing tables"),
            (lambda p: p.update(tables={"tasks": {"id": "t-1"}}), "must be a list"),
            (lambda p: p.update(tables={"tasks": ["t-1"]}), "must be a list"),
        ],
    )
    def test_malformed(self, mutate, fragment):
        payload = valid_payload()
        mutate(payload)

        with pytest.raises(MalformedInputError) as exc_info:
            parse_document(payload)
        assert fragment in exc_info.value.message
        assert exc_info.value.message.startswith("Invalid backup format")

    @pytest.mark.parametrize("raw", [None, "backup", ["alice"], 42])
    def test_not_an_object(self, raw):
        with pytest.raises(MalformedInputError):
            parse_document(raw)

    def test_accepts_parsed_document(self):
        document = parse_document(valid_payload())

        assert parse_document(document) == document


class TestSnapshotDocument:
    """Test the stored form."""

    def test_json_is_indented(self):
        raw = parse_document(valid_payload()).to_json()

        assert raw.startswith(b'{\n  "version": "1.0"')
        assert json.loads(raw)["tables"]["labels"] == [{"id": "l-1", "name": "x"}]

    def test_from_json(self):
        document = SnapshotDocument.from_json(json.dumps(valid_payload()).encode())

        assert document.created_at == "2026-01-05T10:00:00+00:00"

    def test_from_invalid_json(self):
        with pytest.raises(MalformedInputError):
            SnapshotDocument.from_json(b"{not json")

    def test_immutable(self):
        document = parse_document(valid_payload())

        with pytest.raises(ValidationError):
            document.user_id = "bob"

    def test_snapshot_key(self):
        assert snapshot_key("alice") == "backup-alice.json"
        assert snapshot_key("alice-v2") == "backup-alice-v2.json"

    def test_snapshot_key_encodes_path_characters(self):
        assert snapshot_key("a/b") == "backup-a%2Fb.json"
        assert snapshot_key("x..y") == "backup-x%2E%2Ey.json"
        assert snapshot_key("~root") == "backup-%7Eroot.json"
        assert len({snapshot_key(u) for u in ("a/b", "a_b", "a\\b", "x..y", "xy")}) == 5


class TestRestoreReport:
    """Test how per-table results roll up."""

    def test_all_succeeded(self):
        report = RestoreReport("2026-01-05", [TableResult("labels", deleted=1, inserted=2)])

        assert report.success
        assert report.status is RestoreStatus.SUCCEEDED
        assert report.message == "Restore completed successfully"
        assert report.to_dict()["results"] == [{"table": "labels", "deleted": 1, "inserted": 2}]

    def test_partial(self):
        report = RestoreReport(
            None,
            [
                TableResult("labels", inserted=2),
                TableResult("tasks", error="boom"),
            ],
        )

        assert not report.success
        assert report.status is RestoreStatus.PARTIAL
        assert report.total_records_restored == 2
        assert report.to_dict()["results"][1]["error"] == "boom"

    def test_clear_error_counts_as_failure(self):
        report = RestoreReport(None, [TableResult("labels", inserted=1, clear_error="locked")])

        assert not report.success
        assert report.message == "Restore completed with some errors"

    def test_failed(self):
        report = RestoreReport(
            None, [TableResult("labels", error="a"), TableResult("tasks", error="b")]
        )

        assert report.status is RestoreStatus.FAILED
        assert report.to_dict()["status"] == "failed"
