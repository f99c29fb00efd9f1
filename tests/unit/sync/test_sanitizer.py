"""Tests for record sanitization."""

from tasksync.sync.sanitizer import sanitize_record


def test_empty_strings_become_none():
    assert sanitize_record({"title": "Call", "description": ""}) == {
        "title": "Call",
        "description": None,
    }


def test_internal_fields_are_dropped():
    record = {"id": "t-1", "_local_only": True, "_rev": 3, "title": "x"}
    assert sanitize_record(record) == {"id": "t-1", "title": "x"}


def test_falsy_values_pass_through():
    record = {"priority": 0, "sidebar_collapsed": False, "note": None, "tags": []}
    assert sanitize_record(record) == record


def test_whitespace_is_not_empty():
    assert sanitize_record({"title": " "}) == {"title": " "}


def test_input_is_not_mutated():
    record = {"description": "", "_x": 1}
    sanitize_record(record)
    assert record == {"description": "", "_x": 1}
