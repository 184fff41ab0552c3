"""Unit tests for CLI command handling."""

from __future__ import annotations

import json

import pytest

from cli.main import main
from memory_table import InMemoryTable

_TABLE_ARGS = ["--table", "movies", "--partition-key", "title", "--partition-key-type", "S"]


@pytest.fixture
def memory_table(monkeypatch: pytest.MonkeyPatch) -> InMemoryTable:
    """Route CLI table construction to one shared in-memory table."""
    table = InMemoryTable("movies", ["title"])
    monkeypatch.setattr(
        "store.versioned_table.create_dynamodb_table", lambda config: table
    )
    return table


def test_cli_snapshot_prints_new_id(memory_table, capsys) -> None:
    """CLI snapshot should print the allocated id."""
    exit_code = main([*_TABLE_ARGS, "snapshot", "before-import"])
    output = capsys.readouterr().out.strip()

    assert (exit_code, output) == (0, "01")


def test_cli_list_marks_active_snapshot(memory_table, capsys) -> None:
    """CLI list should print ids newest first with the active one marked."""
    main([*_TABLE_ARGS, "snapshot", "a"])
    main([*_TABLE_ARGS, "snapshot", "b"])
    main([*_TABLE_ARGS, "rollback", "a"])
    capsys.readouterr()

    main([*_TABLE_ARGS, "list"])
    lines = capsys.readouterr().out.splitlines()

    assert lines == ["02\tb", "01\ta\t*"]


def test_cli_rollback_without_name_prints_dash(memory_table, capsys) -> None:
    """Rolling back to pre-snapshot data should print a dash."""
    main([*_TABLE_ARGS, "snapshot", "a"])
    capsys.readouterr()

    exit_code = main([*_TABLE_ARGS, "rollback"])

    assert (exit_code, capsys.readouterr().out.strip()) == (0, "-")


def test_cli_get_prints_item_json(memory_table, capsys) -> None:
    """CLI get should print the nearest item version as JSON."""
    memory_table.put_item({"title": "Alien", "year": 1979})

    exit_code = main([*_TABLE_ARGS, "get", "--key", '{"title": "Alien"}'])
    output = capsys.readouterr().out.strip()

    assert (exit_code, json.loads(output)) == (0, {"title": "Alien", "year": 1979})


def test_cli_get_missing_item_exits_nonzero(memory_table) -> None:
    """A missing item should produce exit code 1."""
    assert main([*_TABLE_ARGS, "get", "--key", '{"title": "Heat"}']) == 1


def test_cli_scan_from_snapshot(memory_table, capsys) -> None:
    """CLI scan should print one JSON line per item in the snapshot."""
    memory_table.put_item({"title": "Alien"})
    memory_table.put_item({"title": "01#Heat"})
    main([*_TABLE_ARGS, "snapshot", "a"])
    capsys.readouterr()

    main([*_TABLE_ARGS, "scan", "--snapshot", "a"])
    lines = capsys.readouterr().out.splitlines()

    assert [json.loads(line) for line in lines] == [{"title": "Heat"}]


def test_cli_reports_library_errors(memory_table, capsys) -> None:
    """Library errors should be printed to stderr with exit code 1."""
    exit_code = main([*_TABLE_ARGS, "rollback", "nope"])

    assert exit_code == 1 and "does not exist" in capsys.readouterr().err


def test_cli_requires_table(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    """Missing table configuration should fail cleanly."""
    monkeypatch.delenv("LIBRARIAN_TABLE", raising=False)

    exit_code = main(["list"])

    assert exit_code == 1 and "LIBRARIAN_TABLE" in capsys.readouterr().err
