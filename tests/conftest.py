"""Pytest configuration and shared fixtures for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

TABLE_NAME = "movies"


def pytest_sessionstart() -> None:
    """Add src and tests directories to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    for path in (project_root / "src", project_root / "tests"):
        if str(path) not in sys.path:
            sys.path.insert(0, str(path))


@pytest.fixture
def string_table():
    """Empty in-memory table with a string partition key."""
    from memory_table import InMemoryTable

    return InMemoryTable(TABLE_NAME, ["title"])


@pytest.fixture
def string_schema():
    """Key schema matching ``string_table``."""
    from store.key_codec import build_key_schema

    return build_key_schema("title", "S")


@pytest.fixture
def number_table():
    """Empty in-memory table with a numeric partition key and string sort key."""
    from memory_table import InMemoryTable

    return InMemoryTable(TABLE_NAME, ["year", "title"])


@pytest.fixture
def number_schema():
    """Key schema matching ``number_table``."""
    from store.key_codec import build_key_schema

    return build_key_schema("year", "N", "title", "S")
