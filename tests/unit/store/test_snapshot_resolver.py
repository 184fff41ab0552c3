"""Unit tests for read-path snapshot resolution."""

from __future__ import annotations

from core.types import SessionState
from store.key_codec import KeyCodec
from store.snapshot_metadata import SnapshotMetadataStore
from store.snapshot_resolver import SnapshotResolver


def _resolver_with_snapshots(table, schema, names: tuple[str, ...]) -> SnapshotResolver:
    metadata = SnapshotMetadataStore(table, KeyCodec(schema))
    metadata.load()
    for name in names:
        metadata.snapshot(name)
    return SnapshotResolver(metadata, SessionState())


def test_fallback_without_snapshots_is_pre_snapshot_only(string_table, string_schema) -> None:
    """Before any snapshot, reads only look at pre-snapshot data."""
    resolver = _resolver_with_snapshots(string_table, string_schema, ())

    assert resolver.fallback_sequence() == [""]


def test_fallback_starts_at_active_and_ends_pre_snapshot(string_table, string_schema) -> None:
    """Reads walk from the active id through older ids to pre-snapshot data."""
    resolver = _resolver_with_snapshots(string_table, string_schema, ("a", "b", "c"))

    assert resolver.fallback_sequence() == ["03", "02", "01", ""]


def test_browsing_moves_read_start_but_not_writes(string_table, string_schema) -> None:
    """Browsing changes where reads start; writes keep the active id."""
    metadata = SnapshotMetadataStore(string_table, KeyCodec(string_schema))
    metadata.load()
    for name in ("a", "b"):
        metadata.snapshot(name)
    session = SessionState()
    resolver = SnapshotResolver(metadata, session)

    session.browse("01")

    assert (resolver.fallback_sequence(), resolver.write_id()) == (["01", ""], "02")


def test_browsing_pre_snapshot_data(string_table, string_schema) -> None:
    """Browsing "" is distinct from not browsing."""
    metadata = SnapshotMetadataStore(string_table, KeyCodec(string_schema))
    metadata.load()
    metadata.snapshot("a")
    session = SessionState()
    resolver = SnapshotResolver(metadata, session)

    session.browse("")

    assert resolver.fallback_sequence() == [""]


def test_stop_browsing_returns_reads_to_active(string_table, string_schema) -> None:
    """After browsing ends, reads start at the active id again."""
    metadata = SnapshotMetadataStore(string_table, KeyCodec(string_schema))
    metadata.load()
    for name in ("a", "b"):
        metadata.snapshot(name)
    session = SessionState()
    resolver = SnapshotResolver(metadata, session)
    session.browse("")
    browsing_start = (session.is_browsing, resolver.read_start_id())

    session.stop_browsing()

    assert (browsing_start, session.is_browsing, resolver.read_start_id()) == (
        (True, ""),
        False,
        "02",
    )
