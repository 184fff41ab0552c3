"""Snapshot id resolution for read paths.

This module decides which snapshot ids a read or delete tries, and in
which order, from cached metadata and the client's browse pointer.
"""

from __future__ import annotations

from core.constants import PRE_SNAPSHOT_ID
from core.types import SessionState, is_pre_snapshot
from store.snapshot_metadata import SnapshotMetadataStore


class SnapshotResolver:
    """Stateless view over metadata and session state."""

    def __init__(self, metadata: SnapshotMetadataStore, session: SessionState) -> None:
        self._metadata = metadata
        self._session = session

    def read_start_id(self) -> str:
        """Return the id reads start from: the browsed one, else the active one."""
        if self._session.is_browsing:
            return self._session.browsing_snapshot_id
        return self._metadata.active_id()

    def write_id(self) -> str:
        """Return the id every write targets; browsing never applies."""
        return self._metadata.active_id()

    def fallback_sequence(self) -> list[str]:
        """Return ids to try for a read, nearest first.

        The walk starts at ``read_start_id``, moves to older snapshots,
        and always ends with pre-snapshot data.
        """
        start_id = self.read_start_id()
        sequence = self._metadata.chronological_ids_from(start_id)
        if not is_pre_snapshot(start_id):
            sequence.append(PRE_SNAPSHOT_ID)
        return sequence
