"""Shared typed models.

This module defines the data models used by the codec, metadata,
and facade layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from core.constants import PRE_SNAPSHOT_ID

KeyType = Literal["S", "N"]


@dataclass(frozen=True)
class KeyAttribute:
    """One primary key attribute of the managed table.

    Attributes:
        name: Attribute name.
        key_type: ``"S"`` for strings or ``"N"`` for numbers.
    """

    name: str
    key_type: KeyType


@dataclass(frozen=True)
class TableKeySchema:
    """Primary key layout of the managed table.

    Attributes:
        partition_key: Partition key attribute; carries the snapshot prefix.
        sort_key: Optional sort key attribute; never rewritten.
    """

    partition_key: KeyAttribute
    sort_key: KeyAttribute | None = None

    @property
    def key_names(self) -> tuple[str, ...]:
        """Return the primary key attribute names."""
        if self.sort_key is None:
            return (self.partition_key.name,)
        return (self.partition_key.name, self.sort_key.name)


@dataclass(frozen=True)
class SnapshotMetadataRecord:
    """Cached copy of the persisted snapshot metadata item.

    Attributes:
        name_to_id: Snapshot name to snapshot id map.
        chronological_ids: Snapshot ids, most recent first.
        latest_id: Id of the newest snapshot; ``None`` before the first one.
        current_id: Globally active id; ``None`` when the attribute is absent.
    """

    name_to_id: Mapping[str, str] = field(default_factory=dict)
    chronological_ids: tuple[str, ...] = ()
    latest_id: str | None = None
    current_id: str | None = None


@dataclass
class SessionState:
    """Per-client read pointer override, never persisted.

    Attributes:
        browsing_snapshot_id: Id browsed by this client, ``None`` when not browsing.
            The pre-snapshot id (empty string) is a valid browse target.
    """

    browsing_snapshot_id: str | None = None

    @property
    def is_browsing(self) -> bool:
        """Return whether reads are pinned to a browsed snapshot."""
        return self.browsing_snapshot_id is not None

    def browse(self, snapshot_id: str) -> None:
        """Pin reads of this session to ``snapshot_id``."""
        self.browsing_snapshot_id = snapshot_id

    def stop_browsing(self) -> None:
        """Return reads of this session to the global active snapshot."""
        self.browsing_snapshot_id = None


@dataclass(frozen=True)
class BatchGetResult:
    """Outcome of a batch read.

    Attributes:
        items: Items found, with raw keys.
        unprocessed_keys: Keys the store did not process, with raw values.
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    unprocessed_keys: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class BatchWriteResult:
    """Outcome of a batch write.

    Attributes:
        unprocessed_puts: Items the store did not write.
        unprocessed_deletes: Keys the store did not delete.
    """

    unprocessed_puts: list[dict[str, Any]] = field(default_factory=list)
    unprocessed_deletes: list[dict[str, Any]] = field(default_factory=list)


def is_pre_snapshot(snapshot_id: str | None) -> bool:
    """Return whether ``snapshot_id`` denotes pre-snapshot data."""
    return not snapshot_id or snapshot_id == PRE_SNAPSHOT_ID
