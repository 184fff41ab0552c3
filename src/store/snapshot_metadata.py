"""Snapshot metadata record and its optimistic-concurrency protocol.

This module owns the single reserved item that maps snapshot names to
ids, orders ids chronologically, and tracks the latest and current ids.
Every mutation is a conditional update guarded by a witness read at
load time; a failed guard is reported, never retried.
"""

from __future__ import annotations

from typing import Any, Mapping

from boto3.dynamodb.conditions import Attr, ConditionBase

from core.constants import (
    CURRENT_ID_ATTRIBUTE,
    LATEST_ID_ATTRIBUTE,
    MAX_SNAPSHOT_ID,
    ORDERED_IDS_ATTRIBUTE,
    PRE_SNAPSHOT_ID,
    RESERVED_SNAPSHOT_NAMES,
    SNAPSHOT_CURRENT,
    SNAPSHOT_LATEST,
    SNAPSHOTS_ATTRIBUTE,
)
from core.errors import (
    ConcurrentModificationError,
    ConditionCheckFailedError,
    DuplicateSnapshotNameError,
    IdSpaceExhaustedError,
    StaleCurrentSnapshotError,
    StoreError,
    StoreUnavailableError,
    UnknownSnapshotError,
)
from core.logging_config import get_logger
from core.types import SnapshotMetadataRecord, is_pre_snapshot
from store.key_codec import KeyCodec, format_snapshot_id
from store.keyed_table import KeyedTable

_LOGGER = get_logger(__name__)


class SnapshotMetadataStore:
    """Cached view of one table's snapshot metadata record.

    The record is read once by ``load``. The cache follows this
    instance's own successful mutations but never observes changes made
    by other clients; build a new instance for a fresh view.
    """

    def __init__(self, table: KeyedTable, codec: KeyCodec) -> None:
        """Create a metadata store without touching the table.

        Args:
            table: Underlying keyed table holding the metadata record.
            codec: Key codec providing the reserved metadata key.
        """
        self._table = table
        self._metadata_key = codec.metadata_key()
        self._record = SnapshotMetadataRecord()

    def load(self) -> SnapshotMetadataRecord:
        """Read the metadata record into the cache.

        Returns:
            Cached record; empty defaults when no snapshot was ever taken.

        Raises:
            StoreUnavailableError: If the metadata item cannot be fetched.
        """
        try:
            item = self._table.get_item(self._metadata_key, consistent_read=True)
        except StoreError as error:
            raise StoreUnavailableError(
                f"Failed to load snapshot metadata from table '{self._table.table_name}': "
                f"{error}"
            ) from error
        self._record = _record_from_item(item or {})
        _LOGGER.debug(
            "snapshot_metadata_loaded",
            table_name=self._table.table_name,
            snapshot_count=len(self._record.chronological_ids),
            latest_id=self._record.latest_id,
            current_id=self._record.current_id,
        )
        return self._record

    def snapshot(self, name: str) -> str:
        """Create a snapshot named ``name`` and make it current.

        Args:
            name: New, non-reserved snapshot name.

        Returns:
            Allocated snapshot id.

        Raises:
            DuplicateSnapshotNameError: If the name is empty, reserved, or taken.
            StaleCurrentSnapshotError: If the table is rolled back.
            IdSpaceExhaustedError: If every id is allocated.
            ConcurrentModificationError: If another client took a snapshot first.
        """
        record = self._record
        if name in RESERVED_SNAPSHOT_NAMES:
            raise DuplicateSnapshotNameError(
                f"Snapshot name '{name}' is reserved. Choose a non-empty name other than "
                f"'{SNAPSHOT_LATEST}' or '{SNAPSHOT_CURRENT}'."
            )
        if name in record.name_to_id:
            raise DuplicateSnapshotNameError(
                f"Snapshot '{name}' already exists with id {record.name_to_id[name]}."
            )
        if record.current_id != record.latest_id:
            raise StaleCurrentSnapshotError(
                f"Current snapshot ({record.current_id or '-'}) does not match latest "
                f"({record.latest_id or '-'}). Roll back to the latest snapshot before "
                "taking a new one."
            )
        new_id = self._allocate_id()
        name_to_id = {**record.name_to_id, name: new_id}
        chronological_ids = (new_id,) + record.chronological_ids
        condition = _witness_condition(LATEST_ID_ATTRIBUTE, record.latest_id)
        self._conditional_update(
            {
                SNAPSHOTS_ATTRIBUTE: name_to_id,
                ORDERED_IDS_ATTRIBUTE: list(chronological_ids),
                LATEST_ID_ATTRIBUTE: new_id,
                CURRENT_ID_ATTRIBUTE: new_id,
            },
            remove=(),
            condition=condition,
            operation="snapshot",
        )
        self._record = SnapshotMetadataRecord(
            name_to_id=name_to_id,
            chronological_ids=chronological_ids,
            latest_id=new_id,
            current_id=new_id,
        )
        _LOGGER.info(
            "snapshot_created",
            table_name=self._table.table_name,
            snapshot_name=name,
            snapshot_id=new_id,
        )
        return new_id

    def rollback(self, name: str) -> str:
        """Make snapshot ``name`` the globally active one.

        Args:
            name: Existing snapshot name, or ``""`` for pre-snapshot data.

        Returns:
            Snapshot id now active; ``""`` for pre-snapshot data.

        Raises:
            UnknownSnapshotError: If ``name`` is not a known snapshot.
            ConcurrentModificationError: If another client rolled back first.
        """
        record = self._record
        if name and name not in record.name_to_id:
            raise UnknownSnapshotError(
                f"Snapshot '{name}' does not exist. Use list_snapshots to see valid names."
            )
        target_id = record.name_to_id[name] if name else PRE_SNAPSHOT_ID
        condition = _witness_condition(CURRENT_ID_ATTRIBUTE, record.current_id)
        if is_pre_snapshot(target_id):
            set_values: dict[str, Any] = {}
            remove: tuple[str, ...] = (CURRENT_ID_ATTRIBUTE,)
        else:
            set_values = {CURRENT_ID_ATTRIBUTE: target_id}
            remove = ()
        self._conditional_update(set_values, remove, condition, operation="rollback")
        self._record = SnapshotMetadataRecord(
            name_to_id=record.name_to_id,
            chronological_ids=record.chronological_ids,
            latest_id=record.latest_id,
            current_id=target_id or None,
        )
        _LOGGER.info(
            "snapshot_rolled_back",
            table_name=self._table.table_name,
            snapshot_name=name,
            snapshot_id=target_id,
        )
        return target_id

    def list_snapshots(self) -> list[str]:
        """Return cached snapshot ids, most recent first."""
        return list(self._record.chronological_ids)

    def snapshot_names(self) -> dict[str, str]:
        """Return cached snapshot names keyed by id."""
        return {snapshot_id: name for name, snapshot_id in self._record.name_to_id.items()}

    def resolve_token(self, token: str) -> str:
        """Resolve a snapshot reference to an id.

        Args:
            token: Snapshot name, ``"latest"``, ``"current"``, or ``""``.

        Returns:
            Snapshot id; ``""`` stands for pre-snapshot data.

        Raises:
            UnknownSnapshotError: If ``token`` names no snapshot.
        """
        if token == PRE_SNAPSHOT_ID:
            return PRE_SNAPSHOT_ID
        if token == SNAPSHOT_LATEST:
            return self._record.latest_id or PRE_SNAPSHOT_ID
        if token == SNAPSHOT_CURRENT:
            return self._record.current_id or PRE_SNAPSHOT_ID
        snapshot_id = self._record.name_to_id.get(token)
        if snapshot_id is None:
            raise UnknownSnapshotError(
                f"Snapshot '{token}' does not exist. Use list_snapshots to see valid names."
            )
        return snapshot_id

    def active_id(self) -> str:
        """Return the globally active snapshot id.

        An absent current id means pre-snapshot data, both after a rollback
        to ``""`` and before the first snapshot.
        """
        return self._record.current_id or PRE_SNAPSHOT_ID

    def chronological_ids_from(self, start_id: str) -> list[str]:
        """Return ``start_id`` followed by every older snapshot id.

        Pre-snapshot data has nothing older, so ``""`` yields ``[""]``.
        An id unknown to the cache yields an empty list.
        """
        if is_pre_snapshot(start_id):
            return [PRE_SNAPSHOT_ID]
        ids = self._record.chronological_ids
        if start_id not in ids:
            return []
        return list(ids[ids.index(start_id) :])

    def _allocate_id(self) -> str:
        """Return the smallest id not assigned to any snapshot.

        Raises:
            IdSpaceExhaustedError: If all ids are taken.
        """
        assigned = {int(snapshot_id) for snapshot_id in self._record.name_to_id.values()}
        for number in range(1, MAX_SNAPSHOT_ID + 1):
            if number not in assigned:
                return format_snapshot_id(number)
        raise IdSpaceExhaustedError(
            f"All {MAX_SNAPSHOT_ID} snapshot ids are in use on table "
            f"'{self._table.table_name}'. No further snapshots can be taken."
        )

    def _conditional_update(
        self,
        set_values: Mapping[str, Any],
        remove: tuple[str, ...],
        condition: ConditionBase,
        operation: str,
    ) -> None:
        """Write metadata guarded by ``condition``.

        Raises:
            ConcurrentModificationError: If the guard no longer holds.
        """
        try:
            self._table.update_item(
                self._metadata_key, set_values, remove=remove, condition=condition
            )
        except ConditionCheckFailedError as error:
            _LOGGER.warning(
                "snapshot_metadata_conflict",
                table_name=self._table.table_name,
                operation=operation,
            )
            raise ConcurrentModificationError(
                f"Snapshot metadata on table '{self._table.table_name}' changed during "
                f"{operation}. Reload metadata and retry the operation."
            ) from error


def _witness_condition(attribute: str, observed: str | None) -> ConditionBase:
    """Guard a write on ``attribute`` still holding the observed value."""
    if observed is None:
        return Attr(attribute).not_exists()
    return Attr(attribute).eq(observed)


def _record_from_item(item: Mapping[str, Any]) -> SnapshotMetadataRecord:
    """Deserialize the metadata item.

    Args:
        item: Raw metadata item; empty when it does not exist.

    Returns:
        Typed metadata record.
    """
    snapshots = item.get(SNAPSHOTS_ATTRIBUTE, {})
    name_to_id = {str(name): str(value) for name, value in snapshots.items()}
    chronological_ids = tuple(str(value) for value in item.get(ORDERED_IDS_ATTRIBUTE, []))
    latest = item.get(LATEST_ID_ATTRIBUTE)
    current = item.get(CURRENT_ID_ATTRIBUTE)
    return SnapshotMetadataRecord(
        name_to_id=name_to_id,
        chronological_ids=chronological_ids,
        latest_id=str(latest) if latest else None,
        current_id=str(current) if current else None,
    )
