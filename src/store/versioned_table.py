"""Versioned access to a keyed table.

This module exposes item CRUD, batch, and scan operations whose keys
are transparently tagged with snapshot ids, plus the snapshot, rollback,
and browse controls. Callers only ever see raw keys.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Sequence

from boto3.dynamodb.conditions import ConditionBase

from core.config import LibrarianConfig
from core.errors import InvalidKeyValueError, MultiTableOperationRejectedError
from core.logging_config import get_logger
from core.types import BatchGetResult, BatchWriteResult, SessionState, TableKeySchema
from store.dynamodb_table import create_dynamodb_table
from store.key_codec import KeyCodec, build_key_schema
from store.keyed_table import KeyedTable
from store.scan_filters import build_scan_filter
from store.snapshot_metadata import SnapshotMetadataStore
from store.snapshot_resolver import SnapshotResolver

_LOGGER = get_logger(__name__)


class VersionedTable:
    """Snapshot-aware facade over one keyed table.

    Metadata is loaded once at construction. Writes always target the
    globally active snapshot; reads and deletes walk from the active (or
    browsed) snapshot towards older ones until an item is found.
    """

    def __init__(self, table: KeyedTable, schema: TableKeySchema) -> None:
        """Wrap ``table`` and load its snapshot metadata.

        Args:
            table: Underlying keyed table.
            schema: Validated primary key schema of ``table``.

        Raises:
            StoreUnavailableError: If metadata cannot be loaded.
        """
        self._table = table
        self._codec = KeyCodec(schema)
        self._session = SessionState()
        self._metadata = SnapshotMetadataStore(table, self._codec)
        self._metadata.load()
        self._resolver = SnapshotResolver(self._metadata, self._session)

    @classmethod
    def from_config(cls, config: LibrarianConfig) -> "VersionedTable":
        """Open the configured DynamoDB table with versioning.

        Args:
            config: Runtime configuration.

        Returns:
            Versioned table facade.

        Raises:
            LibrarianConfigError: If the table is not configured.
            InvalidKeySchemaError: If the key types are unsupported.
        """
        config.require_table()
        schema = build_key_schema(
            config.partition_key,
            config.partition_key_type,
            config.sort_key,
            config.sort_key_type,
        )
        return cls(create_dynamodb_table(config), schema)

    @property
    def table_name(self) -> str:
        return self._table.table_name

    @property
    def key_schema(self) -> TableKeySchema:
        return self._codec.schema

    @property
    def active_snapshot_id(self) -> str:
        """Globally active snapshot id as cached by this instance."""
        return self._metadata.active_id()

    @property
    def browsing_snapshot_id(self) -> str | None:
        """Snapshot id browsed by this instance, ``None`` when not browsing."""
        return self._session.browsing_snapshot_id

    def snapshot(self, name: str) -> str:
        """Take a snapshot; later writes belong to it.

        Returns:
            New snapshot id.
        """
        return self._metadata.snapshot(name)

    def rollback(self, name: str) -> str:
        """Make ``name`` the active snapshot for every client and stop browsing.

        Args:
            name: Snapshot name, or ``""`` for pre-snapshot data.

        Returns:
            Active snapshot id.
        """
        snapshot_id = self._metadata.rollback(name)
        self._session.stop_browsing()
        return snapshot_id

    def browse(self, name: str) -> str:
        """Pin this instance's reads to ``name`` without affecting others.

        Args:
            name: Snapshot name, ``"latest"``, ``"current"``, or ``""``.

        Returns:
            Browsed snapshot id.

        Raises:
            UnknownSnapshotError: If ``name`` does not resolve.
        """
        snapshot_id = self._metadata.resolve_token(name)
        self._session.browse(snapshot_id)
        _LOGGER.info(
            "snapshot_browse_started",
            table_name=self.table_name,
            snapshot_name=name,
            snapshot_id=snapshot_id,
        )
        return snapshot_id

    def stop_browsing(self) -> None:
        """Return reads to the globally active snapshot."""
        self._session.stop_browsing()

    def list_snapshots(self) -> list[str]:
        """Return snapshot ids, most recent first."""
        return self._metadata.list_snapshots()

    def snapshot_names(self) -> dict[str, str]:
        """Return snapshot names keyed by id."""
        return self._metadata.snapshot_names()

    def put_item(self, item: Mapping[str, Any], condition: ConditionBase | None = None) -> None:
        """Write ``item`` into the active snapshot."""
        snapshot_id = self._resolver.write_id()
        self._table.put_item(self._codec.encode_key(snapshot_id, item), condition=condition)

    def update_item(
        self,
        key: Mapping[str, Any],
        set_values: Mapping[str, Any],
        remove: Sequence[str] = (),
        condition: ConditionBase | None = None,
    ) -> dict[str, Any]:
        """Update or create an item in the active snapshot.

        Args:
            key: Raw primary key.
            set_values: Attribute values to set.
            remove: Attribute names to remove.
            condition: Optional precondition on the active snapshot's item.

        Returns:
            Item after the update, with its raw key.
        """
        snapshot_id = self._resolver.write_id()
        attributes = self._table.update_item(
            self._codec.encode_key(snapshot_id, key),
            set_values,
            remove=remove,
            condition=condition,
        )
        return self._codec.decode_item(attributes)

    def get_item(
        self, key: Mapping[str, Any], consistent_read: bool = False
    ) -> dict[str, Any] | None:
        """Read the nearest version of an item.

        Returns:
            Item with its raw key, or ``None`` when no snapshot holds it.
        """
        for snapshot_id in self._resolver.fallback_sequence():
            item = self._get_with_id(key, snapshot_id, consistent_read)
            if item is not None:
                return item
        return None

    def get_item_from_snapshot(
        self, key: Mapping[str, Any], snapshot: str, consistent_read: bool = False
    ) -> dict[str, Any] | None:
        """Read an item from exactly one snapshot, without fallback.

        Raises:
            UnknownSnapshotError: If ``snapshot`` does not resolve.
        """
        snapshot_id = self._metadata.resolve_token(snapshot)
        return self._get_with_id(key, snapshot_id, consistent_read)

    def delete_item(
        self, key: Mapping[str, Any], condition: ConditionBase | None = None
    ) -> dict[str, Any] | None:
        """Delete an item from the nearest snapshot holding it.

        ``condition`` is checked at every step of the walk, including
        snapshots that do not hold the item, so a condition requiring an
        attribute stops the walk at the first missing version. Use
        ``delete_item_from_snapshot`` to target one version conditionally.

        Returns:
            Deleted item with its raw key, or ``None`` when nothing was deleted.
        """
        for snapshot_id in self._resolver.fallback_sequence():
            deleted = self._delete_with_id(key, snapshot_id, condition)
            if deleted is not None:
                return deleted
        return None

    def delete_item_from_snapshot(
        self,
        key: Mapping[str, Any],
        snapshot: str,
        condition: ConditionBase | None = None,
    ) -> dict[str, Any] | None:
        """Delete an item from exactly one snapshot, without fallback.

        Raises:
            UnknownSnapshotError: If ``snapshot`` does not resolve.
        """
        snapshot_id = self._metadata.resolve_token(snapshot)
        return self._delete_with_id(key, snapshot_id, condition)

    def batch_get_item(
        self,
        request_items: Mapping[str, Sequence[Mapping[str, Any]]],
        consistent_read: bool = False,
    ) -> BatchGetResult:
        """Read many items, each from the nearest snapshot holding it.

        Args:
            request_items: ``{table_name: [key, ...]}`` for the managed table only.
            consistent_read: Use strongly consistent reads.

        Returns:
            Found items and unprocessed keys, all with raw keys.

        Raises:
            MultiTableOperationRejectedError: If another table is named.
        """
        pending = [dict(key) for key in self._single_table_requests(request_items)]
        result = BatchGetResult()
        for snapshot_id in self._resolver.fallback_sequence():
            if not pending:
                break
            step = self._batch_get_with_id(pending, snapshot_id, consistent_read)
            result.items.extend(step.items)
            result.unprocessed_keys.extend(step.unprocessed_keys)
            settled = {
                self._key_identity(entry) for entry in step.items + step.unprocessed_keys
            }
            pending = [key for key in pending if self._key_identity(key) not in settled]
        return result

    def batch_get_item_from_snapshot(
        self,
        request_items: Mapping[str, Sequence[Mapping[str, Any]]],
        snapshot: str,
        consistent_read: bool = False,
    ) -> BatchGetResult:
        """Read many items from exactly one snapshot.

        Raises:
            MultiTableOperationRejectedError: If another table is named.
            UnknownSnapshotError: If ``snapshot`` does not resolve.
        """
        keys = self._single_table_requests(request_items)
        snapshot_id = self._metadata.resolve_token(snapshot)
        return self._batch_get_with_id(keys, snapshot_id, consistent_read)

    def batch_write_item(
        self, request_items: Mapping[str, Sequence[Mapping[str, Any]]]
    ) -> BatchWriteResult:
        """Put and delete many items in the active snapshot.

        Args:
            request_items: ``{table_name: [{"PutRequest": {"Item": ...}} |
                {"DeleteRequest": {"Key": ...}}, ...]}``.

        Returns:
            Unprocessed puts and deletes, with raw keys.

        Raises:
            MultiTableOperationRejectedError: If another table is named.
            InvalidKeyValueError: If a request is neither a put nor a delete.
        """
        snapshot_id = self._resolver.write_id()
        puts: list[dict[str, Any]] = []
        deletes: list[dict[str, Any]] = []
        for request in self._single_table_requests(request_items):
            if "PutRequest" in request:
                puts.append(self._codec.encode_key(snapshot_id, request["PutRequest"]["Item"]))
            elif "DeleteRequest" in request:
                deletes.append(self._codec.encode_key(snapshot_id, request["DeleteRequest"]["Key"]))
            else:
                raise InvalidKeyValueError(
                    f"Unsupported batch write request {dict(request)!r}. "
                    "Use PutRequest or DeleteRequest entries."
                )
        outcome = self._table.batch_write_items(puts, deletes)
        return BatchWriteResult(
            unprocessed_puts=[self._codec.decode_item(item) for item in outcome.unprocessed_puts],
            unprocessed_deletes=[
                self._codec.decode_item(key) for key in outcome.unprocessed_deletes
            ],
        )

    def scan(
        self,
        filter_expression: ConditionBase | None = None,
        consistent_read: bool = False,
    ) -> Iterator[dict[str, Any]]:
        """Stream items of every snapshot, each with its raw key.

        The same logical item appears once per snapshot it was written to.
        """
        return self._scan_with_id(None, filter_expression, consistent_read)

    def scan_from_snapshot(
        self,
        snapshot: str,
        filter_expression: ConditionBase | None = None,
        consistent_read: bool = False,
    ) -> Iterator[dict[str, Any]]:
        """Stream only the items written to one snapshot.

        Raises:
            UnknownSnapshotError: If ``snapshot`` does not resolve.
        """
        snapshot_id = self._metadata.resolve_token(snapshot)
        return self._scan_with_id(snapshot_id, filter_expression, consistent_read)

    def _get_with_id(
        self, key: Mapping[str, Any], snapshot_id: str, consistent_read: bool
    ) -> dict[str, Any] | None:
        item = self._table.get_item(
            self._codec.encode_key(snapshot_id, key), consistent_read=consistent_read
        )
        if item is None:
            return None
        return self._codec.decode_item(item)

    def _delete_with_id(
        self,
        key: Mapping[str, Any],
        snapshot_id: str,
        condition: ConditionBase | None,
    ) -> dict[str, Any] | None:
        deleted = self._table.delete_item(
            self._codec.encode_key(snapshot_id, key), condition=condition
        )
        if deleted is None:
            return None
        _LOGGER.debug(
            "item_deleted",
            table_name=self.table_name,
            snapshot_id=snapshot_id,
        )
        return self._codec.decode_item(deleted)

    def _batch_get_with_id(
        self,
        keys: Sequence[Mapping[str, Any]],
        snapshot_id: str,
        consistent_read: bool,
    ) -> BatchGetResult:
        encoded = [self._codec.encode_key(snapshot_id, key) for key in keys]
        outcome = self._table.batch_get_items(encoded, consistent_read=consistent_read)
        return BatchGetResult(
            items=[self._codec.decode_item(item) for item in outcome.items],
            unprocessed_keys=[self._codec.decode_item(key) for key in outcome.unprocessed_keys],
        )

    def _scan_with_id(
        self,
        snapshot_id: str | None,
        filter_expression: ConditionBase | None,
        consistent_read: bool,
    ) -> Iterator[dict[str, Any]]:
        expression = build_scan_filter(self._codec, snapshot_id, filter_expression)
        partition_name = self._codec.partition_key_name
        for item in self._table.scan(expression, consistent_read=consistent_read):
            item_id, _ = self._codec.split(item[partition_name])
            if snapshot_id is not None and item_id != snapshot_id:
                continue
            yield self._codec.decode_item(item)

    def _single_table_requests(
        self, request_items: Mapping[str, Sequence[Mapping[str, Any]]]
    ) -> Sequence[Mapping[str, Any]]:
        """Return the requests addressed to the managed table.

        Raises:
            MultiTableOperationRejectedError: If any other table is named.
        """
        foreign_tables = sorted(name for name in request_items if name != self.table_name)
        if foreign_tables:
            raise MultiTableOperationRejectedError(
                f"Batch request names tables {foreign_tables} besides '{self.table_name}'. "
                "Issue one batch per versioned table."
            )
        return request_items.get(self.table_name, [])

    def _key_identity(self, key: Mapping[str, Any]) -> tuple[Any, ...]:
        return tuple(key.get(name) for name in self._codec.schema.key_names)
