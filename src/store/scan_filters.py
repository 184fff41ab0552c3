"""Server-side scan predicates for versioned tables.

This module builds the boto3 condition objects injected into scans so
the metadata record never leaks and a snapshot can be scanned alone.
"""

from __future__ import annotations

from boto3.dynamodb.conditions import Attr, ConditionBase

from core.constants import STRING_KEY_DELIMITER, STRING_KEY_TYPE
from core.types import is_pre_snapshot
from store.key_codec import KeyCodec


def build_scan_filter(
    codec: KeyCodec,
    snapshot_id: str | None,
    caller_filter: ConditionBase | None = None,
) -> ConditionBase:
    """Combine caller and versioning predicates into one filter.

    Args:
        codec: Key codec of the scanned table.
        snapshot_id: Id to restrict results to; ``None`` scans every snapshot.
        caller_filter: Optional caller filter expression.

    Returns:
        Filter expression for the underlying scan.
    """
    partition_name = codec.partition_key_name
    expression: ConditionBase = Attr(partition_name).ne(codec.metadata_partition_value())
    snapshot_predicate = _snapshot_predicate(codec, snapshot_id)
    if snapshot_predicate is not None:
        expression = expression & snapshot_predicate
    if caller_filter is not None:
        expression = expression & caller_filter
    return expression


def _snapshot_predicate(codec: KeyCodec, snapshot_id: str | None) -> ConditionBase | None:
    """Return the key predicate selecting one snapshot, if any applies.

    String keys of pre-snapshot data share no common prefix, so they are
    selected after the scan instead.
    """
    if snapshot_id is None:
        return None
    partition_name = codec.partition_key_name
    if codec.schema.partition_key.key_type == STRING_KEY_TYPE:
        if is_pre_snapshot(snapshot_id):
            return None
        return Attr(partition_name).begins_with(f"{snapshot_id}{STRING_KEY_DELIMITER}")
    low, high = codec.number_id_bounds(snapshot_id)
    if is_pre_snapshot(snapshot_id):
        return Attr(partition_name).lte(high)
    return Attr(partition_name).between(low, high)
