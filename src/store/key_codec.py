"""Snapshot id tagging of primary key values.

This module builds validated key schemas and rewrites partition key
values so every stored item carries the snapshot it belongs to.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, cast

from core.constants import (
    MAX_SNAPSHOT_ID,
    METADATA_PARTITION_KEY_VALUE,
    METADATA_SORT_KEY_VALUE,
    NUMBER_KEY_DIGITS,
    NUMBER_KEY_TYPE,
    SNAPSHOT_ID_WIDTH,
    STRING_KEY_DELIMITER,
    STRING_KEY_TYPE,
    SUPPORTED_KEY_TYPES,
)
from core.errors import InvalidKeySchemaError, InvalidKeyValueError
from core.types import KeyAttribute, KeyType, TableKeySchema, is_pre_snapshot

_NUMBER_ID_FACTOR = 10**NUMBER_KEY_DIGITS


def build_key_schema(
    partition_key: str | None,
    partition_key_type: str,
    sort_key: str | None = None,
    sort_key_type: str | None = None,
) -> TableKeySchema:
    """Validate key names and types into a table key schema.

    Args:
        partition_key: Partition key attribute name.
        partition_key_type: ``S`` or ``N``.
        sort_key: Optional sort key attribute name.
        sort_key_type: Sort key type, required with a sort key.

    Returns:
        Validated key schema.

    Raises:
        InvalidKeySchemaError: If a name is missing or a type is unsupported.
    """
    if not partition_key:
        raise InvalidKeySchemaError(
            "A partition key name is required to version a table."
        )
    partition = KeyAttribute(partition_key, _validate_key_type(partition_key, partition_key_type))
    if not sort_key:
        return TableKeySchema(partition_key=partition)
    if sort_key_type is None:
        raise InvalidKeySchemaError(
            f"Sort key '{sort_key}' has no type. Pass 'S' or 'N' as the sort key type."
        )
    sort = KeyAttribute(sort_key, _validate_key_type(sort_key, sort_key_type))
    return TableKeySchema(partition_key=partition, sort_key=sort)


def format_snapshot_id(number: int) -> str:
    """Render a snapshot number as a fixed-width id."""
    return f"{number:0{SNAPSHOT_ID_WIDTH}d}"


def is_snapshot_id(value: str) -> bool:
    """Return whether ``value`` is a well-formed, in-range snapshot id."""
    return (
        len(value) == SNAPSHOT_ID_WIDTH
        and value.isdigit()
        and 1 <= int(value) <= MAX_SNAPSHOT_ID
    )


class KeyCodec:
    """Reversible snapshot tagging for one table key schema.

    The partition key variant is fixed at construction; sort key values
    are never rewritten. All methods return new objects and leave their
    arguments untouched.
    """

    def __init__(self, schema: TableKeySchema) -> None:
        self._schema = schema
        self._partition = schema.partition_key

    @property
    def schema(self) -> TableKeySchema:
        return self._schema

    @property
    def partition_key_name(self) -> str:
        return self._partition.name

    def encode(self, snapshot_id: str, raw_value: Any) -> Any:
        """Tag a raw partition key value with ``snapshot_id``.

        Args:
            snapshot_id: Snapshot id, or the empty pre-snapshot id.
            raw_value: Caller-visible partition key value.

        Returns:
            Physical partition key value.

        Raises:
            InvalidKeyValueError: If the value does not match the key type.
        """
        if self._partition.key_type == STRING_KEY_TYPE:
            text = self._require_string(raw_value)
            if is_pre_snapshot(snapshot_id):
                return text
            return f"{snapshot_id}{STRING_KEY_DELIMITER}{text}"
        number = self._require_number(raw_value)
        if is_pre_snapshot(snapshot_id):
            return raw_value
        return type(raw_value)(int(snapshot_id) * _NUMBER_ID_FACTOR + number)

    def decode(self, tagged_value: Any) -> Any:
        """Strip the snapshot prefix from a physical partition key value.

        Values without a well-formed prefix are returned unchanged.
        """
        _, raw_value = self.split(tagged_value)
        return raw_value

    def split(self, tagged_value: Any) -> tuple[str, Any]:
        """Return the snapshot id and raw value of a physical key value."""
        if self._partition.key_type == STRING_KEY_TYPE:
            text = str(tagged_value)
            prefix, delimiter, remainder = text.partition(STRING_KEY_DELIMITER)
            if delimiter and is_snapshot_id(prefix):
                return prefix, remainder
            return "", tagged_value
        number = int(tagged_value)
        prefix_number, remainder = divmod(number, _NUMBER_ID_FACTOR)
        if 1 <= prefix_number <= MAX_SNAPSHOT_ID:
            return format_snapshot_id(prefix_number), type(tagged_value)(remainder)
        return "", tagged_value

    def encode_key(self, snapshot_id: str, key: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``key`` (or an item) with its partition value tagged.

        Raises:
            InvalidKeyValueError: If the partition attribute is missing, invalid,
                or the reserved metadata value.
        """
        if self._partition.name not in key:
            raise InvalidKeyValueError(
                f"Missing partition key attribute '{self._partition.name}' in {dict(key)!r}. "
                "Pass the full primary key."
            )
        if key[self._partition.name] == self.metadata_partition_value():
            raise InvalidKeyValueError(
                f"Partition key value {key[self._partition.name]!r} is reserved for "
                "snapshot metadata. Use a different key."
            )
        encoded = dict(key)
        encoded[self._partition.name] = self.encode(snapshot_id, key[self._partition.name])
        return encoded

    def decode_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``item`` (or a key) with its partition value untagged."""
        decoded = dict(item)
        if self._partition.name in decoded:
            decoded[self._partition.name] = self.decode(decoded[self._partition.name])
        return decoded

    def metadata_key(self) -> dict[str, Any]:
        """Return the reserved primary key of the snapshot metadata record."""
        key = {
            self._partition.name: _sentinel_value(
                METADATA_PARTITION_KEY_VALUE, self._partition.key_type
            )
        }
        sort = self._schema.sort_key
        if sort is not None:
            key[sort.name] = _sentinel_value(METADATA_SORT_KEY_VALUE, sort.key_type)
        return key

    def metadata_partition_value(self) -> Any:
        """Return the reserved partition key value of the metadata record."""
        return _sentinel_value(METADATA_PARTITION_KEY_VALUE, self._partition.key_type)

    def number_id_bounds(self, snapshot_id: str) -> tuple[int, int]:
        """Return the inclusive physical key range of a numeric snapshot id."""
        if is_pre_snapshot(snapshot_id):
            return 0, _NUMBER_ID_FACTOR - 1
        low = int(snapshot_id) * _NUMBER_ID_FACTOR
        return low, low + _NUMBER_ID_FACTOR - 1

    def _require_string(self, raw_value: Any) -> str:
        if not isinstance(raw_value, str):
            raise InvalidKeyValueError(
                f"Partition key '{self._partition.name}' expects a string, "
                f"got {type(raw_value).__name__}."
            )
        return raw_value

    def _require_number(self, raw_value: Any) -> int:
        if isinstance(raw_value, bool) or not isinstance(raw_value, (int, Decimal)):
            raise InvalidKeyValueError(
                f"Partition key '{self._partition.name}' expects an integer, "
                f"got {type(raw_value).__name__}."
            )
        if isinstance(raw_value, Decimal) and raw_value != raw_value.to_integral_value():
            raise InvalidKeyValueError(
                f"Partition key '{self._partition.name}' must be integral, got {raw_value}."
            )
        number = int(raw_value)
        if not 0 <= number < _NUMBER_ID_FACTOR:
            raise InvalidKeyValueError(
                f"Partition key '{self._partition.name}' must lie in [0, 10**{NUMBER_KEY_DIGITS}) "
                f"to leave room for the snapshot prefix, got {raw_value}."
            )
        return number


def _validate_key_type(name: str, key_type: str) -> KeyType:
    """Validate one key type.

    Args:
        name: Key attribute name, for error messages.
        key_type: Raw key type.

    Returns:
        Narrowed key type.

    Raises:
        InvalidKeySchemaError: If the type is not supported.
    """
    if key_type not in SUPPORTED_KEY_TYPES:
        raise InvalidKeySchemaError(
            f"Invalid type '{key_type}' for key '{name}': "
            f"must be one of {', '.join(SUPPORTED_KEY_TYPES)}."
        )
    return cast(KeyType, key_type)


def _sentinel_value(raw_value: str, key_type: KeyType) -> Any:
    if key_type == NUMBER_KEY_TYPE:
        return Decimal(f"-{raw_value}")
    return raw_value
