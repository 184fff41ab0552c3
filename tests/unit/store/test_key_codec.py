"""Unit tests for snapshot key tagging."""

from __future__ import annotations

from decimal import Decimal

import pytest

from core.errors import InvalidKeySchemaError, InvalidKeyValueError
from store.key_codec import KeyCodec, build_key_schema, format_snapshot_id, is_snapshot_id


def _string_codec() -> KeyCodec:
    return KeyCodec(build_key_schema("title", "S"))


def _number_codec() -> KeyCodec:
    return KeyCodec(build_key_schema("year", "N", "title", "S"))


@pytest.mark.parametrize("raw_key", ["Alien", "", "a#b", "07", "x" * 300])
def test_string_keys_roundtrip(raw_key: str) -> None:
    """Decoding an encoded string key should return the raw key."""
    codec = _string_codec()

    assert codec.decode(codec.encode("07", raw_key)) == raw_key


@pytest.mark.parametrize("raw_key", [0, 1, 1979, 10**36 - 1, Decimal("2001")])
def test_number_keys_roundtrip(raw_key: int | Decimal) -> None:
    """Decoding an encoded number key should return the raw key and type."""
    codec = _number_codec()

    decoded = codec.decode(codec.encode("42", raw_key))

    assert decoded == raw_key and type(decoded) is type(raw_key)


def test_string_encoding_prefixes_id_and_delimiter() -> None:
    """String keys should be tagged as id, delimiter, raw key."""
    assert _string_codec().encode("03", "Alien") == "03#Alien"


def test_number_encoding_concatenates_padded_key() -> None:
    """Number keys should be the id digits followed by a 36-digit raw key."""
    encoded = _number_codec().encode("03", 1979)

    assert str(encoded) == "3" + str(1979).zfill(36)


def test_pre_snapshot_id_leaves_value_unchanged() -> None:
    """The empty id should not tag keys of either type."""
    assert (_string_codec().encode("", "Alien"), _number_codec().encode("", 1979)) == (
        "Alien",
        1979,
    )


def test_decode_leaves_untagged_values_unchanged() -> None:
    """Values written before any snapshot should decode to themselves."""
    assert (_string_codec().decode("foo#bar"), _number_codec().decode(1979)) == (
        "foo#bar",
        1979,
    )


def test_split_reports_snapshot_id() -> None:
    """Splitting a physical value should expose its snapshot id."""
    codec = _number_codec()

    assert codec.split(codec.encode("12", 5)) == ("12", 5)


def test_encode_key_does_not_mutate_argument() -> None:
    """Encoding a key should copy, never rewrite, the caller's mapping."""
    codec = _number_codec()
    key = {"year": 1979, "title": "Alien"}

    encoded = codec.encode_key("05", key)

    assert key == {"year": 1979, "title": "Alien"} and encoded["title"] == "Alien"


def test_encode_key_requires_partition_attribute() -> None:
    """Keys without the partition attribute cannot be tagged."""
    with pytest.raises(InvalidKeyValueError):
        _string_codec().encode_key("01", {"name": "Alien"})


@pytest.mark.parametrize("snapshot_id", ["", "01"])
def test_encode_key_rejects_metadata_partition_value(snapshot_id: str) -> None:
    """The reserved metadata value is never a valid item key."""
    codec = _string_codec()

    with pytest.raises(InvalidKeyValueError):
        codec.encode_key(snapshot_id, {"title": codec.metadata_partition_value()})


@pytest.mark.parametrize("raw_key", [-1, 10**36, Decimal("1.5"), True, "1979"])
def test_number_codec_rejects_unencodable_values(raw_key: object) -> None:
    """Number keys must be non-negative integers that leave room for the id."""
    with pytest.raises(InvalidKeyValueError):
        _number_codec().encode("01", raw_key)


def test_string_codec_rejects_numbers() -> None:
    """String keys must be strings."""
    with pytest.raises(InvalidKeyValueError):
        _string_codec().encode("01", 5)


def test_metadata_key_is_outside_number_key_space() -> None:
    """The numeric metadata key should be negative and include the sort key."""
    key = _number_codec().metadata_key()

    assert key["year"] < 0 and set(key) == {"year", "title"}


def test_metadata_key_does_not_decode_to_snapshot() -> None:
    """The reserved key must never look like a tagged key."""
    codec = _number_codec()

    assert codec.split(codec.metadata_partition_value())[0] == ""


def test_build_key_schema_rejects_unknown_type() -> None:
    """Only string and number keys can be versioned."""
    with pytest.raises(InvalidKeySchemaError):
        build_key_schema("id", "B")


def test_build_key_schema_requires_sort_key_type() -> None:
    """A sort key name without a type is rejected."""
    with pytest.raises(InvalidKeySchemaError):
        build_key_schema("id", "S", "created_at")


def test_snapshot_id_format() -> None:
    """Ids should be fixed width and range checked."""
    assert (format_snapshot_id(7), is_snapshot_id("07"), is_snapshot_id("00")) == (
        "07",
        True,
        False,
    )
