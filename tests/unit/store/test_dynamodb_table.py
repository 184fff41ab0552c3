"""Unit tests for the DynamoDB keyed table binding."""

from __future__ import annotations

from unittest.mock import MagicMock

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError, EndpointConnectionError
import pytest

from core.errors import ConditionCheckFailedError, StoreError, StoreUnavailableError
from store.dynamodb_table import DynamoDBTable, build_update_expression


def _mock_table() -> MagicMock:
    table = MagicMock()
    table.name = "movies"
    return table


def _client_error(code: str, operation: str = "UpdateItem") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def test_get_item_returns_item_or_none() -> None:
    """Missing items should be reported as None."""
    table = _mock_table()
    table.get_item.side_effect = [{"Item": {"title": "Alien"}}, {}]
    binding = DynamoDBTable(table)

    results = [binding.get_item({"title": "Alien"}), binding.get_item({"title": "Heat"})]

    assert results == [{"title": "Alien"}, None]


def test_get_item_passes_consistent_read() -> None:
    """Strongly consistent reads should be forwarded."""
    table = _mock_table()
    table.get_item.return_value = {}

    DynamoDBTable(table).get_item({"title": "Alien"}, consistent_read=True)

    table.get_item.assert_called_once_with(Key={"title": "Alien"}, ConsistentRead=True)


def test_update_item_builds_expression_and_condition() -> None:
    """Updates should send SET/REMOVE actions and the condition object."""
    table = _mock_table()
    table.update_item.return_value = {"Attributes": {"title": "x", "a": 1}}
    condition = Attr("latest_snapshot").not_exists()

    attributes = DynamoDBTable(table).update_item(
        {"title": "x"}, {"a": 1}, remove=("b",), condition=condition
    )

    kwargs = table.update_item.call_args.kwargs
    assert (attributes, kwargs["UpdateExpression"], kwargs["ConditionExpression"]) == (
        {"title": "x", "a": 1},
        "SET #attr0 = :val0 REMOVE #attr1",
        condition,
    )


def test_condition_failure_is_translated() -> None:
    """Conditional check failures should raise ConditionCheckFailedError."""
    table = _mock_table()
    table.update_item.side_effect = _client_error("ConditionalCheckFailedException")

    with pytest.raises(ConditionCheckFailedError):
        DynamoDBTable(table).update_item({"title": "x"}, {"a": 1})


def test_client_errors_become_store_errors() -> None:
    """Other service errors should raise StoreError with the cause chained."""
    table = _mock_table()
    table.get_item.side_effect = _client_error("ResourceNotFoundException", "GetItem")

    with pytest.raises(StoreError) as raised:
        DynamoDBTable(table).get_item({"title": "x"})

    assert isinstance(raised.value.__cause__, ClientError)


def test_connection_errors_become_store_unavailable() -> None:
    """Transport failures should raise StoreUnavailableError."""
    table = _mock_table()
    table.get_item.side_effect = EndpointConnectionError(endpoint_url="http://localhost:8000")

    with pytest.raises(StoreUnavailableError):
        DynamoDBTable(table).get_item({"title": "x"})


def test_delete_item_requests_old_values() -> None:
    """Deletes should ask for the previous item to detect existence."""
    table = _mock_table()
    table.delete_item.return_value = {}

    deleted = DynamoDBTable(table).delete_item({"title": "x"})

    assert deleted is None and table.delete_item.call_args.kwargs["ReturnValues"] == "ALL_OLD"


def test_scan_follows_pagination() -> None:
    """Scans should stream every page."""
    table = _mock_table()
    table.scan.side_effect = [
        {"Items": [{"title": "a"}], "LastEvaluatedKey": {"title": "a"}},
        {"Items": [{"title": "b"}]},
    ]

    items = list(DynamoDBTable(table).scan(Attr("title").exists()))

    assert items == [{"title": "a"}, {"title": "b"}]


def test_batch_get_splits_into_chunks_and_reports_unprocessed() -> None:
    """Batch reads should respect the 100-key limit and surface leftovers."""
    table = _mock_table()
    client = table.meta.client
    client.batch_get_item.side_effect = [
        {"Responses": {"movies": [{"title": "0"}]}, "UnprocessedKeys": {}},
        {
            "Responses": {"movies": []},
            "UnprocessedKeys": {"movies": {"Keys": [{"title": "100"}]}},
        },
    ]
    keys = [{"title": str(index)} for index in range(101)]

    result = DynamoDBTable(table).batch_get_items(keys)

    assert (client.batch_get_item.call_count, result.unprocessed_keys) == (
        2,
        [{"title": "100"}],
    )


def test_batch_write_reports_unprocessed_requests() -> None:
    """Unprocessed writes should be split back into puts and deletes."""
    table = _mock_table()
    table.meta.client.batch_write_item.return_value = {
        "UnprocessedItems": {
            "movies": [
                {"PutRequest": {"Item": {"title": "a"}}},
                {"DeleteRequest": {"Key": {"title": "b"}}},
            ]
        }
    }

    result = DynamoDBTable(table).batch_write_items([{"title": "a"}], [{"title": "b"}])

    assert (result.unprocessed_puts, result.unprocessed_deletes) == (
        [{"title": "a"}],
        [{"title": "b"}],
    )


def test_build_update_expression_remove_only() -> None:
    """A pure removal should not declare attribute values."""
    expression, names, values = build_update_expression({}, ["current_snapshot"])

    assert (expression, names, values) == (
        "REMOVE #attr0",
        {"#attr0": "current_snapshot"},
        {},
    )
