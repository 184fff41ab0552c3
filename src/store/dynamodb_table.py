"""DynamoDB binding of the keyed table interface.

This module adapts a boto3 Table resource to ``KeyedTable`` and maps
botocore failures onto the librarian error hierarchy.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Sequence

import boto3
from boto3.dynamodb.conditions import ConditionBase
from botocore.exceptions import BotoCoreError, ClientError

from core.config import LibrarianConfig
from core.constants import BATCH_GET_MAX_KEYS, BATCH_WRITE_MAX_REQUESTS
from core.errors import ConditionCheckFailedError, StoreError, StoreUnavailableError
from core.logging_config import get_logger
from core.types import BatchGetResult, BatchWriteResult

_LOGGER = get_logger(__name__)
_CONDITION_FAILED_CODE = "ConditionalCheckFailedException"


class DynamoDBTable:
    """``KeyedTable`` implementation over a boto3 ``Table`` resource."""

    def __init__(self, table: Any) -> None:
        """Wrap a boto3 table resource.

        Args:
            table: ``boto3.resource("dynamodb").Table(name)`` instance.
        """
        self._table = table

    @property
    def table_name(self) -> str:
        return str(self._table.name)

    def get_item(
        self, key: Mapping[str, Any], consistent_read: bool = False
    ) -> dict[str, Any] | None:
        response = self._call(
            "get_item", self._table.get_item, Key=dict(key), ConsistentRead=consistent_read
        )
        item = response.get("Item")
        return dict(item) if item is not None else None

    def put_item(self, item: Mapping[str, Any], condition: ConditionBase | None = None) -> None:
        kwargs: dict[str, Any] = {"Item": dict(item)}
        if condition is not None:
            kwargs["ConditionExpression"] = condition
        self._call("put_item", self._table.put_item, **kwargs)

    def update_item(
        self,
        key: Mapping[str, Any],
        set_values: Mapping[str, Any],
        remove: Sequence[str] = (),
        condition: ConditionBase | None = None,
    ) -> dict[str, Any]:
        """Apply SET/REMOVE actions to one item.

        Args:
            key: Physical primary key.
            set_values: Attribute values to set.
            remove: Attribute names to remove.
            condition: Optional precondition.

        Returns:
            Item attributes after the update.

        Raises:
            ConditionCheckFailedError: If ``condition`` does not hold.
            StoreError: If DynamoDB rejects the call.
        """
        expression, names, values = build_update_expression(set_values, remove)
        kwargs: dict[str, Any] = {
            "Key": dict(key),
            "UpdateExpression": expression,
            "ExpressionAttributeNames": names,
            "ReturnValues": "ALL_NEW",
        }
        if values:
            kwargs["ExpressionAttributeValues"] = values
        if condition is not None:
            kwargs["ConditionExpression"] = condition
        response = self._call("update_item", self._table.update_item, **kwargs)
        return dict(response.get("Attributes") or {})

    def delete_item(
        self, key: Mapping[str, Any], condition: ConditionBase | None = None
    ) -> dict[str, Any] | None:
        kwargs: dict[str, Any] = {"Key": dict(key), "ReturnValues": "ALL_OLD"}
        if condition is not None:
            kwargs["ConditionExpression"] = condition
        response = self._call("delete_item", self._table.delete_item, **kwargs)
        attributes = response.get("Attributes")
        return dict(attributes) if attributes else None

    def batch_get_items(
        self, keys: Sequence[Mapping[str, Any]], consistent_read: bool = False
    ) -> BatchGetResult:
        """Fetch many items, one request per chunk of 100 keys.

        Unprocessed keys are reported, never retried.
        """
        client = self._table.meta.client
        result = BatchGetResult()
        for chunk in _chunks(list(keys), BATCH_GET_MAX_KEYS):
            request = {
                self.table_name: {
                    "Keys": [dict(key) for key in chunk],
                    "ConsistentRead": consistent_read,
                }
            }
            response = self._call("batch_get_item", client.batch_get_item, RequestItems=request)
            result.items.extend(response.get("Responses", {}).get(self.table_name, []))
            unprocessed = response.get("UnprocessedKeys", {}).get(self.table_name, {})
            result.unprocessed_keys.extend(unprocessed.get("Keys", []))
        return result

    def batch_write_items(
        self,
        puts: Sequence[Mapping[str, Any]],
        deletes: Sequence[Mapping[str, Any]],
    ) -> BatchWriteResult:
        """Write and delete many items, one request per chunk of 25.

        Unprocessed requests are reported, never retried.
        """
        client = self._table.meta.client
        requests: list[dict[str, Any]] = [{"PutRequest": {"Item": dict(item)}} for item in puts]
        requests.extend({"DeleteRequest": {"Key": dict(key)}} for key in deletes)
        result = BatchWriteResult()
        for chunk in _chunks(requests, BATCH_WRITE_MAX_REQUESTS):
            response = self._call(
                "batch_write_item",
                client.batch_write_item,
                RequestItems={self.table_name: chunk},
            )
            for request in response.get("UnprocessedItems", {}).get(self.table_name, []):
                if "PutRequest" in request:
                    result.unprocessed_puts.append(request["PutRequest"]["Item"])
                else:
                    result.unprocessed_deletes.append(request["DeleteRequest"]["Key"])
        return result

    def scan(
        self,
        filter_expression: ConditionBase | None = None,
        consistent_read: bool = False,
    ) -> Iterator[dict[str, Any]]:
        """Stream every item of the table, following scan pagination."""
        kwargs: dict[str, Any] = {"ConsistentRead": consistent_read}
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        while True:
            response = self._call("scan", self._table.scan, **kwargs)
            for item in response.get("Items", []):
                yield dict(item)
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return
            kwargs["ExclusiveStartKey"] = last_key

    def _call(self, operation: str, method: Any, **kwargs: Any) -> dict[str, Any]:
        """Invoke a boto3 method and translate its failures.

        Args:
            operation: DynamoDB operation name, for messages.
            method: Bound boto3 method.
            **kwargs: Request parameters.

        Returns:
            Raw response dictionary.

        Raises:
            ConditionCheckFailedError: If a condition expression failed.
            StoreUnavailableError: If DynamoDB could not be reached.
            StoreError: For any other service error.
        """
        try:
            return dict(method(**kwargs))
        except ClientError as error:
            code = error.response.get("Error", {}).get("Code", "Unknown")
            if code == _CONDITION_FAILED_CODE:
                raise ConditionCheckFailedError(
                    f"Condition check failed for {operation} on table '{self.table_name}'."
                ) from error
            _LOGGER.error(
                "dynamodb_call_failed",
                table_name=self.table_name,
                operation=operation,
                code=code,
            )
            raise StoreError(
                f"DynamoDB {operation} failed on table '{self.table_name}': {code}. "
                "Check the table, credentials, and provisioned capacity."
            ) from error
        except BotoCoreError as error:
            raise StoreUnavailableError(
                f"DynamoDB {operation} could not reach table '{self.table_name}': {error}. "
                "Check the region, endpoint, and network access."
            ) from error


def create_dynamodb_table(config: LibrarianConfig) -> DynamoDBTable:
    """Open the configured table through a boto3 session.

    Args:
        config: Runtime config with table and session settings.

    Returns:
        Table binding for ``config.table_name``.

    Raises:
        LibrarianConfigError: If no table is configured.
    """
    config.require_table()
    session_kwargs: dict[str, str] = {}
    if config.aws_profile:
        session_kwargs["profile_name"] = config.aws_profile
    if config.aws_region:
        session_kwargs["region_name"] = config.aws_region
    session = boto3.session.Session(**session_kwargs)
    resource_kwargs: dict[str, str] = {}
    if config.endpoint_url:
        resource_kwargs["endpoint_url"] = config.endpoint_url
    resource = session.resource("dynamodb", **resource_kwargs)
    return DynamoDBTable(resource.Table(config.table_name))


def build_update_expression(
    set_values: Mapping[str, Any], remove: Sequence[str]
) -> tuple[str, dict[str, str], dict[str, Any]]:
    """Build an UpdateExpression with private placeholders.

    Placeholders use the ``#attr``/``:val`` prefixes so they never clash
    with the ``#n``/``:v`` names boto3 generates for condition objects.

    Args:
        set_values: Attribute values to set.
        remove: Attribute names to remove.

    Returns:
        Expression string, attribute names, and attribute values.
    """
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    set_clauses: list[str] = []
    for index, (name, value) in enumerate(set_values.items()):
        names[f"#attr{index}"] = name
        values[f":val{index}"] = value
        set_clauses.append(f"#attr{index} = :val{index}")
    remove_clauses: list[str] = []
    for offset, name in enumerate(remove, start=len(set_values)):
        names[f"#attr{offset}"] = name
        remove_clauses.append(f"#attr{offset}")
    parts: list[str] = []
    if set_clauses:
        parts.append("SET " + ", ".join(set_clauses))
    if remove_clauses:
        parts.append("REMOVE " + ", ".join(remove_clauses))
    return " ".join(parts), names, values


def _chunks(values: list[Any], size: int) -> Iterator[list[Any]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]
