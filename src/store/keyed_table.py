"""Interface of the underlying keyed store.

The versioning layer talks to its table only through this protocol so
the DynamoDB binding and in-memory test tables are interchangeable.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Protocol, Sequence

from boto3.dynamodb.conditions import ConditionBase

from core.types import BatchGetResult, BatchWriteResult


class KeyedTable(Protocol):
    """Single table with CRUD, conditional update, batch and scan support.

    Implementations raise ``ConditionCheckFailedError`` when a condition
    does not hold and ``StoreError`` for any other failure.
    """

    @property
    def table_name(self) -> str: ...

    def get_item(
        self, key: Mapping[str, Any], consistent_read: bool = False
    ) -> dict[str, Any] | None: ...

    def put_item(
        self, item: Mapping[str, Any], condition: ConditionBase | None = None
    ) -> None: ...

    def update_item(
        self,
        key: Mapping[str, Any],
        set_values: Mapping[str, Any],
        remove: Sequence[str] = (),
        condition: ConditionBase | None = None,
    ) -> dict[str, Any]: ...

    def delete_item(
        self, key: Mapping[str, Any], condition: ConditionBase | None = None
    ) -> dict[str, Any] | None: ...

    def batch_get_items(
        self, keys: Sequence[Mapping[str, Any]], consistent_read: bool = False
    ) -> BatchGetResult: ...

    def batch_write_items(
        self,
        puts: Sequence[Mapping[str, Any]],
        deletes: Sequence[Mapping[str, Any]],
    ) -> BatchWriteResult: ...

    def scan(
        self,
        filter_expression: ConditionBase | None = None,
        consistent_read: bool = False,
    ) -> Iterator[dict[str, Any]]: ...
