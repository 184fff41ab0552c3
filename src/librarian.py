"""Public SDK surface for librarian.

This module provides a stable import path for library users.
It re-exports the versioned table facade, its config, and errors.
"""

from __future__ import annotations

from core.config import LibrarianConfig
from core.errors import (
    ConcurrentModificationError,
    DuplicateSnapshotNameError,
    IdSpaceExhaustedError,
    InvalidKeySchemaError,
    InvalidKeyValueError,
    LibrarianError,
    MultiTableOperationRejectedError,
    StaleCurrentSnapshotError,
    StoreError,
    StoreUnavailableError,
    UnknownSnapshotError,
)
from core.types import BatchGetResult, BatchWriteResult, TableKeySchema
from store.dynamodb_table import DynamoDBTable, create_dynamodb_table
from store.key_codec import build_key_schema
from store.versioned_table import VersionedTable

__all__ = [
    "BatchGetResult",
    "BatchWriteResult",
    "ConcurrentModificationError",
    "DuplicateSnapshotNameError",
    "DynamoDBTable",
    "IdSpaceExhaustedError",
    "InvalidKeySchemaError",
    "InvalidKeyValueError",
    "LibrarianConfig",
    "LibrarianError",
    "MultiTableOperationRejectedError",
    "StaleCurrentSnapshotError",
    "StoreError",
    "StoreUnavailableError",
    "TableKeySchema",
    "UnknownSnapshotError",
    "VersionedTable",
    "build_key_schema",
    "create_dynamodb_table",
]
