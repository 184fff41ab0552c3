"""Librarian exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each failure mode of the versioning engine raises a specific type.
"""

from __future__ import annotations


class LibrarianError(Exception):
    """Base exception for all librarian failures."""


class LibrarianConfigError(LibrarianError):
    """Raised for invalid runtime configuration."""


class InvalidKeySchemaError(LibrarianError):
    """Raised when a table key schema cannot be versioned."""


class InvalidKeyValueError(LibrarianError):
    """Raised when a key value cannot carry a snapshot prefix."""


class DuplicateSnapshotNameError(LibrarianError):
    """Raised when a snapshot name is taken, reserved, or empty."""


class UnknownSnapshotError(LibrarianError):
    """Raised when a snapshot name does not resolve to an id."""


class StaleCurrentSnapshotError(LibrarianError):
    """Raised when a snapshot is requested while the table is rolled back."""


class ConcurrentModificationError(LibrarianError):
    """Raised when another client changed snapshot metadata first."""


class IdSpaceExhaustedError(LibrarianError):
    """Raised when every snapshot id is already allocated."""


class MultiTableOperationRejectedError(LibrarianError):
    """Raised when a batch request names a table other than the managed one."""


class StoreError(LibrarianError):
    """Raised when the underlying keyed store rejects or fails a call."""


class StoreUnavailableError(StoreError):
    """Raised when the underlying keyed store cannot be reached."""


class ConditionCheckFailedError(StoreError):
    """Raised when a conditional write precondition does not hold."""
