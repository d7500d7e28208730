"""
Error types for the ledger datastore.

This module defines all exception types raised by key derivation and
the storage layer:
- DataStoreError: Base exception
- InvalidConfigError: Partitioning parameters or sequence out of range
- ConstructionError: Store could not be opened
- NotFoundError: Requested object is absent
- DataStoreIOError: Any other backend failure
- DataStoreClosedError: Operation issued after close()

Invariants:
    - All errors inherit from DataStoreError
    - I/O errors carry the operation name and key
    - Backend exceptions are chained, never swallowed
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DataStoreError(Exception):
    """Base exception for all datastore errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DATASTORE_ERROR"
        self.details = details or {}


class InvalidConfigError(DataStoreError, ValueError):
    """Partitioning configuration violates its constraints.

    Raised when:
    - ledgers_per_file is less than 1
    - files_per_partition is negative
    - A sequence number is not an unsigned 32-bit integer

    Always caller-fixable, never retried.
    """

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="INVALID_CONFIG",
            details={"field": field_name},
        )
        self.field_name = field_name


class InvalidKeyError(InvalidConfigError):
    """Object key does not match the ledger key grammar."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message, field_name="key")
        self.code = "INVALID_KEY"
        self.details["key"] = key
        self.key = key


class ConstructionError(DataStoreError):
    """Datastore could not be opened.

    Raised when:
    - The destination URL is malformed
    - The scheme is not supported
    - The bucket does not exist or is not accessible
    """

    def __init__(self, message: str, destination_url: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="CONSTRUCTION_ERROR",
            details={"destination_url": destination_url},
        )
        self.destination_url = destination_url


class DataStoreIOError(DataStoreError):
    """Backend operation failed.

    Covers network, permission and quota failures. No retry is attempted
    at this layer.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        key: Optional[str] = None,
        code: str = "IO_ERROR",
    ) -> None:
        super().__init__(
            message,
            code=code,
            details={"operation": operation, "key": key},
        )
        self.operation = operation
        self.key = key


class NotFoundError(DataStoreError):
    """Requested object does not exist.

    Expected and recoverable for get_file() and size(). Not a subclass
    of DataStoreIOError.
    """

    def __init__(self, operation: str, key: str) -> None:
        super().__init__(
            f"{operation}: object not found: {key}",
            code="NOT_FOUND",
            details={"operation": operation, "key": key},
        )
        self.operation = operation
        self.key = key


class DataStoreClosedError(DataStoreError):
    """Operation issued on a datastore that has been closed."""

    def __init__(self, operation: str, key: Optional[str] = None) -> None:
        super().__init__(
            f"{operation}: datastore is closed",
            code="CLOSED",
            details={"operation": operation, "key": key},
        )
        self.operation = operation
        self.key = key
