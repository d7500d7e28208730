"""
In-memory datastore implementation for testing.

This module provides a simple in-memory DataStore for:
- Unit tests
- Integration tests of archival pipelines
- Local development without a bucket

Invariants:
    - All data is lost on process exit
    - Provides the same existence and error semantics as S3DataStore
    - Safe for concurrent coroutines

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with DataStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Dict, List, Optional

from ..errors import DataStoreClosedError, DataStoreError, DataStoreIOError, NotFoundError
from .base import ContentSource, ObjectReader, check_object_path

logger = logging.getLogger(__name__)


class _MemoryBody:
    """Async body over a snapshot of stored bytes."""

    def __init__(self, data: bytes) -> None:
        self._stream = io.BytesIO(data)

    async def read(self, amt: Optional[int] = None) -> bytes:
        return self._stream.read(-1 if amt is None else amt)

    def close(self) -> None:
        self._stream.close()


class _BufferWriter:
    def __init__(self) -> None:
        self.buffer = bytearray()

    async def write(self, data: bytes) -> None:
        self.buffer.extend(data)


class InMemoryDataStore:
    """In-memory implementation of DataStore for testing.

    Attributes:
        prefix: Key prefix, kept for parity with S3DataStore

    Thread safety:
        Uses an asyncio lock around the object map. Safe to use from
        multiple coroutines.

    Example:
        >>> store = InMemoryDataStore()
        >>> await store.put_file("0-63.xdr.gz", BytesContent(b"data"))
        >>> await store.size("0-63.xdr.gz")
        4
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix.lstrip("/")
        self._objects: Dict[str, bytes] = {}
        self._lock = asyncio.Lock()
        self._closed = False
        self._failures: Dict[str, Exception] = {}
        self.put_count = 0

    def _key(self, path: str) -> str:
        check_object_path(path)
        return f"{self.prefix.rstrip('/')}/{path}" if self.prefix else path

    def _check(self, operation: str, path: Optional[str] = None) -> None:
        if self._closed:
            raise DataStoreClosedError(operation, path)
        error = self._failures.get(operation)
        if error is not None:
            raise DataStoreIOError(
                f"{operation}: {path}: {error}",
                operation=operation,
                key=path,
            ) from error

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def get_file(self, path: str) -> ObjectReader:
        self._check("get_file", path)
        async with self._lock:
            data = self._objects.get(self._key(path))
        if data is None:
            raise NotFoundError("get_file", path)
        return ObjectReader(_MemoryBody(data), path, len(data))

    async def put_file(self, path: str, content: ContentSource) -> None:
        self._check("put_file", path)
        key = self._key(path)
        writer = _BufferWriter()
        try:
            await content.write_to(writer)
        except DataStoreError:
            raise
        except Exception as e:
            raise DataStoreIOError(
                f"put_file: {path}: {e}", operation="put_file", key=path
            ) from e

        async with self._lock:
            self._objects[key] = bytes(writer.buffer)
            self.put_count += 1
        logger.debug("Wrote object", extra={"key": key, "size_bytes": len(writer.buffer)})

    async def put_file_if_not_exists(self, path: str, content: ContentSource) -> bool:
        if await self.exists(path):
            logger.info("Object already exists, skipping write", extra={"key": self._key(path)})
            return False
        await self.put_file(path, content)
        return True

    async def exists(self, path: str) -> bool:
        self._check("exists", path)
        async with self._lock:
            return self._key(path) in self._objects

    async def size(self, path: str) -> int:
        self._check("size", path)
        async with self._lock:
            data = self._objects.get(self._key(path))
        if data is None:
            raise NotFoundError("size", path)
        return len(data)

    async def close(self) -> None:
        """Close the store. Stored objects stay readable through the testing helpers."""
        if self._closed:
            return
        self._closed = True
        logger.debug("InMemoryDataStore closed")

    async def __aenter__(self) -> InMemoryDataStore:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Testing helpers

    def fail_operation(self, operation: str, error: Exception) -> None:
        """Make every call of operation fail with a wrapped error."""
        self._failures[operation] = error

    def clear_failures(self) -> None:
        self._failures.clear()

    def get_all_keys(self) -> List[str]:
        """Return all full object keys, sorted."""
        return sorted(self._objects)

    def get_object(self, path: str) -> Optional[bytes]:
        """Return stored bytes without going through get_file()."""
        return self._objects.get(self._key(path))
