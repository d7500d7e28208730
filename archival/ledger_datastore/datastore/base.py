"""
Base protocol and types for the datastore abstraction.

This module defines the DataStore protocol that all backends must implement,
along with content sources for streamed writes, the reader returned by
get_file(), and the factory that opens a store from a destination URL.

Invariants:
    - A store is bound to exactly one bucket and one key prefix
    - Keys passed to operations are relative to the bound prefix
    - Prefixes never start with "/"
    - put_file_if_not_exists() never fails because the object exists
    - No operation retries internally

How to change safely:
    - Protocol changes require updating all implementations
    - Listing operations belong here once binary search over archives lands
    - Never wrap asyncio.CancelledError
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    BinaryIO,
    Optional,
    Protocol,
    runtime_checkable,
    TYPE_CHECKING,
)
from urllib.parse import urlsplit
import asyncio
import logging

from ..errors import ConstructionError, DataStoreClosedError, DataStoreIOError, InvalidKeyError

if TYPE_CHECKING:
    from ..config import DataStoreConfig

logger = logging.getLogger(__name__)

SUPPORTED_SCHEME = "s3"

DEFAULT_READ_CHUNK_SIZE = 1024 * 1024  # 1MB


@runtime_checkable
class ContentWriter(Protocol):
    """Sink that a ContentSource pushes bytes into."""

    async def write(self, data: bytes) -> None:
        ...


@runtime_checkable
class ContentSource(Protocol):
    """Push-style content producer for put_file().

    The store hands the source a writer and the source pushes its
    content into it. Content is never required to fit in memory.
    """

    async def write_to(self, writer: ContentWriter) -> int:
        """Write all content to writer.

        Returns:
            Number of bytes written
        """
        ...


class BytesContent:
    """Content source over an in-memory buffer."""

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)

    async def write_to(self, writer: ContentWriter) -> int:
        await writer.write(self.data)
        return len(self.data)


class StreamContent:
    """Content source over a binary file object, read in chunks.

    Example:
        >>> with open("0-63.xdr.gz", "rb") as f:
        ...     await store.put_file("0-63.xdr.gz", StreamContent(f))
    """

    def __init__(self, fileobj: BinaryIO, chunk_size: int = DEFAULT_READ_CHUNK_SIZE) -> None:
        self.fileobj = fileobj
        self.chunk_size = chunk_size

    async def write_to(self, writer: ContentWriter) -> int:
        total = 0
        loop = asyncio.get_running_loop()
        while True:
            chunk = await loop.run_in_executor(None, self.fileobj.read, self.chunk_size)
            if not chunk:
                break
            await writer.write(chunk)
            total += len(chunk)
        return total


class ObjectReader:
    """Readable stream over a stored object.

    The caller owns the reader and must close it, either explicitly or
    with ``async with``. The underlying body is released exactly once,
    whatever the outcome of reading.

    Attributes:
        key: Object key relative to the store prefix
        content_length: Size reported by the backend, if known

    Example:
        >>> async with await store.get_file("0-63.xdr.gz") as reader:
        ...     data = await reader.read()
    """

    def __init__(self, body: Any, key: str, content_length: Optional[int] = None) -> None:
        self._body = body
        self.key = key
        self.content_length = content_length
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, size: int = -1) -> bytes:
        """Read up to size bytes, or everything left when size < 0."""
        if self._closed:
            raise DataStoreClosedError("get_file", self.key)
        try:
            if size is None or size < 0:
                return await self._body.read()
            return await self._body.read(size)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise DataStoreIOError(
                f"get_file: failed reading {self.key}: {e}",
                operation="get_file",
                key=self.key,
            ) from e

    async def iter_chunks(self, chunk_size: int = DEFAULT_READ_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield the remaining content in chunks."""
        while True:
            chunk = await self.read(chunk_size)
            if not chunk:
                break
            yield chunk

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_chunks()

    def close(self) -> None:
        """Release the underlying body. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._body.close()

    async def __aenter__(self) -> ObjectReader:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ObjectReader(key={self.key!r}, closed={self._closed})"


def check_object_path(path: str) -> None:
    """Reject paths that would alias another key once joined to a prefix."""
    if not path:
        raise InvalidKeyError("object path must not be empty", key=path)
    if path.startswith("/"):
        raise InvalidKeyError(f"object path must not start with '/': {path}", key=path)


@dataclass(frozen=True)
class Destination:
    """Parsed destination URL.

    Attributes:
        scheme: URL scheme (only "s3" is supported)
        bucket: Bucket name
        prefix: Key prefix without leading "/"
    """

    scheme: str
    bucket: str
    prefix: str

    def object_key(self, path: str) -> str:
        """Resolve a path relative to the prefix into a full object key.

        Raises:
            InvalidKeyError: If path is empty or starts with "/"
        """
        check_object_path(path)
        if not self.prefix:
            return path
        return f"{self.prefix.rstrip('/')}/{path}"

    def __str__(self) -> str:
        return f"{self.scheme}://{self.bucket}/{self.prefix}"


def parse_destination_url(destination_url: str) -> Destination:
    """Parse scheme://bucket/path/prefix.

    Raises:
        ConstructionError: If the URL is malformed or the scheme is unsupported
    """
    try:
        parsed = urlsplit(destination_url)
    except ValueError as e:
        raise ConstructionError(
            f"Invalid destination URL {destination_url}: {e}",
            destination_url=destination_url,
        ) from e

    if parsed.scheme != SUPPORTED_SCHEME:
        raise ConstructionError(
            f"Invalid destination URL {destination_url}. Expected {SUPPORTED_SCHEME.upper()} URL",
            destination_url=destination_url,
        )
    if not parsed.netloc:
        raise ConstructionError(
            f"Invalid destination URL {destination_url}: missing bucket name",
            destination_url=destination_url,
        )

    # Object keys never start with "/"
    return Destination(
        scheme=parsed.scheme,
        bucket=parsed.netloc,
        prefix=parsed.path.lstrip("/"),
    )


@runtime_checkable
class DataStore(Protocol):
    """Protocol for object store backends.

    Every operation is a coroutine. Cancelling the calling task aborts the
    in-flight request and raises asyncio.CancelledError. Deadlines are
    applied by the caller with asyncio.timeout() or asyncio.wait_for().

    Error contract:
        - NotFoundError when get_file()/size() target a missing object
        - DataStoreIOError for any other backend failure
        - DataStoreClosedError for any operation after close()
        - InvalidKeyError for an empty path or one starting with "/"

    Example:
        >>> store = await create_datastore("s3://ledgers/pubnet")
        >>> key = batch.get_object_key(ledger_seq)
        >>> written = await store.put_file_if_not_exists(key, BytesContent(data))
        >>> await store.close()
    """

    @abstractmethod
    async def get_file(self, path: str) -> ObjectReader:
        """Open an object for reading.

        Args:
            path: Key relative to the store prefix

        Returns:
            ObjectReader owned by the caller

        Raises:
            NotFoundError: If the object does not exist
            DataStoreIOError: For other failures
        """
        ...

    @abstractmethod
    async def put_file(self, path: str, content: ContentSource) -> None:
        """Write an object, replacing any existing one.

        Args:
            path: Key relative to the store prefix
            content: Source that streams the object content

        Raises:
            DataStoreIOError: If the write fails
        """
        ...

    @abstractmethod
    async def put_file_if_not_exists(self, path: str, content: ContentSource) -> bool:
        """Write an object only if none exists at path.

        The existence check and the write are not atomic across
        concurrent writers.

        Returns:
            True if the object was written, False if it already existed

        Raises:
            DataStoreIOError: If the check or the write fails
        """
        ...

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Whether an object exists at path."""
        ...

    @abstractmethod
    async def size(self, path: str) -> int:
        """Size of the object at path in bytes.

        Raises:
            NotFoundError: If the object does not exist
            DataStoreIOError: For other failures
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the backend client. Safe to call more than once."""
        ...


async def create_datastore(
    destination_url: str,
    config: Optional["DataStoreConfig"] = None,
    session: Any = None,
) -> DataStore:
    """Factory function to open a datastore from a destination URL.

    Args:
        destination_url: Locator of the form s3://bucket/path/prefix
        config: Connection configuration (DataStoreConfig.from_env() if not provided)
        session: Optional aiobotocore session

    Returns:
        Open DataStore bound to the bucket and prefix

    Raises:
        ConstructionError: If the URL is invalid or the bucket is unreachable
    """
    from .s3 import S3DataStore

    destination = parse_destination_url(destination_url)
    return await S3DataStore.open(destination, config=config, session=session)
