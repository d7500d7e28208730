"""
S3 datastore implementation.

Binds to one bucket and key prefix, opened once from a destination URL
and released once by close(). Uses aiobotocore for non-blocking I/O.

Object layout:
    s3://<bucket>/<prefix>/<path>

Invariants:
    - The bucket is probed with HeadBucket at open time (fail fast)
    - Content is streamed: single PutObject when it fits in one part,
      multipart upload otherwise
    - Failed or cancelled multipart uploads are aborted
    - Backend errors carry operation name and key

How to change safely:
    - Keep retries out of this layer, they belong to the client config or caller
    - Test against MinIO before changing upload logic
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from aiobotocore.config import AioConfig
from aiobotocore.session import get_session
from botocore.exceptions import ClientError

from ..config import DataStoreConfig
from ..errors import (
    ConstructionError,
    DataStoreClosedError,
    DataStoreError,
    DataStoreIOError,
    NotFoundError,
)
from .base import ContentSource, Destination, ObjectReader

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _error_code(error: Exception) -> Optional[str]:
    if isinstance(error, ClientError):
        return str(error.response.get("Error", {}).get("Code", ""))
    return None


def is_not_found(error: Exception) -> bool:
    """Whether a backend error means the object does not exist."""
    return _error_code(error) in NOT_FOUND_CODES


class _UploadWriter:
    """ContentWriter that streams into S3.

    Buffers up to one part. The first full part starts a multipart
    upload; content smaller than a part is sent with a single PutObject.
    """

    def __init__(self, client: Any, bucket: str, key: str, chunk_size: int) -> None:
        self._client = client
        self._bucket = bucket
        self._key = key
        self._chunk_size = chunk_size
        self._buffer = bytearray()
        self._upload_id: Optional[str] = None
        self._parts: List[Dict[str, Any]] = []
        self.bytes_written = 0

    async def write(self, data: bytes) -> None:
        self._buffer.extend(data)
        self.bytes_written += len(data)
        while len(self._buffer) >= self._chunk_size:
            part = bytes(self._buffer[: self._chunk_size])
            del self._buffer[: self._chunk_size]
            await self._upload_part(part)

    async def _upload_part(self, data: bytes) -> None:
        if self._upload_id is None:
            response = await self._client.create_multipart_upload(
                Bucket=self._bucket,
                Key=self._key,
            )
            self._upload_id = response["UploadId"]

        part_number = len(self._parts) + 1
        response = await self._client.upload_part(
            Bucket=self._bucket,
            Key=self._key,
            UploadId=self._upload_id,
            PartNumber=part_number,
            Body=data,
        )
        self._parts.append({"PartNumber": part_number, "ETag": response["ETag"]})

    async def finish(self) -> None:
        if self._upload_id is None:
            await self._client.put_object(
                Bucket=self._bucket,
                Key=self._key,
                Body=bytes(self._buffer),
            )
            self._buffer.clear()
            return

        if self._buffer:
            await self._upload_part(bytes(self._buffer))
            self._buffer.clear()

        await self._client.complete_multipart_upload(
            Bucket=self._bucket,
            Key=self._key,
            UploadId=self._upload_id,
            MultipartUpload={"Parts": self._parts},
        )
        self._upload_id = None

    async def abort(self) -> None:
        if self._upload_id is None:
            return
        upload_id, self._upload_id = self._upload_id, None
        try:
            await self._client.abort_multipart_upload(
                Bucket=self._bucket,
                Key=self._key,
                UploadId=upload_id,
            )
        except Exception as e:
            logger.warning(
                f"Failed to abort multipart upload: {e}",
                extra={"bucket": self._bucket, "key": self._key, "upload_id": upload_id},
            )


class S3DataStore:
    """DataStore backed by a single S3 bucket and prefix.

    Use S3DataStore.open() (or create_datastore()) rather than the
    constructor, so that the bucket is verified before first use.

    Attributes:
        destination: Bucket and prefix this store is bound to
        config: Connection configuration

    Thread safety:
        The aiobotocore client supports concurrent requests. Safe to use
        from multiple coroutines.

    Example:
        >>> store = await S3DataStore.open(parse_destination_url("s3://ledgers/pubnet"))
        >>> async with store:
        ...     await store.put_file("0-63.xdr.gz", BytesContent(data))
    """

    def __init__(
        self,
        client_ctx: Any,
        client: Any,
        destination: Destination,
        config: DataStoreConfig,
    ) -> None:
        self._client_ctx = client_ctx
        self._client = client
        self.destination = destination
        self.config = config
        self._closed = False

    @classmethod
    async def open(
        cls,
        destination: Destination,
        config: Optional[DataStoreConfig] = None,
        session: Any = None,
    ) -> S3DataStore:
        """Create the S3 client and verify the bucket exists.

        Args:
            destination: Parsed destination URL
            config: Connection configuration (DataStoreConfig.from_env() if not provided)
            session: Optional aiobotocore session

        Returns:
            Open S3DataStore

        Raises:
            ConstructionError: If the bucket is missing or inaccessible
            InvalidConfigError: If config is invalid
        """
        if config is None:
            config = replace(DataStoreConfig.from_env(), destination_url=str(destination))
        config.validate()

        logger.info(
            f"creating S3 client for bucket: {destination.bucket}, prefix: {destination.prefix}",
            extra={"bucket": destination.bucket, "prefix": destination.prefix},
        )

        session = session or get_session()
        client_kwargs: Dict[str, Any] = {
            "region_name": config.region,
            "config": AioConfig(
                connect_timeout=config.connect_timeout_seconds,
                read_timeout=config.read_timeout_seconds,
                retries={"total_max_attempts": config.max_attempts, "mode": "standard"},
            ),
        }
        if config.endpoint_url:
            client_kwargs["endpoint_url"] = config.endpoint_url
        if config.access_key_id:
            client_kwargs["aws_access_key_id"] = config.access_key_id
            client_kwargs["aws_secret_access_key"] = config.secret_access_key

        client_ctx = session.create_client("s3", **client_kwargs)
        try:
            client = await client_ctx.__aenter__()
        except Exception as e:
            raise ConstructionError(
                f"failed to create S3 client: {e}",
                destination_url=str(destination),
            ) from e

        # Check the bucket exists
        try:
            await client.head_bucket(Bucket=destination.bucket)
        except asyncio.CancelledError:
            await client_ctx.__aexit__(None, None, None)
            raise
        except Exception as e:
            await client_ctx.__aexit__(None, None, None)
            raise ConstructionError(
                f"failed to retrieve bucket attributes for {destination.bucket}: {e}",
                destination_url=str(destination),
            ) from e

        return cls(client_ctx, client, destination, config)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _check_open(self, operation: str, path: Optional[str] = None) -> None:
        if self._closed:
            raise DataStoreClosedError(operation, path)

    def _resolve(self, operation: str, path: str) -> str:
        self._check_open(operation, path)
        return self.destination.object_key(path)

    def _io_error(self, operation: str, path: str, key: str, error: Exception) -> DataStoreIOError:
        return DataStoreIOError(
            f"{operation}: {key}: {error}",
            operation=operation,
            key=path,
        )

    def _read_error(self, operation: str, path: str, key: str, error: Exception) -> DataStoreError:
        # Absence is only reported by reads, writes always fail with an I/O error
        if is_not_found(error):
            return NotFoundError(operation, path)
        return self._io_error(operation, path, key, error)

    async def _head(self, operation: str, path: str) -> Dict[str, Any]:
        key = self._resolve(operation, path)
        try:
            return await self._client.head_object(Bucket=self.destination.bucket, Key=key)
        except Exception as e:
            raise self._read_error(operation, path, key, e) from e

    async def get_file(self, path: str) -> ObjectReader:
        """Open an object for reading."""
        key = self._resolve("get_file", path)
        try:
            response = await self._client.get_object(Bucket=self.destination.bucket, Key=key)
        except Exception as e:
            raise self._read_error("get_file", path, key, e) from e

        return ObjectReader(response["Body"], path, response.get("ContentLength"))

    async def put_file(self, path: str, content: ContentSource) -> None:
        """Stream content into the object at path, replacing it."""
        key = self._resolve("put_file", path)
        writer = _UploadWriter(
            self._client,
            self.destination.bucket,
            key,
            self.config.multipart_chunk_size,
        )
        try:
            await content.write_to(writer)
            await writer.finish()
        except asyncio.CancelledError:
            await writer.abort()
            raise
        except DataStoreError:
            await writer.abort()
            raise
        except Exception as e:
            await writer.abort()
            raise self._io_error("put_file", path, key, e) from e

        logger.debug(
            "Wrote object",
            extra={
                "bucket": self.destination.bucket,
                "key": key,
                "size_bytes": writer.bytes_written,
            },
        )

    async def put_file_if_not_exists(self, path: str, content: ContentSource) -> bool:
        """Write content unless an object already exists at path."""
        if await self.exists(path):
            logger.info(
                "Object already exists, skipping write",
                extra={"bucket": self.destination.bucket, "key": self.destination.object_key(path)},
            )
            return False

        await self.put_file(path, content)
        return True

    async def exists(self, path: str) -> bool:
        """Whether an object exists at path."""
        key = self._resolve("exists", path)
        try:
            await self._client.head_object(Bucket=self.destination.bucket, Key=key)
        except Exception as e:
            if is_not_found(e):
                return False
            raise self._io_error("exists", path, key, e) from e
        return True

    async def size(self, path: str) -> int:
        """Size of the object at path in bytes."""
        response = await self._head("size", path)
        return int(response["ContentLength"])

    async def close(self) -> None:
        """Release the S3 client."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._client_ctx.__aexit__(None, None, None)
        except Exception as e:
            raise DataStoreIOError(f"close: {e}", operation="close") from e
        finally:
            self._client = None

    async def __aenter__(self) -> S3DataStore:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"S3DataStore(destination={str(self.destination)!r}, closed={self._closed})"
