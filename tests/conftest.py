"""
Shared fixtures for the ledger datastore test suite.

Provides a fake aiobotocore session whose S3 client keeps objects in
memory and raises real botocore ClientError instances.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from botocore.exceptions import ClientError


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeBody:
    """Stand-in for aiobotocore's StreamingBody."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0
        self.close_count = 0

    async def read(self, amt: Optional[int] = None) -> bytes:
        if amt is None:
            amt = len(self._data) - self._pos
        chunk = self._data[self._pos : self._pos + amt]
        self._pos += len(chunk)
        return chunk

    def close(self) -> None:
        self.close_count += 1


class FakeS3Client:
    """In-memory S3 client recording every call."""

    def __init__(self, buckets: List[str]) -> None:
        self.buckets = set(buckets)
        self.objects: Dict[tuple, bytes] = {}
        self.uploads: Dict[str, Dict[int, bytes]] = {}
        self.aborted: List[str] = []
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.bodies: List[FakeBody] = []
        self._next_upload = 0

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        error = self.failures.get(operation)
        if error is not None:
            raise error

    async def head_bucket(self, Bucket: str) -> Dict[str, Any]:
        self._record("head_bucket")
        if Bucket not in self.buckets:
            raise client_error("404", "HeadBucket")
        return {}

    async def head_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        self._record("head_object")
        if (Bucket, Key) not in self.objects:
            raise client_error("404", "HeadObject")
        return {"ContentLength": len(self.objects[(Bucket, Key)])}

    async def get_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        self._record("get_object")
        if (Bucket, Key) not in self.objects:
            raise client_error("NoSuchKey", "GetObject")
        data = self.objects[(Bucket, Key)]
        body = FakeBody(data)
        self.bodies.append(body)
        return {"Body": body, "ContentLength": len(data)}

    async def put_object(self, Bucket: str, Key: str, Body: bytes) -> Dict[str, Any]:
        self._record("put_object")
        self.objects[(Bucket, Key)] = bytes(Body)
        return {"ETag": '"etag"'}

    async def create_multipart_upload(self, Bucket: str, Key: str) -> Dict[str, Any]:
        self._record("create_multipart_upload")
        self._next_upload += 1
        upload_id = f"upload-{self._next_upload}"
        self.uploads[upload_id] = {}
        return {"UploadId": upload_id}

    async def upload_part(
        self, Bucket: str, Key: str, UploadId: str, PartNumber: int, Body: bytes
    ) -> Dict[str, Any]:
        self._record("upload_part")
        self.uploads[UploadId][PartNumber] = bytes(Body)
        return {"ETag": f'"part-{PartNumber}"'}

    async def complete_multipart_upload(
        self, Bucket: str, Key: str, UploadId: str, MultipartUpload: Dict[str, Any]
    ) -> Dict[str, Any]:
        self._record("complete_multipart_upload")
        parts = self.uploads.pop(UploadId)
        numbers = [p["PartNumber"] for p in MultipartUpload["Parts"]]
        self.objects[(Bucket, Key)] = b"".join(parts[n] for n in numbers)
        return {"ETag": '"multipart"'}

    async def abort_multipart_upload(self, Bucket: str, Key: str, UploadId: str) -> Dict[str, Any]:
        self._record("abort_multipart_upload")
        self.uploads.pop(UploadId, None)
        self.aborted.append(UploadId)
        return {}


class FakeClientContext:
    def __init__(self, client: FakeS3Client) -> None:
        self.client = client
        self.exit_count = 0

    async def __aenter__(self) -> FakeS3Client:
        return self.client

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.exit_count += 1


class FakeSession:
    """Stand-in for aiobotocore.session.AioSession."""

    def __init__(self, buckets: List[str]) -> None:
        self.client = FakeS3Client(buckets)
        self.contexts: List[FakeClientContext] = []
        self.client_kwargs: List[Dict[str, Any]] = []

    def create_client(self, service_name: str, **kwargs: Any) -> FakeClientContext:
        assert service_name == "s3"
        self.client_kwargs.append(kwargs)
        ctx = FakeClientContext(self.client)
        self.contexts.append(ctx)
        return ctx


@pytest.fixture
def fake_session() -> FakeSession:
    """Fake aiobotocore session with one existing bucket, "ledgers"."""
    return FakeSession(buckets=["ledgers"])
