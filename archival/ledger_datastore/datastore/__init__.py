"""
Datastore abstraction for archived ledger files.

This module provides a pluggable object store interface supporting:
- S3 and S3-compatible stores such as MinIO (production)
- In-memory (for testing)

Invariants:
    - A store is bound to one bucket and prefix for its whole lifetime
    - put_file_if_not_exists() never clobbers an existing object
    - close() is called exactly once at the end of the store's lifetime

How to change safely:
    - New backends must implement DataStore protocol
    - Keep error mapping identical across backends
"""

from ..errors import (
    ConstructionError,
    DataStoreClosedError,
    DataStoreError,
    DataStoreIOError,
    InvalidKeyError,
    NotFoundError,
)
from .base import (
    BytesContent,
    ContentSource,
    ContentWriter,
    DataStore,
    Destination,
    ObjectReader,
    StreamContent,
    create_datastore,
    parse_destination_url,
)
from .memory import InMemoryDataStore
from .s3 import S3DataStore

__all__ = [
    # Protocol and types
    "DataStore",
    "ContentSource",
    "ContentWriter",
    "BytesContent",
    "StreamContent",
    "ObjectReader",
    "Destination",
    "DataStoreError",
    "ConstructionError",
    "NotFoundError",
    "DataStoreIOError",
    "DataStoreClosedError",
    "InvalidKeyError",
    # Factory
    "create_datastore",
    "parse_destination_url",
    # Implementations
    "S3DataStore",
    "InMemoryDataStore",
]
