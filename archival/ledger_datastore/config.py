"""
Configuration management for the ledger datastore.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Batch configuration is immutable for the lifetime of an archival job
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Never change batch defaults for an existing archive, keys depend on them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .errors import InvalidConfigError
from .keys import (
    LedgerRange,
    get_object_key_from_sequence_number,
    get_sequence_range,
    validate_batch_params,
)

logger = logging.getLogger(__name__)

# S3 rejects multipart parts smaller than 5MB (except the last one)
MIN_MULTIPART_CHUNK_SIZE = 5 * 1024 * 1024


@dataclass(frozen=True)
class DataStoreConfig:
    """Object store connection configuration.

    Attributes:
        destination_url: Locator of the form s3://bucket/path/prefix
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO)
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
        connect_timeout_seconds: Client connect timeout
        read_timeout_seconds: Client read timeout
        max_attempts: Attempts made by the underlying client (1 = no retries)
        multipart_chunk_size: Part size for streamed uploads
    """

    destination_url: str = ""
    region: str = "us-east-1"
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    connect_timeout_seconds: float = 10.0
    read_timeout_seconds: float = 60.0
    max_attempts: int = 1
    multipart_chunk_size: int = 8 * 1024 * 1024  # 8MB

    @classmethod
    def from_env(cls) -> DataStoreConfig:
        """Load configuration from environment variables."""
        return cls(
            destination_url=os.getenv("DATASTORE_DESTINATION_URL", ""),
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            connect_timeout_seconds=float(os.getenv("S3_CONNECT_TIMEOUT_SECONDS", "10")),
            read_timeout_seconds=float(os.getenv("S3_READ_TIMEOUT_SECONDS", "60")),
            max_attempts=int(os.getenv("S3_MAX_ATTEMPTS", "1")),
            multipart_chunk_size=int(
                os.getenv("S3_MULTIPART_CHUNK_SIZE", str(8 * 1024 * 1024))
            ),
        )

    def validate(self) -> None:
        """Validate connection settings.

        Raises:
            InvalidConfigError: If a setting is out of range
        """
        if self.max_attempts < 1:
            raise InvalidConfigError(
                f"S3_MAX_ATTEMPTS must be at least 1, got {self.max_attempts}",
                field_name="max_attempts",
            )
        if self.multipart_chunk_size < MIN_MULTIPART_CHUNK_SIZE:
            raise InvalidConfigError(
                f"S3_MULTIPART_CHUNK_SIZE must be at least {MIN_MULTIPART_CHUNK_SIZE}, "
                f"got {self.multipart_chunk_size}",
                field_name="multipart_chunk_size",
            )
        if self.connect_timeout_seconds <= 0 or self.read_timeout_seconds <= 0:
            raise InvalidConfigError("S3 timeouts must be positive", field_name="timeout")


@dataclass(frozen=True)
class LedgerBatchConfig:
    """How ledgers are grouped into files and partitions.

    Attributes:
        ledgers_per_file: Ledgers stored in one object (>= 1)
        files_per_partition: Files grouped into one directory (0 or 1 = flat)
        file_suffix: Suffix appended to every object key
    """

    ledgers_per_file: int = 64
    files_per_partition: int = 10
    file_suffix: str = ".xdr.gz"

    def __post_init__(self) -> None:
        validate_batch_params(self.ledgers_per_file, self.files_per_partition)

    @classmethod
    def from_env(cls) -> LedgerBatchConfig:
        """Load configuration from environment variables."""
        return cls(
            ledgers_per_file=int(os.getenv("LEDGERS_PER_FILE", "64")),
            files_per_partition=int(os.getenv("FILES_PER_PARTITION", "10")),
            file_suffix=os.getenv("FILE_SUFFIX", ".xdr.gz"),
        )

    def get_object_key(self, ledger_seq: int) -> str:
        """Object key of the file holding a ledger."""
        return get_object_key_from_sequence_number(
            ledger_seq,
            self.ledgers_per_file,
            self.files_per_partition,
            self.file_suffix,
        )

    def get_sequence_range(self, ledger_seq: int) -> LedgerRange:
        """File range holding a ledger."""
        return get_sequence_range(ledger_seq, self.ledgers_per_file)


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class AppConfig:
    """Complete configuration.

    Attributes:
        datastore: Object store configuration
        batch: Ledger batching configuration
        observability: Logging configuration
    """

    datastore: DataStoreConfig = field(default_factory=DataStoreConfig)
    batch: LedgerBatchConfig = field(default_factory=LedgerBatchConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load complete configuration from environment variables.

        Returns:
            AppConfig with all sections populated from environment.

        Raises:
            InvalidConfigError: If configuration is invalid.
            ValueError: If a numeric variable cannot be parsed.
        """
        config = cls(
            datastore=DataStoreConfig.from_env(),
            batch=LedgerBatchConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            InvalidConfigError: If configuration is invalid.
        """
        self.datastore.validate()

        if self.observability.log_format not in ("json", "text"):
            raise InvalidConfigError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text",
                field_name="log_format",
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Datastore configuration loaded",
            extra={
                "destination_url": self.datastore.destination_url,
                "region": self.datastore.region,
                "endpoint_url": self.datastore.endpoint_url,
                "static_credentials": self.datastore.access_key_id is not None,
                "ledgers_per_file": self.batch.ledgers_per_file,
                "files_per_partition": self.batch.files_per_partition,
                "file_suffix": self.batch.file_suffix,
                "log_level": self.observability.log_level,
            },
        )
