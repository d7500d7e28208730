"""
Object key derivation for archived ledger files.

Ledger sequence numbers are grouped into files of `ledgers_per_file`
ledgers, and files are optionally grouped into directory partitions of
`files_per_partition` files.

Key format:
    [<partition_start>-<partition_end>/]<file_start>[-<file_end>]<suffix>

Examples (suffix ".xdr.gz"):
    seq=5,   ledgers_per_file=1,  files_per_partition=0   -> 5.xdr.gz
    seq=5,   ledgers_per_file=64, files_per_partition=0   -> 0-63.xdr.gz
    seq=700, ledgers_per_file=64, files_per_partition=10  -> 640-1279/640-703.xdr.gz

Invariants:
    - Derivation is pure and deterministic
    - Ledgers in the same file range map to the identical key
    - Ledgers in different file ranges map to distinct keys
    - files_per_partition of 0 or 1 means a flat layout

How to change safely:
    - Existing archives depend on this exact grammar, never alter it
    - New layouts must be opt-in through new config fields
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import InvalidConfigError, InvalidKeyError

MAX_LEDGER_SEQUENCE = 2**32 - 1

_KEY_PATTERN = re.compile(
    r"^(?:(?P<partition_start>0|[1-9]\d*)-(?P<partition_end>0|[1-9]\d*)/)?"
    r"(?P<file_start>0|[1-9]\d*)(?:-(?P<file_end>0|[1-9]\d*))?$"
)


@dataclass(frozen=True)
class LedgerRange:
    """Inclusive range of ledger sequence numbers stored in one file.

    Attributes:
        start: First ledger sequence in the file
        end: Last ledger sequence in the file
        partition_start: First ledger of the enclosing partition, if any
        partition_end: Last ledger of the enclosing partition, if any
    """

    start: int
    end: int
    partition_start: int | None = None
    partition_end: int | None = None

    @property
    def size(self) -> int:
        """Number of ledgers in the range."""
        return self.end - self.start + 1

    def __contains__(self, ledger_seq: object) -> bool:
        return isinstance(ledger_seq, int) and self.start <= ledger_seq <= self.end

    def __str__(self) -> str:
        return f"[{self.start}, {self.end}]"


def _check_uint32(value: object, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigError(
            f"Invalid {field_name} ({value!r}): must be an integer",
            field_name=field_name,
        )
    if value < 0 or value > MAX_LEDGER_SEQUENCE:
        raise InvalidConfigError(
            f"Invalid {field_name} ({value}): must be between 0 and {MAX_LEDGER_SEQUENCE}",
            field_name=field_name,
        )
    return value


def validate_batch_params(ledgers_per_file: int, files_per_partition: int) -> None:
    """Validate partitioning parameters.

    Raises:
        InvalidConfigError: If ledgers_per_file < 1 or files_per_partition < 0
    """
    _check_uint32(ledgers_per_file, "ledgers_per_file")
    _check_uint32(files_per_partition, "files_per_partition")
    if ledgers_per_file < 1:
        raise InvalidConfigError(
            f"Invalid ledgers per file ({ledgers_per_file}): must be at least 1",
            field_name="ledgers_per_file",
        )


def get_sequence_range(ledger_seq: int, ledgers_per_file: int) -> LedgerRange:
    """Return the file range containing a ledger.

    Args:
        ledger_seq: Ledger sequence number
        ledgers_per_file: Ledgers grouped into one file

    Returns:
        LedgerRange with start and end of the file

    Raises:
        InvalidConfigError: If inputs are out of range
    """
    validate_batch_params(ledgers_per_file, 0)
    _check_uint32(ledger_seq, "ledger_seq")

    file_start = (ledger_seq // ledgers_per_file) * ledgers_per_file
    return LedgerRange(start=file_start, end=file_start + ledgers_per_file - 1)


def get_object_key_from_sequence_number(
    ledger_seq: int,
    ledgers_per_file: int,
    files_per_partition: int,
    file_suffix: str,
) -> str:
    """Generate the object key for the file holding a ledger.

    Args:
        ledger_seq: Ledger sequence number
        ledgers_per_file: Ledgers grouped into one file (>= 1)
        files_per_partition: Files grouped into one directory (0 or 1 = flat)
        file_suffix: Literal suffix appended to the key

    Returns:
        Object key relative to the datastore prefix

    Raises:
        InvalidConfigError: If ledgers_per_file < 1 or inputs are out of range

    Example:
        >>> get_object_key_from_sequence_number(200, 64, 10, ".xdr.gz")
        '0-639/192-255.xdr.gz'
    """
    validate_batch_params(ledgers_per_file, files_per_partition)
    _check_uint32(ledger_seq, "ledger_seq")

    object_key = ""

    if files_per_partition > 1:
        partition_size = ledgers_per_file * files_per_partition
        partition_start = (ledger_seq // partition_size) * partition_size
        partition_end = partition_start + partition_size - 1
        object_key = f"{partition_start}-{partition_end}/"

    file_start = (ledger_seq // ledgers_per_file) * ledgers_per_file
    file_end = file_start + ledgers_per_file - 1
    object_key += str(file_start)

    # Multiple ledgers per file
    if file_start != file_end:
        object_key += f"-{file_end}"

    return object_key + file_suffix


def parse_object_key(key: str, file_suffix: str) -> LedgerRange:
    """Recover the ledger range from a derived object key.

    Inverse of get_object_key_from_sequence_number() for keys that follow
    the grammar. Does not check the range against a batch config.

    Args:
        key: Object key relative to the datastore prefix
        file_suffix: Suffix the key was generated with

    Returns:
        LedgerRange described by the key

    Raises:
        InvalidKeyError: If the key does not match the grammar
    """
    if file_suffix and not key.endswith(file_suffix):
        raise InvalidKeyError(f"Key {key!r} does not end with {file_suffix!r}", key=key)

    base = key[: len(key) - len(file_suffix)] if file_suffix else key
    match = _KEY_PATTERN.match(base)
    if not match:
        raise InvalidKeyError(f"Key {key!r} is not a ledger object key", key=key)

    start = int(match.group("file_start"))
    end = int(match.group("file_end")) if match.group("file_end") is not None else start
    if end <= start and match.group("file_end") is not None:
        raise InvalidKeyError(f"Key {key!r} has an empty ledger range", key=key)

    partition_start = partition_end = None
    if match.group("partition_start") is not None:
        partition_start = int(match.group("partition_start"))
        partition_end = int(match.group("partition_end"))
        if not partition_start <= start <= end <= partition_end:
            raise InvalidKeyError(
                f"Key {key!r} has a file range outside its partition", key=key
            )

    return LedgerRange(
        start=start,
        end=end,
        partition_start=partition_start,
        partition_end=partition_end,
    )
