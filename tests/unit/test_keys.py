"""
Unit tests for object key derivation.

Tests cover:
- Flat and partitioned layouts
- Single-ledger files
- Configuration validation
- Parsing keys back into ledger ranges
"""

import pytest

from archival.ledger_datastore.errors import InvalidConfigError, InvalidKeyError
from archival.ledger_datastore.keys import (
    MAX_LEDGER_SEQUENCE,
    LedgerRange,
    get_object_key_from_sequence_number,
    get_sequence_range,
    parse_object_key,
)

SUFFIX = ".xdr.gz"


class TestGetObjectKey:
    """Tests for get_object_key_from_sequence_number."""

    @pytest.mark.parametrize(
        "seq,ledgers_per_file,files_per_partition,expected",
        [
            (5, 64, 0, "0-63.xdr.gz"),
            (5, 1, 0, "5.xdr.gz"),
            (200, 64, 10, "0-639/192-255.xdr.gz"),
            (700, 64, 10, "640-1279/640-703.xdr.gz"),
            (0, 64, 10, "0-639/0-63.xdr.gz"),
            (639, 64, 10, "0-639/576-639.xdr.gz"),
            (640, 64, 10, "640-1279/640-703.xdr.gz"),
            (5, 1, 10, "0-9/5.xdr.gz"),
            (64, 64, 0, "64-127.xdr.gz"),
        ],
    )
    def test_known_keys(self, seq, ledgers_per_file, files_per_partition, expected):
        """Keys match the documented layout."""
        key = get_object_key_from_sequence_number(seq, ledgers_per_file, files_per_partition, SUFFIX)
        assert key == expected

    def test_deterministic(self):
        """Repeated calls return the same key."""
        keys = {get_object_key_from_sequence_number(12345, 64, 10, SUFFIX) for _ in range(5)}
        assert len(keys) == 1

    def test_same_file_range_same_key(self):
        """All ledgers in one file range share a key."""
        keys = {get_object_key_from_sequence_number(seq, 64, 10, SUFFIX) for seq in range(128, 192)}
        assert keys == {"0-639/128-191.xdr.gz"}

    def test_different_file_ranges_distinct_keys(self):
        """Ledgers in different file ranges get distinct keys."""
        keys = [get_object_key_from_sequence_number(seq, 8, 4, SUFFIX) for seq in range(0, 256, 8)]
        assert len(set(keys)) == len(keys)

    def test_single_ledger_files_have_no_range(self):
        """With one ledger per file the file name is the sequence number."""
        for seq in (0, 1, 99, 100000):
            key = get_object_key_from_sequence_number(seq, 1, 0, "")
            assert key == str(seq)
            assert "-" not in key

    def test_partition_of_one_is_flat(self):
        """files_per_partition of 1 behaves like 0."""
        for seq in (0, 200, 700):
            assert get_object_key_from_sequence_number(
                seq, 64, 1, SUFFIX
            ) == get_object_key_from_sequence_number(seq, 64, 0, SUFFIX)

    def test_file_start_is_monotone(self):
        """File ranges never go backwards as sequence numbers grow."""
        starts = [get_sequence_range(seq, 10).start for seq in range(0, 500, 7)]
        assert starts == sorted(starts)

    def test_suffix_appended_verbatim(self):
        """Suffix is appended without modification."""
        assert get_object_key_from_sequence_number(3, 1, 0, "") == "3"
        assert get_object_key_from_sequence_number(3, 1, 0, "/ledger.bin") == "3/ledger.bin"

    def test_top_of_range(self):
        """Largest 32-bit sequence is accepted."""
        key = get_object_key_from_sequence_number(MAX_LEDGER_SEQUENCE, 1, 0, SUFFIX)
        assert key == "4294967295.xdr.gz"

    def test_zero_ledgers_per_file_rejected(self):
        """ledgers_per_file must be at least 1."""
        with pytest.raises(InvalidConfigError) as exc_info:
            get_object_key_from_sequence_number(10, 0, 0, SUFFIX)
        assert exc_info.value.field_name == "ledgers_per_file"
        assert exc_info.value.code == "INVALID_CONFIG"

    def test_invalid_config_is_value_error(self):
        """InvalidConfigError can be caught as ValueError."""
        with pytest.raises(ValueError):
            get_object_key_from_sequence_number(10, 0, 10, SUFFIX)

    @pytest.mark.parametrize("seq", [-1, MAX_LEDGER_SEQUENCE + 1, True, 1.5, "7"])
    def test_sequence_out_of_range_rejected(self, seq):
        """Sequence numbers must be unsigned 32-bit integers."""
        with pytest.raises(InvalidConfigError):
            get_object_key_from_sequence_number(seq, 64, 0, SUFFIX)

    def test_negative_files_per_partition_rejected(self):
        with pytest.raises(InvalidConfigError):
            get_object_key_from_sequence_number(10, 64, -1, SUFFIX)


class TestGetSequenceRange:
    """Tests for get_sequence_range."""

    def test_range_bounds(self):
        assert get_sequence_range(700, 64) == LedgerRange(start=640, end=703)

    def test_range_contains_sequence(self):
        ledger_range = get_sequence_range(700, 64)
        assert 700 in ledger_range
        assert 704 not in ledger_range
        assert ledger_range.size == 64

    def test_single_ledger_range(self):
        ledger_range = get_sequence_range(42, 1)
        assert ledger_range.start == ledger_range.end == 42


class TestParseObjectKey:
    """Tests for parse_object_key."""

    def test_parse_partitioned_key(self):
        parsed = parse_object_key("640-1279/640-703.xdr.gz", SUFFIX)
        assert parsed == LedgerRange(start=640, end=703, partition_start=640, partition_end=1279)

    def test_parse_flat_key(self):
        parsed = parse_object_key("0-63.xdr.gz", SUFFIX)
        assert parsed.start == 0
        assert parsed.end == 63
        assert parsed.partition_start is None

    def test_parse_single_ledger_key(self):
        assert parse_object_key("5.xdr.gz", SUFFIX) == LedgerRange(start=5, end=5)

    def test_parse_recovers_derived_range(self):
        """Parsing a derived key yields the range holding the ledger."""
        for seq in (0, 63, 64, 700, 99999):
            key = get_object_key_from_sequence_number(seq, 64, 10, SUFFIX)
            assert seq in parse_object_key(key, SUFFIX)

    @pytest.mark.parametrize(
        "key",
        [
            "abc.xdr.gz",
            "007.xdr.gz",
            "0-63.json",
            "63-0.xdr.gz",
            "5-5.xdr.gz",
            "640-1279/0-63.xdr.gz",
            "/0-63.xdr.gz",
        ],
    )
    def test_parse_rejects_invalid_keys(self, key):
        with pytest.raises(InvalidKeyError):
            parse_object_key(key, SUFFIX)
