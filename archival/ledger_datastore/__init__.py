"""
Ledger Datastore - content-addressed archival of ledger history in object storage.

This package maps ledger sequence numbers onto stable object keys and provides
a storage abstraction for writing those objects to a remote bucket:
- Ledgers are grouped into fixed-size files (ledgers_per_file)
- Files are optionally grouped into directory partitions (files_per_partition)
- Objects are written once and treated as immutable afterwards

Layout:
    s3://<bucket>/<prefix>/<partition_start>-<partition_end>/<file_start>-<file_end><suffix>

Invariants:
    - Key derivation is a pure function of the sequence number and batch config
    - Ledgers in the same file range always share one key
    - Re-running an archival job never fails because an object already exists

How to change safely:
    - Never change the key grammar for existing archives
    - New storage backends must implement the DataStore protocol
"""

from ._version import __version__

__all__ = ["__version__"]
