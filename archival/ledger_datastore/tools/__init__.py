"""
CLI tools for ledger datastore administration.

This module provides command-line tools for:
- datastore: Derive keys and inspect or upload archived ledger files

Invariants:
    - Tools never overwrite objects unless asked to
    - All operations are logged for audit
"""

from .datastore_cli import DataStoreCLI

__all__ = ["DataStoreCLI"]
