"""
Ledger Datastore Test Suite.

This package contains:
- unit/: Unit tests (no external services, S3 via a fake client)
- integration/: Archival flows against the in-memory datastore
"""
