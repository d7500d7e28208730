"""
Datastore CLI tool.

This tool inspects and manages archived ledger files:
- key: Print the object key for a ledger sequence number
- exists: Check whether an object exists
- size: Print the size of an object
- get: Download an object
- put: Upload an object, optionally only if absent

Usage:
    ledger-datastore key --sequence 700 --ledgers-per-file 64 --files-per-partition 10
    ledger-datastore --destination s3://ledgers/pubnet exists 0-639/0-63.xdr.gz
    ledger-datastore --destination s3://ledgers/pubnet put 0-63.xdr.gz --input batch.xdr.gz --if-not-exists

Exit codes:
    0 success, 1 datastore error, 2 usage error, 3 object absent (exists)

Invariants:
    - put --if-not-exists never overwrites an existing object
    - Batch settings default to the LEDGERS_PER_FILE/FILES_PER_PARTITION/FILE_SUFFIX env vars

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for scripting
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable, Optional, Sequence

from ..config import AppConfig, DataStoreConfig, LedgerBatchConfig
from ..datastore import DataStore, StreamContent, create_datastore
from ..errors import DataStoreError, InvalidConfigError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_ABSENT = 3

StoreFactory = Callable[[str, DataStoreConfig], Awaitable[DataStore]]


class DataStoreCLI:
    """CLI commands over an open datastore.

    Example:
        >>> cli = DataStoreCLI(store)
        >>> await cli.exists("0-63.xdr.gz")
        0
    """

    def __init__(self, store: DataStore, out: Any = None) -> None:
        self.store = store
        self.out = out or sys.stdout

    async def exists(self, path: str) -> int:
        found = await self.store.exists(path)
        print("true" if found else "false", file=self.out)
        return EXIT_OK if found else EXIT_ABSENT

    async def size(self, path: str) -> int:
        print(await self.store.size(path), file=self.out)
        return EXIT_OK

    async def get(self, path: str, output: Any) -> int:
        total = 0
        async with await self.store.get_file(path) as reader:
            async for chunk in reader:
                output.write(chunk)
                total += len(chunk)
        logger.info("Downloaded object", extra={"key": path, "size_bytes": total})
        return EXIT_OK

    async def put(self, path: str, source: Any, if_not_exists: bool = False) -> int:
        content = StreamContent(source)
        if if_not_exists:
            written = await self.store.put_file_if_not_exists(path, content)
            print("written" if written else "exists", file=self.out)
        else:
            await self.store.put_file(path, content)
            print("written", file=self.out)
        return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-datastore",
        description="Inspect and manage archived ledger files",
    )
    parser.add_argument(
        "--destination",
        help="Destination URL s3://bucket/prefix (default: DATASTORE_DESTINATION_URL)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    key_parser = subparsers.add_parser("key", help="Print the object key for a ledger")
    key_parser.add_argument("--sequence", type=int, required=True, help="Ledger sequence number")
    key_parser.add_argument("--ledgers-per-file", type=int, help="Ledgers per file")
    key_parser.add_argument("--files-per-partition", type=int, help="Files per partition")
    key_parser.add_argument("--suffix", help="File suffix")

    exists_parser = subparsers.add_parser("exists", help="Check whether an object exists")
    exists_parser.add_argument("path", help="Object path relative to the prefix")

    size_parser = subparsers.add_parser("size", help="Print object size in bytes")
    size_parser.add_argument("path", help="Object path relative to the prefix")

    get_parser = subparsers.add_parser("get", help="Download an object")
    get_parser.add_argument("path", help="Object path relative to the prefix")
    get_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    put_parser = subparsers.add_parser("put", help="Upload an object")
    put_parser.add_argument("path", help="Object path relative to the prefix")
    put_parser.add_argument("--input", "-i", required=True, help="File to upload")
    put_parser.add_argument(
        "--if-not-exists",
        action="store_true",
        help="Skip the upload if the object already exists",
    )

    return parser


def _batch_config(args: argparse.Namespace, defaults: LedgerBatchConfig) -> LedgerBatchConfig:
    return LedgerBatchConfig(
        ledgers_per_file=(
            args.ledgers_per_file if args.ledgers_per_file is not None else defaults.ledgers_per_file
        ),
        files_per_partition=(
            args.files_per_partition
            if args.files_per_partition is not None
            else defaults.files_per_partition
        ),
        file_suffix=args.suffix if args.suffix is not None else defaults.file_suffix,
    )


async def _run_store_command(
    args: argparse.Namespace,
    config: AppConfig,
    store_factory: StoreFactory,
) -> int:
    destination = args.destination or config.datastore.destination_url
    if not destination:
        print("error: --destination or DATASTORE_DESTINATION_URL is required", file=sys.stderr)
        return EXIT_USAGE

    store = await store_factory(destination, config.datastore)
    try:
        cli = DataStoreCLI(store)
        if args.command == "exists":
            return await cli.exists(args.path)
        if args.command == "size":
            return await cli.size(args.path)
        if args.command == "get":
            if args.output:
                with open(args.output, "wb") as f:
                    return await cli.get(args.path, f)
            return await cli.get(args.path, sys.stdout.buffer)
        if args.command == "put":
            with open(args.input, "rb") as f:
                return await cli.put(args.path, f, if_not_exists=args.if_not_exists)
        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await store.close()


def run(
    argv: Optional[Sequence[str]] = None,
    store_factory: Optional[StoreFactory] = None,
) -> int:
    """Run the CLI and return an exit code.

    Args:
        argv: Command line arguments (default: sys.argv[1:])
        store_factory: Coroutine opening a store (default: create_datastore)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = AppConfig.from_env()
    except (InvalidConfigError, ValueError) as e:
        print(f"error: invalid configuration: {e}", file=sys.stderr)
        return EXIT_USAGE

    setup_logging(config.observability, verbose=args.verbose)

    if args.command == "key":
        try:
            batch = _batch_config(args, config.batch)
            print(batch.get_object_key(args.sequence))
        except InvalidConfigError as e:
            print(f"error: {e}", file=sys.stderr)
            return EXIT_USAGE
        return EXIT_OK

    factory = store_factory or create_datastore
    try:
        return asyncio.run(_run_store_command(args, config, factory))
    except DataStoreError as e:
        logger.error(f"Datastore command failed: {e}", extra={"code": e.code, **e.details})
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


def main() -> None:
    """CLI entry point for the datastore tool."""
    sys.exit(run())


if __name__ == "__main__":
    main()
