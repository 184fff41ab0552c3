"""Librarian CLI entry points.

This module exposes snapshot administration and item inspection commands.
It maps argparse commands onto VersionedTable calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from decimal import Decimal
import json
import sys
from typing import Any, Sequence

from core.config import LibrarianConfig
from core.errors import LibrarianError
from core.logging_config import configure_logging
from core.types import is_pre_snapshot
from store.versioned_table import VersionedTable


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="librarian", description="Snapshot and rollback DynamoDB tables"
    )
    parser.add_argument("--table", help="Override LIBRARIAN_TABLE for this command")
    parser.add_argument("--partition-key", help="Override LIBRARIAN_PARTITION_KEY")
    parser.add_argument(
        "--partition-key-type", choices=("S", "N"), help="Override LIBRARIAN_PARTITION_KEY_TYPE"
    )
    parser.add_argument("--sort-key", help="Override LIBRARIAN_SORT_KEY")
    parser.add_argument(
        "--sort-key-type", choices=("S", "N"), help="Override LIBRARIAN_SORT_KEY_TYPE"
    )
    parser.add_argument("--region", help="Override LIBRARIAN_AWS_REGION")
    parser.add_argument("--profile", help="Override LIBRARIAN_AWS_PROFILE")
    parser.add_argument("--endpoint-url", help="Override LIBRARIAN_ENDPOINT_URL")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_list_command(subparsers)
    _add_snapshot_command(subparsers)
    _add_rollback_command(subparsers)
    _add_get_command(subparsers)
    _add_scan_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the librarian CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _build_config(args)
        configure_logging(config.log_level)
        table = VersionedTable.from_config(config)
        if args.command == "list":
            return _run_list_command(table)
        if args.command == "snapshot":
            return _run_snapshot_command(table, args)
        if args.command == "rollback":
            return _run_rollback_command(table, args)
        if args.command == "get":
            return _run_get_command(table, args)
        if args.command == "scan":
            return _run_scan_command(table, args)
    except LibrarianError as error:
        print(f"error: {error}", file=sys.stderr)
        return 1
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_config(args: argparse.Namespace) -> LibrarianConfig:
    """Apply CLI overrides on top of the environment config.

    Args:
        args: Parsed CLI args.

    Returns:
        Effective configuration.
    """
    config = LibrarianConfig.from_env()
    overrides = {
        "table_name": args.table,
        "partition_key": args.partition_key,
        "partition_key_type": args.partition_key_type,
        "sort_key": args.sort_key,
        "sort_key_type": args.sort_key_type,
        "aws_region": args.region,
        "aws_profile": args.profile,
        "endpoint_url": args.endpoint_url,
    }
    return replace(config, **{name: value for name, value in overrides.items() if value})


def _run_list_command(table: VersionedTable) -> int:
    """Handle list command.

    Args:
        table: Versioned table.

    Returns:
        Exit code.
    """
    names = table.snapshot_names()
    active_id = table.active_snapshot_id
    for snapshot_id in table.list_snapshots():
        marker = "\t*" if snapshot_id == active_id else ""
        print(f"{snapshot_id}\t{names.get(snapshot_id, '-')}{marker}")
    return 0


def _run_snapshot_command(table: VersionedTable, args: argparse.Namespace) -> int:
    """Handle snapshot command."""
    print(table.snapshot(args.name))
    return 0


def _run_rollback_command(table: VersionedTable, args: argparse.Namespace) -> int:
    """Handle rollback command; no name means pre-snapshot data."""
    snapshot_id = table.rollback(args.name)
    print("-" if is_pre_snapshot(snapshot_id) else snapshot_id)
    return 0


def _run_get_command(table: VersionedTable, args: argparse.Namespace) -> int:
    """Handle get command.

    Args:
        table: Versioned table.
        args: Parsed CLI args.

    Returns:
        Exit code; 1 when the item does not exist.
    """
    key = _parse_key(args.key)
    if args.snapshot is None:
        item = table.get_item(key, consistent_read=args.consistent_read)
    else:
        item = table.get_item_from_snapshot(
            key, args.snapshot, consistent_read=args.consistent_read
        )
    if item is None:
        print("error: item not found", file=sys.stderr)
        return 1
    print(_dump_item(item))
    return 0


def _run_scan_command(table: VersionedTable, args: argparse.Namespace) -> int:
    """Handle scan command."""
    if args.snapshot is None:
        items = table.scan(consistent_read=args.consistent_read)
    else:
        items = table.scan_from_snapshot(args.snapshot, consistent_read=args.consistent_read)
    for item in items:
        print(_dump_item(item))
    return 0


def _parse_key(raw_key: str) -> dict[str, Any]:
    """Parse a JSON object key; numbers become Decimal like boto3 values.

    Raises:
        LibrarianError: If the value is not a JSON object.
    """
    try:
        key = json.loads(raw_key, parse_float=Decimal, parse_int=Decimal)
    except json.JSONDecodeError as error:
        raise LibrarianError(f"Invalid --key JSON: {error.msg}.") from error
    if not isinstance(key, dict):
        raise LibrarianError("Invalid --key JSON: expected an object of key attributes.")
    return key


def _dump_item(item: dict[str, Any]) -> str:
    return json.dumps(item, sort_keys=True, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _add_list_command(subparsers: Any) -> None:
    """Register list subcommand."""
    subparsers.add_parser("list", help="List snapshots, most recent first")


def _add_snapshot_command(subparsers: Any) -> None:
    """Register snapshot subcommand."""
    parser = subparsers.add_parser("snapshot", help="Take a new snapshot")
    parser.add_argument("name", help="Snapshot name")


def _add_rollback_command(subparsers: Any) -> None:
    """Register rollback subcommand."""
    parser = subparsers.add_parser("rollback", help="Make a snapshot active for every client")
    parser.add_argument(
        "name",
        nargs="?",
        default="",
        help="Snapshot name; omit to roll back to data written before any snapshot",
    )


def _add_get_command(subparsers: Any) -> None:
    """Register get subcommand."""
    parser = subparsers.add_parser("get", help="Read one item")
    parser.add_argument("--key", required=True, help='Primary key as JSON, e.g. {"id": "a"}')
    parser.add_argument("--snapshot", help="Read only from this snapshot, without fallback")
    parser.add_argument("--consistent-read", action="store_true", help="Strongly consistent read")


def _add_scan_command(subparsers: Any) -> None:
    """Register scan subcommand."""
    parser = subparsers.add_parser("scan", help="Print every item as JSON lines")
    parser.add_argument("--snapshot", help="Only items written to this snapshot")
    parser.add_argument("--consistent-read", action="store_true", help="Strongly consistent read")
