"""SheetKV CLI entry points.

This module exposes get/set/delete commands against one remote table.
It maps argparse commands onto store calls and prints JSON results.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from core.config import SheetKVConfig
from core.errors import SheetKVConfigError, SheetKVError
from core.profile import load_profile
from core.types import AuthInfo
from remote.google_auth import GoogleOAuthProvider, TokenFile
from store.cloud_store import CloudStore
from store.value_codec import decode_value


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="sheetkv", description="Spreadsheet-backed key-value store")
    parser.add_argument("--config", help="YAML profile applied over SHEETKV_* variables")
    parser.add_argument("--spreadsheet-key", help="Override SHEETKV_SPREADSHEET_KEY")
    parser.add_argument("--table", help="Override SHEETKV_TABLE_NAME")
    parser.add_argument("--credentials", help="Override SHEETKV_CREDENTIALS_PATH")
    parser.add_argument("--token", help="Override SHEETKV_TOKEN_PATH")
    parser.add_argument(
        "--save-token",
        action="store_true",
        help="Persist a newly exchanged token to the token path",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    get_parser = subparsers.add_parser("get", help="Print a stored value as JSON")
    get_parser.add_argument("key", help="Entry key")
    get_parser.add_argument("--path", help="Dotted/bracketed path into the value")
    set_parser = subparsers.add_parser("set", help="Store a value")
    set_parser.add_argument("key", help="Entry key")
    set_parser.add_argument("value", help="JSON value; non-JSON text is stored as a string")
    set_parser.add_argument("--path", help="Dotted/bracketed path into the value")
    delete_parser = subparsers.add_parser("delete", help="Delete an entry or a sub-field")
    delete_parser.add_argument("key", help="Entry key")
    delete_parser.add_argument("--path", help="Dotted/bracketed path into the value")
    subparsers.add_parser("delete-all", help="Delete every entry")
    subparsers.add_parser("keys", help="Print stored keys as a JSON list")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the SheetKV CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _build_config(args)
        return asyncio.run(_run(config, args))
    except SheetKVError as error:
        print(f"sheetkv: {error}", file=sys.stderr)
        return 1


async def open_store(config: SheetKVConfig) -> CloudStore:
    """Open and hydrate the store described by config.

    Args:
        config: Runtime configuration.

    Returns:
        Ready store.

    Raises:
        SheetKVConfigError: If no client secret is configured.
    """
    if config.credentials_path is None:
        raise SheetKVConfigError(
            "No OAuth client secret configured. "
            "Set SHEETKV_CREDENTIALS_PATH or pass --credentials."
        )
    try:
        credentials = config.credentials_path.read_text(encoding="utf-8")
    except OSError as error:
        raise SheetKVConfigError(
            f"Failed to read OAuth client secret at {config.credentials_path}: {error}."
        ) from error
    token_file = TokenFile(config.token_path)
    auth_info = AuthInfo(credentials=credentials, token=token_file.read())
    return await CloudStore.open(
        config.store_options(),
        auth_info,
        auth_provider=GoogleOAuthProvider(token_file),
        policy=config.replication_policy(),
    )


def _build_config(args: argparse.Namespace) -> SheetKVConfig:
    """Resolve env config, profile, and flag overrides.

    Args:
        args: Parsed CLI args.

    Returns:
        Effective configuration.
    """
    config = SheetKVConfig.from_env()
    if args.config:
        config = load_profile(args.config, config)
    overrides: dict[str, Any] = {}
    if args.spreadsheet_key:
        overrides["spreadsheet_key"] = args.spreadsheet_key
    if args.table:
        overrides["table_name"] = args.table
    if args.credentials:
        overrides["credentials_path"] = Path(args.credentials).expanduser().resolve()
    if args.token:
        overrides["token_path"] = Path(args.token).expanduser().resolve()
    if args.save_token:
        overrides["save_token"] = True
    return replace(config, **overrides)


async def _run(config: SheetKVConfig, args: argparse.Namespace) -> int:
    store = await open_store(config)
    if args.command == "get":
        _print_json(store.get(args.key, path=args.path))
        return 0
    if args.command == "set":
        await store.set(args.key, decode_value(args.value), path=args.path)
        _print_json(store.get(args.key))
        return 0
    if args.command == "delete":
        await store.delete(args.key, path=args.path)
        return 0
    if args.command == "delete-all":
        await store.delete_all()
        return 0
    if args.command == "keys":
        _print_json(list(store.keys()))
        return 0
    raise SheetKVConfigError(f"Unsupported command: {args.command}")


def _print_json(payload: object) -> None:
    print(json.dumps(payload, ensure_ascii=False, sort_keys=True))
