#!/usr/bin/env python3
"""Inspect a statesync local storage directory.

Usage
-----
::

    python scripts/inspect_storage.py list
    python scripts/inspect_storage.py show app_state
    python scripts/inspect_storage.py show app_state --path user.name
    python scripts/inspect_storage.py remove app_state

Options::

    --dir DIR         Storage directory (default: $STATESYNC_STORAGE_DIR or ~/.statesync)
    --no-redact       Print stored values without redacting sensitive keys
    --verbose / -v    Enable debug logging
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from statesync import LocalStorageAdapter, StorageError  # noqa: E402
from statesync._redact import redact_for_log  # noqa: E402
from statesync.paths import MISSING, get_path  # noqa: E402


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect a statesync local storage directory")
    parser.add_argument("--dir", type=Path, default=os.environ.get("STATESYNC_STORAGE_DIR"))
    parser.add_argument("--no-redact", action="store_true")
    parser.add_argument("--verbose", "-v", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List stored keys")
    show = sub.add_parser("show", help="Pretty-print a stored value")
    show.add_argument("key")
    show.add_argument("--path", default=None, help="Dot-notation path inside the stored tree")
    remove = sub.add_parser("remove", help="Delete a stored key")
    remove.add_argument("key")
    return parser.parse_args(argv)


def _show(adapter: LocalStorageAdapter, key: str, path: str | None, redact: bool) -> int:
    raw = adapter.get_item(key)
    if raw is None:
        print(f"no such key: {key}", file=sys.stderr)
        return 1
    try:
        value: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        print(f"{key}: not valid JSON ({exc})", file=sys.stderr)
        print(raw)
        return 1
    if path:
        value = get_path(value, path)
        if value is MISSING:
            print(f"{key}: no value at {path}", file=sys.stderr)
            return 1
    if redact:
        value = redact_for_log(value, max_string=10_000, max_items=10_000)
    print(json.dumps(value, indent=2, ensure_ascii=False))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    adapter = LocalStorageAdapter(Path(args.dir).expanduser() if args.dir else None)

    try:
        if args.command == "list":
            for key in adapter.keys():
                print(key)
            return 0
        if args.command == "show":
            return _show(adapter, args.key, args.path, not args.no_redact)
        if args.command == "remove":
            adapter.remove_item(args.key)
            print(f"removed {args.key}")
            return 0
    except StorageError as exc:
        print(f"storage error: {exc}", file=sys.stderr)
        return 2
    return 1


if __name__ == "__main__":
    sys.exit(main())
