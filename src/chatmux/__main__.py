"""CLI entrypoint for chatmux."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from importlib import metadata
import logging
from pathlib import Path
import sys

from .app import ChatmuxApp
from .config import (
    CONFIG_PATH,
    DATABASE_PATH,
    ensure_config_dir,
    is_first_run,
    load_config,
    save_config,
)
from .exceptions import ConfigValidationError, StoreError
from .logging_utils import configure_logging
from .store import ConversationStore

LOGGER = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatmux",
        description="chatmux - terminal chat client for hosted and local LLM providers",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Path to the YAML configuration file (default: {CONFIG_PATH})",
    )
    parser.add_argument(
        "--database",
        type=Path,
        default=None,
        help="Path to the SQLite conversation store (default: next to the config file)",
    )
    return parser


async def _run(config_path: Path, database_path: Path) -> int:
    first_run = is_first_run(config_path)
    config = load_config(config_path)
    configure_logging(config.logging.model_dump())
    if first_run:
        save_config(config, config_path)
        LOGGER.info(
            "config.created",
            extra={"event": "config.created", "path": str(config_path)},
        )
    store = ConversationStore(database_path)
    await store.open()
    try:
        await ChatmuxApp(config, store, config_path=config_path).run_async()
    finally:
        await store.close()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Load configuration, open the store and run the TUI; return the exit code."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("chatmux")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"chatmux {version}")
        return 0

    config_path: Path = args.config or CONFIG_PATH
    ensure_config_dir(config_path.parent)
    if args.database is not None:
        database_path: Path = args.database
    elif args.config is not None:
        database_path = config_path.parent / DATABASE_PATH.name
    else:
        database_path = DATABASE_PATH

    try:
        return asyncio.run(_run(config_path, database_path))
    except (ConfigValidationError, StoreError) as exc:
        LOGGER.error("startup.failed", extra={"event": "startup.failed", "error": str(exc)})
        print(f"chatmux: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
