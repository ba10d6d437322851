from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from rowgate.config.loader import ConfigError, load_config
from rowgate.db.connection import db_connection
from rowgate.db.driver import DatabaseError
from rowgate.logging.error_log import ErrorLogBuffer
from rowgate.logging.init import log_summary, setup_logging
from rowgate.services.factory import TableFactory, UnknownRecordTypeError
from rowgate.services.messages import Text
from rowgate.table import Table, TableError

"""CLI entrypoint: maintenance operations on a single table.

    python -m rowgate.cli [--config PATH] [--debug] COMMAND ...

Commands: load / reorder / move / publish / delete.
操作が False を返した場合はテーブルのエラーログを logs/errors-*.log へ書き出し
EXIT_OPERATION_FAILED を返す。
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_OPERATION_FAILED = 2

DEFAULT_CONFIG = Path("config/rowgate.yml")


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv (override: .env wins over the process env)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_where(pairs: list[str] | None) -> dict[str, str] | None:
    if not pairs:
        return None
    where: dict[str, str] = {}
    for pair in pairs:
        column, sep, value = pair.partition("=")
        if not sep or not column:
            raise ValueError(f"--where expects column=value, got {pair!r}")
        where[column] = value
    return where


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="rowgate", description="Row gateway maintenance tool")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)
    sp = sub.add_parser("load", help="Print one row as JSON")
    sp.add_argument("record")
    sp.add_argument("key")

    sp = sub.add_parser("reorder", help="Compact ordering values to 1..N")
    sp.add_argument("record")
    sp.add_argument("--where", action="append", metavar="COLUMN=VALUE")

    sp = sub.add_parser("move", help="Swap a row with its ordering neighbour")
    sp.add_argument("record")
    sp.add_argument("key")
    sp.add_argument("delta", type=int)
    sp.add_argument("--where", action="append", metavar="COLUMN=VALUE")

    sp = sub.add_parser("publish", help="Set the published/state column")
    sp.add_argument("record")
    sp.add_argument("keys", nargs="+")
    sp.add_argument("--state", type=int, default=1)

    sp = sub.add_parser("delete", help="Delete one row")
    sp.add_argument("record")
    sp.add_argument("key")
    return p.parse_args(argv)


def run_command(table: Table, args: argparse.Namespace) -> tuple[bool, Any]:
    """Dispatch one parsed command against a table. Returns (ok, output)."""
    cmd = args.command
    if cmd == "load":
        ok = table.load(args.key)
        return ok, table.dump() if ok else None
    if cmd == "reorder":
        with table.locking():
            return table.reorder(_parse_where(args.where)), None
    if cmd == "move":
        if not table.load(args.key):
            return False, None
        with table.locking():
            return table.move(args.delta, _parse_where(args.where)), None
    if cmd == "publish":
        return table.publish(args.keys, args.state), None
    if cmd == "delete":
        return table.delete(args.key), None
    raise ValueError(f"unknown command: {cmd}")


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        for h in logger.handlers:
            h.setLevel("DEBUG")
        logger.setLevel("DEBUG")
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        with db_connection(cfg) as db:
            factory = TableFactory(db, cfg.tables, records=cfg.records, text=Text(cfg.messages))
            table = factory.create(args.record)
            ok, output = run_command(table, args)
    except (DatabaseError, TableError, UnknownRecordTypeError, ValueError) as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL

    if output is not None:
        print(json.dumps(output, ensure_ascii=False, default=str))

    errors = table.get_errors()
    if not ok:
        for message in errors:
            logger.warning(f"{table.get_table()}: {message}")
        if errors and os.getenv("ROWGATE_NO_ERROR_FILE") != "1":
            buffer = ErrorLogBuffer()
            buffer.extend(table.error_log.to_records(args.command, getattr(args, "key", None)))
            path = buffer.flush()
            logger.info(f"error log written: {path}")

    log_summary(
        f"command={args.command} record={args.record} table={table.get_table()} "
        f"ok={str(ok).lower()} errors={len(errors)}"
    )
    return EXIT_SUCCESS if ok else EXIT_OPERATION_FAILED


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
