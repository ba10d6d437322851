from __future__ import annotations

import logging
import os
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from rowgate.models.config_models import AppConfig

from .driver import DatabaseDriver, DatabaseError

"""Connection helper for the CLI.

接続情報の解決優先順位 (.env は CLI 側で override 読み込み済み):
    1. DATABASE_URL / PGDSN があれば DSN 全体をそのまま使用
    2. 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. 設定ファイル database セクション (不足分のフォールバック)

sqlite dialect は database (ファイルパス) のみを参照する。
"""

__all__ = [
    "build_dsn",
    "db_connection",
]

logger = logging.getLogger(__name__)


def build_dsn(cfg: AppConfig) -> str:
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _connect(cfg: AppConfig):  # pragma: no cover (thin wrapper; tested via mocks)
    if cfg.database.dialect == "sqlite":
        return sqlite3.connect(cfg.database.database or ":memory:")
    try:
        import psycopg2
    except ImportError as e:
        raise DatabaseError(f"psycopg2 not available: {e}") from e
    try:
        conn = psycopg2.connect(build_dsn(cfg))
    except psycopg2.Error as e:
        raise DatabaseError(f"connection failed: {e}") from e
    conn.autocommit = False
    return conn


@contextmanager
def db_connection(cfg: AppConfig) -> Iterator[DatabaseDriver]:
    """Yield a DatabaseDriver; commit on clean exit, rollback on error."""
    conn = _connect(cfg)
    driver = DatabaseDriver(
        conn,
        dialect=cfg.database.dialect,
        prefix=cfg.database.prefix,
    )
    try:
        yield driver
        conn.commit()
    except BaseException:
        logger.debug("rolling back open transaction")
        conn.rollback()
        raise
    finally:
        conn.close()
