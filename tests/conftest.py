# Shared pytest fixtures
from __future__ import annotations
import sqlite3
import tempfile
from pathlib import Path

import pytest

from rowgate.db.driver import DatabaseDriver
from rowgate.logging.init import reset_logging
from rowgate.models.schema import Field, Schema

TABLE_PREFIX = "app_"

# 本番 (PostgreSQL) のテーブル構成を sqlite で再現したもの
SQLITE_DDL = """
CREATE TABLE app_tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    parent_id INTEGER NOT NULL DEFAULT 0,
    lft INTEGER NOT NULL DEFAULT 0,
    rgt INTEGER NOT NULL DEFAULT 0,
    level INTEGER NOT NULL DEFAULT 0,
    title TEXT,
    path TEXT,
    alias TEXT,
    description TEXT,
    published INTEGER NOT NULL DEFAULT 0,
    checked_out INTEGER,
    checked_out_time TEXT,
    params TEXT,
    created TEXT,
    created_by INTEGER,
    modified TEXT,
    modified_by INTEGER
);
CREATE TABLE app_tags_map (
    tag_id INTEGER NOT NULL,
    content_item_id INTEGER NOT NULL
);
CREATE TABLE app_users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id INTEGER,
    name TEXT,
    username TEXT,
    email TEXT,
    password TEXT,
    block INTEGER NOT NULL DEFAULT 0,
    sendEmail INTEGER,
    registerDate TEXT,
    lastvisitDate TEXT,
    activation TEXT,
    params TEXT,
    lastResetTime TEXT,
    resetCount INTEGER,
    otpKey TEXT,
    otep TEXT,
    requireReset INTEGER
);
CREATE TABLE app_user_profiles (
    user_id INTEGER NOT NULL,
    profile_key TEXT NOT NULL,
    profile_value TEXT
);
CREATE TABLE app_acl (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    parent_id INTEGER,
    resource TEXT,
    rules TEXT
);
CREATE TABLE app_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    grp INTEGER NOT NULL DEFAULT 0,
    title TEXT,
    ordering INTEGER NOT NULL DEFAULT 0,
    state INTEGER NOT NULL DEFAULT 0,
    meta TEXT
);
CREATE TABLE app_links (
    left_id INTEGER NOT NULL,
    right_id INTEGER NOT NULL,
    ordering INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (left_id, right_id)
);
"""

ITEM_SCHEMA = Schema(
    table="#__items",
    fields=(
        Field("id", primary_key=True),
        Field("grp"),
        Field("title"),
        Field("ordering", ordering=True),
        Field("state"),
        Field("meta", serialized=True),
    ),
)

LINK_SCHEMA = Schema(
    table="#__links",
    fields=(
        Field("left_id", primary_key=True),
        Field("right_id", primary_key=True),
        Field("ordering", ordering=True),
    ),
)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sqlite_db() -> DatabaseDriver:
    conn = sqlite3.connect(":memory:")
    conn.executescript(SQLITE_DDL)
    yield DatabaseDriver(conn, dialect="sqlite", prefix=TABLE_PREFIX)
    conn.close()


@pytest.fixture()
def item_schema() -> Schema:
    return ITEM_SCHEMA


@pytest.fixture()
def link_schema() -> Schema:
    return LINK_SCHEMA


@pytest.fixture()
def seed_items(sqlite_db: DatabaseDriver):
    """Insert (grp, title, ordering) rows into app_items; returns the new ids."""
    def _seed(rows: list[tuple[int, str, int]]) -> list[int]:
        cur = sqlite_db.connection.cursor()
        ids = []
        for grp, title, ordering in rows:
            cur.execute(
                "INSERT INTO app_items (grp, title, ordering) VALUES (?, ?, ?)",
                (grp, title, ordering),
            )
            ids.append(cur.lastrowid)
        cur.close()
        return ids
    return _seed


@pytest.fixture()
def orderings(sqlite_db: DatabaseDriver):
    """Read back id -> ordering for app_items."""
    def _read() -> dict[int, int]:
        cur = sqlite_db.connection.execute("SELECT id, ordering FROM app_items ORDER BY id")
        return dict(cur.fetchall())
    return _read


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  dialect: sqlite
  database: ":memory:"
  prefix: app_
tables:
  alias_max_attempts: 5
  username_max_length: 20
  password_iterations: 1000
messages:
  APP_ERROR_TABLE_EMPTY_ROW: "row not found"
records:
  item:
    table: "#__items"
    fields: [id, grp, title, ordering, state, meta]
    ordering: ordering
    serialized: [meta]
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "rowgate.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()
