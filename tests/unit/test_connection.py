from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from rowgate.db.connection import build_dsn, db_connection
from rowgate.db.driver import DatabaseDriver
from rowgate.models.config_models import AppConfig, DatabaseConfig

PG_ENV = ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE")


@pytest.fixture()
def clean_env(monkeypatch):
    for name in PG_ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_build_dsn_from_config(clean_env):
    cfg = AppConfig(database=DatabaseConfig(host="db", port=6543, user="u", password="p", database="d"))
    assert build_dsn(cfg) == "host=db port=6543 user=u dbname=d password=p"


def test_build_dsn_env_overrides_config(clean_env):
    clean_env.setenv("PGHOST", "envhost")
    clean_env.setenv("PGDATABASE", "envdb")
    cfg = AppConfig(database=DatabaseConfig(host="db", user="u", database="d"))
    assert build_dsn(cfg) == "host=envhost port=5432 user=u dbname=envdb"


def test_build_dsn_prefers_database_url(clean_env):
    clean_env.setenv("DATABASE_URL", "postgresql://x@y/z")
    cfg = AppConfig(database=DatabaseConfig(dsn="host=ignored"))
    assert build_dsn(cfg) == "postgresql://x@y/z"


def test_db_connection_commits_on_success():
    conn = MagicMock()
    cfg = AppConfig(database=DatabaseConfig(prefix="jos_"))
    with patch("rowgate.db.connection._connect", return_value=conn):
        with db_connection(cfg) as db:
            assert isinstance(db, DatabaseDriver)
            assert db.prefix == "jos_"
            assert db.dialect == "postgresql"
    conn.commit.assert_called_once()
    conn.rollback.assert_not_called()
    conn.close.assert_called_once()


def test_db_connection_rolls_back_on_error():
    conn = MagicMock()
    cfg = AppConfig(database=DatabaseConfig())
    with patch("rowgate.db.connection._connect", return_value=conn):
        with pytest.raises(RuntimeError):
            with db_connection(cfg):
                raise RuntimeError("boom")
    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    conn.close.assert_called_once()


def test_db_connection_sqlite_file(tmp_path):
    cfg = AppConfig(database=DatabaseConfig(dialect="sqlite", database=str(tmp_path / "local.db")))
    with db_connection(cfg) as db:
        db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        db.insert_object("t", {"id": None}, "id")
    with db_connection(cfg) as db:
        assert db.load_assoc("SELECT COUNT(*) AS n FROM t") == {"n": 1}
