from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from rowgate.models.schema import is_composite

from .query import Query

"""DB-API driver wrapper used by the row gateway.

psycopg2 (dialect=postgresql) が本番経路。sqlite3 (dialect=sqlite) はローカル
検証・テスト用途。どちらも DB-API 2.0 connection をそのまま受け取り、接続の
所有権は呼び出し側に残す (close / commit はしない。unlock_tables を除く)。

- `#__` テーブルプレフィックスは実行直前に置換
- insert / update は値が None もしくは複合値 (dict / list) の列を送らない
- ドライバ例外は DatabaseError でラップ
"""

__all__ = [
    "DatabaseDriver",
    "DatabaseError",
    "DEFAULT_DATE_FORMAT",
]

DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
PREFIX_PLACEHOLDER = "#__"

_PLACEHOLDERS = {
    "postgresql": "%s",
    "sqlite": "?",
}


class DatabaseError(Exception):
    pass


class DatabaseDriver:
    def __init__(
        self,
        connection: Any,
        *,
        dialect: str = "postgresql",
        prefix: str = "",
        null_date: str | None = None,
        date_format: str = DEFAULT_DATE_FORMAT,
    ) -> None:
        if dialect not in _PLACEHOLDERS:
            raise ValueError(f"unsupported dialect: {dialect}")
        self.connection = connection
        self.dialect = dialect
        self.prefix = prefix
        self.null_date = null_date
        self.date_format = date_format

    @property
    def placeholder(self) -> str:
        return _PLACEHOLDERS[self.dialect]

    def get_query(self) -> Query:
        return Query(self)

    def replace_prefix(self, sql: str) -> str:
        return sql.replace(PREFIX_PLACEHOLDER, self.prefix)

    def quote_name(self, name: str) -> str:
        return ".".join('"' + part.replace('"', '""') + '"' for part in name.split("."))

    def now(self) -> str:
        return datetime.now(UTC).strftime(self.date_format)

    def _run(self, sql: Query | str, params: Sequence[Any] = ()) -> Any:
        if isinstance(sql, Query):
            sql, params = sql.build()
        sql = self.replace_prefix(sql)
        cur = self.connection.cursor()
        try:
            cur.execute(sql, tuple(params))
        except Exception as e:
            cur.close()
            raise DatabaseError(f"{e} [sql={sql}]") from e
        return cur

    def execute(self, sql: Query | str, params: Sequence[Any] = ()) -> int:
        """Execute a statement and return the affected row count."""
        cur = self._run(sql, params)
        try:
            return cur.rowcount
        finally:
            cur.close()

    def load_assoc(self, sql: Query | str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        """Return the first row as a column -> value mapping, or None."""
        cur = self._run(sql, params)
        try:
            row = cur.fetchone()
            if row is None:
                return None
            columns = [d[0] for d in cur.description]
            return dict(zip(columns, row))
        finally:
            cur.close()

    def load_assoc_list(self, sql: Query | str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        cur = self._run(sql, params)
        try:
            columns = [d[0] for d in cur.description]
            return [dict(zip(columns, row)) for row in cur.fetchall()]
        finally:
            cur.close()

    def insert_object(self, table: str, data: Mapping[str, Any], key: str | None = None) -> Any:
        """INSERT one row; returns the storage assigned value of ``key`` (or None)."""
        values = {k: v for k, v in data.items() if v is not None and not is_composite(v)}
        t = self.quote_name(table)
        if values:
            cols_sql = ", ".join(self.quote_name(c) for c in values)
            marks = ", ".join([self.placeholder] * len(values))
            sql = f"INSERT INTO {t} ({cols_sql}) VALUES ({marks})"
        else:
            sql = f"INSERT INTO {t} DEFAULT VALUES"

        if key and self.dialect == "postgresql":
            sql += f" RETURNING {self.quote_name(key)}"
        cur = self._run(sql, list(values.values()))
        try:
            if not key:
                return None
            if self.dialect == "postgresql":
                row = cur.fetchone()
                return row[0] if row else None
            return cur.lastrowid
        finally:
            cur.close()

    def update_object(
        self,
        table: str,
        data: Mapping[str, Any],
        keys: str | Sequence[str],
        update_nulls: bool = False,
    ) -> bool:
        key_names = (keys,) if isinstance(keys, str) else tuple(keys)
        q = self.get_query().update(table)
        changed = 0
        for column, value in data.items():
            if column in key_names or is_composite(value):
                continue
            if value is None and not update_nulls:
                continue
            q.set(column, value)
            changed += 1
        if not changed:
            return True
        for k in key_names:
            q.where_op(k, "=", data.get(k))
        self.execute(q)
        return True

    def insert_rows(self, table: str, columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> int:
        """Multi-row INSERT. psycopg2 は execute_values、sqlite3 は executemany。"""
        rows_list = [tuple(r) for r in rows]
        if not rows_list:
            return 0
        t = self.replace_prefix(self.quote_name(table))
        cols_sql = ", ".join(self.quote_name(c) for c in columns)
        cur = self.connection.cursor()
        try:
            if self.dialect == "postgresql":
                from psycopg2.extras import execute_values

                execute_values(cur, f"INSERT INTO {t} ({cols_sql}) VALUES %s", rows_list)
            else:
                marks = ", ".join([self.placeholder] * len(columns))
                cur.executemany(f"INSERT INTO {t} ({cols_sql}) VALUES ({marks})", rows_list)
        except Exception as e:
            raise DatabaseError(str(e)) from e
        finally:
            cur.close()
        return len(rows_list)

    def lock_table(self, table: str) -> None:
        if self.dialect == "postgresql":
            self.execute(f"LOCK TABLE {self.quote_name(table)} IN EXCLUSIVE MODE")
        elif not getattr(self.connection, "in_transaction", False):
            self.execute("BEGIN IMMEDIATE")

    def unlock_tables(self) -> None:
        # PostgreSQL のテーブルロックはトランザクション終了で解放される
        try:
            self.connection.commit()
        except Exception as e:
            raise DatabaseError(str(e)) from e
