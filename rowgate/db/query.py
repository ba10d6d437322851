from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .driver import DatabaseDriver

"""Minimal parameterized query builder.

Identifiers are quoted through the driver and every value travels as a bound
parameter using the driver's placeholder (``%s`` for psycopg2, ``?`` for
sqlite3). Only ``where(clause)`` accepts a raw SQL fragment, for caller
supplied group filters.
"""

__all__ = [
    "Query",
]

_OPERATORS = frozenset({"=", "<>", "<", ">", "<=", ">="})


class Query:
    def __init__(self, db: DatabaseDriver) -> None:
        self._db = db
        self._kind: str | None = None
        self._table: str | None = None
        self._columns: list[str] = []
        self._sets: list[tuple[str, Any]] = []
        self._where: list[tuple[str, list[Any]]] = []
        self._order: list[str] = []
        self._limit: int | None = None

    # --- statement kind -------------------------------------------------
    def select(self, *columns: str) -> Query:
        self._kind = "select"
        self._columns.extend(columns)
        return self

    def from_(self, table: str) -> Query:
        self._table = table
        return self

    def update(self, table: str) -> Query:
        self._kind = "update"
        self._table = table
        return self

    def delete(self, table: str) -> Query:
        self._kind = "delete"
        self._table = table
        return self

    # --- clauses --------------------------------------------------------
    def set(self, column: str, value: Any) -> Query:
        self._sets.append((column, value))
        return self

    def where(self, clause: str, *params: Any) -> Query:
        self._where.append((clause, list(params)))
        return self

    def where_op(self, column: str, op: str, value: Any) -> Query:
        if op not in _OPERATORS:
            raise ValueError(f"unsupported operator: {op}")
        ph = self._db.placeholder
        return self.where(f"{self._db.quote_name(column)} {op} {ph}", value)

    def where_equals(self, filters: Mapping[str, Any]) -> Query:
        for column, value in filters.items():
            self.where_op(column, "=", value)
        return self

    def where_any(self, filters: Sequence[Mapping[str, Any]]) -> Query:
        """OR together several equality filters (IN for single column keys)."""
        if not filters:
            raise ValueError("where_any requires at least one filter")
        ph = self._db.placeholder
        columns = {tuple(f.keys()) for f in filters}
        if len(columns) == 1 and len(next(iter(columns))) == 1:
            (column,) = next(iter(columns))
            values = [f[column] for f in filters]
            marks = ", ".join([ph] * len(values))
            return self.where(f"{self._db.quote_name(column)} IN ({marks})", *values)
        parts: list[str] = []
        params: list[Any] = []
        for f in filters:
            parts.append(
                "(" + " AND ".join(f"{self._db.quote_name(c)} = {ph}" for c in f) + ")"
            )
            params.extend(f.values())
        return self.where("(" + " OR ".join(parts) + ")", *params)

    def order(self, column: str, descending: bool = False) -> Query:
        self._order.append(self._db.quote_name(column) + (" DESC" if descending else " ASC"))
        return self

    def limit(self, n: int) -> Query:
        self._limit = int(n)
        return self

    # --- output ---------------------------------------------------------
    def build(self) -> tuple[str, list[Any]]:
        if self._kind is None or not self._table:
            raise ValueError("query has no statement type or table")
        table = self._db.quote_name(self._table)
        params: list[Any] = []
        if self._kind == "select":
            cols = ", ".join(
                "*" if c == "*" else self._db.quote_name(c) for c in (self._columns or ["*"])
            )
            sql = f"SELECT {cols} FROM {table}"
        elif self._kind == "update":
            if not self._sets:
                raise ValueError("update query without SET clause")
            ph = self._db.placeholder
            sql = f"UPDATE {table} SET " + ", ".join(
                f"{self._db.quote_name(c)} = {ph}" for c, _ in self._sets
            )
            params.extend(v for _, v in self._sets)
        else:
            sql = f"DELETE FROM {table}"

        if self._where:
            sql += " WHERE " + " AND ".join(f"({c})" for c, _ in self._where)
            for _, p in self._where:
                params.extend(p)
        if self._kind == "select":
            if self._order:
                sql += " ORDER BY " + ", ".join(self._order)
            if self._limit is not None:
                sql += f" LIMIT {self._limit}"
        return sql, params

    def __str__(self) -> str:  # pragma: no cover (debug helper)
        return self.build()[0]
