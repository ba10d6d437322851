from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any, ClassVar

from rowgate.db.driver import DatabaseDriver
from rowgate.logging.error_log import ErrorLog
from rowgate.models.schema import Schema, is_composite
from rowgate.services.messages import Text

"""Row gateway: one in-memory record mapped to one database row.

Flow for callers:
    table = TagTable(db)
    table.load(5)                  # optional
    if not table.save({"title": "x"}):
        print(table.get_errors())

Error taxonomy:
- programmer / configuration mistakes raise TableError subclasses
- data level failures (row not found, validation) go to the error log and
  the operation returns False
- driver failures propagate as DatabaseError untouched

Instances are request scoped and not thread safe; the database connection is
injected and never owned by the table.
"""

__all__ = [
    "Table",
    "TableError",
    "UnknownFieldError",
    "OrderingNotSupportedError",
    "IncompatiblePatchError",
    "as_mapping",
    "is_empty",
    "patch_value",
]

logger = logging.getLogger(__name__)

Where = Mapping[str, Any] | str | None


class TableError(Exception):
    pass


class UnknownFieldError(TableError, KeyError):
    pass


class OrderingNotSupportedError(TableError):
    pass


class IncompatiblePatchError(TableError, TypeError):
    pass


def is_empty(value: Any) -> bool:
    """Emptiness used for key checks: None, "", "0", 0, False and empty containers."""
    if value is None:
        return True
    if isinstance(value, str):
        return value in ("", "0")
    if isinstance(value, (int, float)):
        return value == 0
    if is_composite(value):
        return len(value) == 0
    return False


def patch_value(old: Any, new: Any) -> Any:
    """Shallow merge of two composite values.

    mapping + mapping -> incoming keys override, other keys kept
    list + list       -> concatenation
    """
    if isinstance(old, Mapping) and isinstance(new, Mapping):
        return {**old, **new}
    if isinstance(old, Mapping) or isinstance(new, Mapping):
        raise IncompatiblePatchError(
            f"cannot merge {type(new).__name__} into {type(old).__name__}"
        )
    return [*old, *new]


def as_mapping(source: Any) -> Mapping[str, Any]:
    if source is None:
        return {}
    if isinstance(source, Mapping):
        return source
    if hasattr(source, "__dict__") and not isinstance(source, type):
        return vars(source)
    return {}


def _key_list(pks: Any) -> list[Any]:
    if pks is None:
        return []
    if isinstance(pks, (str, bytes, Mapping)) or not isinstance(pks, Sequence):
        return [pks]
    return list(pks)


def _same_key(a: Mapping[str, Any], b: Mapping[str, Any]) -> bool:
    # "5" と 5 を同一視
    return {k: str(v) for k, v in a.items()} == {k: str(v) for k, v in b.items()}


class Table:
    schema: ClassVar[Schema]

    def __init__(self, db: DatabaseDriver, schema: Schema | None = None, *, text: Text | None = None) -> None:
        if schema is not None:
            self.schema = schema  # type: ignore[misc]
        declared = getattr(self, "schema", None)
        if declared is None or not declared.table:
            raise TableError("Table name is empty")

        self.db = db
        self.text = text or Text()
        self.locked = False
        self._errors = ErrorLog(declared.table)
        self._properties: dict[str, Any] = {name: None for name in declared.names}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.get_table()} key={self.key_value()!r}>"

    def spawn(self) -> Table:
        """Fresh, unloaded instance sharing this one's collaborators."""
        return type(self)(self.db, self.schema, text=self.text)

    # --- properties -------------------------------------------------------
    def get_table(self) -> str:
        return self.schema.table

    def get_pk(self) -> str | tuple[str, ...]:
        keys = self.schema.primary_key
        return keys[0] if len(keys) == 1 else keys

    def get_fields(self) -> tuple[str, ...]:
        return self.schema.names

    def get_property(self, name: str, default: Any = None) -> Any:
        return self._properties.get(name, default)

    def set_property(self, name: str, value: Any) -> Any:
        if name not in self._properties:
            raise UnknownFieldError(f"{self.get_table()} has no field {name!r}")
        self._properties[name] = value
        return value

    def dump(self) -> dict[str, Any]:
        return dict(self._properties)

    def key_value(self) -> Any:
        keys = self.schema.primary_key
        if len(keys) == 1:
            return self._properties[keys[0]]
        return {k: self._properties[k] for k in keys}

    def has_primary_key(self) -> bool:
        """True only if every primary key component holds a non-empty value."""
        return all(not is_empty(self._properties[k]) for k in self.schema.primary_key)

    def _key_filter(self, pk: Any) -> dict[str, Any]:
        if isinstance(pk, Mapping):
            return dict(pk)
        keys = self.schema.primary_key
        if len(keys) == 1:
            return {keys[0]: pk}
        raise TableError(f"{self.get_table()} has a composite primary key; pass a mapping")

    # --- load / bind / check / store --------------------------------------
    def load(self, pk: Any = None) -> bool:
        """Load the first row matching a key value or a field -> value filter.

        Returns False (and records an error) when no row matches; returns
        False without querying when the key is empty.
        """
        if pk is None:
            if not self.has_primary_key():
                return False
            pk = self.key_value()
        if is_empty(pk):
            return False

        filters = self._key_filter(pk)
        query = (
            self.db.get_query()
            .select("*")
            .from_(self.get_table())
            .where_equals(filters)
            .limit(1)
        )
        row = self.db.load_assoc(query)
        if not row:
            self.add_error(self.text.translate("APP_ERROR_TABLE_EMPTY_ROW"))
            return False

        self.bind(row)
        return True

    def bind(self, source: Any, update_nulls: bool = True, ignore: Sequence[str] = ()) -> Table:
        """Merge source values into the declared fields.

        Keys outside the schema or listed in ``ignore`` are skipped. Composite
        values bound over composite values are patched (see patch_value), not
        replaced. Serialized fields store mappings / lists as JSON text.
        """
        ignored = set(ignore)
        for name, value in as_mapping(source).items():
            if name not in self._properties or name in ignored:
                continue
            if value is None and not update_nulls:
                continue
            if is_composite(value):
                if self.schema.field(name).serialized:
                    value = json.dumps(value, ensure_ascii=False, default=str)
                else:
                    old = self._properties[name]
                    if old is not None and is_composite(old):
                        value = patch_value(old, value)
            self._properties[name] = value
        return self

    def check(self) -> bool:
        return True

    def store(self, update_nulls: bool = False) -> bool:
        """UPDATE when the row has a primary key, INSERT otherwise.

        On insert the storage assigned key is written back (single column keys).
        """
        properties = self.dump()
        table = self.get_table()
        keys = self.schema.primary_key

        if self.has_primary_key():
            logger.debug(f"update {table} key={self.key_value()!r}")
            return self.db.update_object(table, properties, keys, update_nulls)

        if len(keys) == 1:
            key = keys[0]
            properties[key] = None
            new_id = self.db.insert_object(table, properties, key)
            self._properties[key] = new_id
            logger.debug(f"insert {table} new key={new_id!r}")
        else:
            self.db.insert_object(table, properties)
            logger.debug(f"insert {table} composite key={self.key_value()!r}")
        return True

    def save(self, data: Any = None, ignore: Sequence[str] = ()) -> bool:
        """bind -> check -> store, stopping at the first failing stage.

        The error log is reset on entry, so after a failure it holds only the
        failing stage's messages; it is cleared again on full success.
        """
        self.clear_errors()
        self.bind(data, ignore=ignore)

        if not self.check():
            return False

        if not self.store():
            return False

        self.clear_errors()
        return True

    def delete(self, pk: Any = None) -> bool:
        """Delete the row for pk (or the instance key). In-memory values are kept.

        Succeeds even when no row matched.
        """
        if pk is None:
            pk = self.key_value()
        filters = self._key_filter(pk)
        query = self.db.get_query().delete(self.get_table()).where_equals(filters)
        count = self.db.execute(query)
        if count == 0:
            logger.debug(f"delete {self.get_table()}: no row matched {filters!r}")

        self.clear_errors()
        return True

    def clear(self) -> None:
        """Reset every non primary key field to None and clear errors."""
        keys = set(self.schema.primary_key)
        for name in self._properties:
            if name not in keys:
                self._properties[name] = None
        self.clear_errors()

    # --- state toggle -----------------------------------------------------
    def _state_field(self) -> str | None:
        if self.schema.has("published"):
            return "published"
        if self.schema.has("state"):
            return "state"
        return None

    def publish(self, pks: Any = None, state: int = 1) -> bool:
        """Set the published/state column for pks (default: this row)."""
        field = self._state_field()
        if field is None:
            self.add_error(self.text.translate("APP_ERROR_TABLE_NO_PUBLISHED_FIELD"))
            return False
        return self._set_state(field, pks, state)

    def _set_state(self, field: str, pks: Any, state: int) -> bool:
        state = int(state)
        keys = _key_list(pks)
        if not keys:
            if not self.has_primary_key():
                self.add_error(self.text.translate("APP_ERROR_TABLE_NO_PRIMARY_KEY"))
                return False
            keys = [self.key_value()]

        filters = [self._key_filter(k) for k in keys]
        query = (
            self.db.get_query()
            .update(self.get_table())
            .set(field, state)
            .where_any(filters)
        )
        self.db.execute(query)

        if self.has_primary_key():
            own = self._key_filter(self.key_value())
            if any(_same_key(own, f) for f in filters):
                self._properties[field] = state

        self.clear_errors()
        return True

    # --- ordering ---------------------------------------------------------
    def _require_ordering(self) -> str:
        ordering = self.schema.ordering_field
        if ordering is None:
            raise OrderingNotSupportedError(f"{type(self).__name__} does not support ordering.")
        return ordering

    def _apply_where(self, query: Any, where: Where) -> None:
        if not where:
            return
        if isinstance(where, Mapping):
            query.where_equals(where)
        else:
            query.where(where)

    def reorder(self, where: Where = None) -> bool:
        """Compact ordering values of the selected group to 1..N.

        Only rows whose ordering differs from their rank are written.
        """
        ordering = self._require_ordering()
        keys = list(self.schema.primary_key)
        table = self.get_table()

        query = self.db.get_query().select(*keys, ordering).from_(table).where_op(ordering, ">=", 0)
        self._apply_where(query, where)
        query.order(ordering)
        for k in keys:
            query.order(k)
        rows = self.db.load_assoc_list(query)

        own = self._key_filter(self.key_value()) if self.has_primary_key() else None
        for rank, row in enumerate(rows, start=1):
            if row[ordering] == rank:
                continue
            row_key = {k: row[k] for k in keys}
            self.db.execute(
                self.db.get_query().update(table).set(ordering, rank).where_equals(row_key)
            )
            if own is not None and _same_key(own, row_key):
                self._properties[ordering] = rank
        logger.debug(f"reorder {table}: {len(rows)} rows")
        return True

    def move(self, delta: int, where: Where = None) -> bool:
        """Swap ordering with the nearest neighbour in the direction of delta.

        One adjacent swap per call whatever the magnitude of delta.
        """
        ordering = self._require_ordering()
        if not delta:
            return True

        keys = list(self.schema.primary_key)
        table = self.get_table()
        current = int(self.get_property(ordering) or 0)

        query = self.db.get_query().select(*keys, ordering).from_(table)
        if delta < 0:
            query.where_op(ordering, "<", current).order(ordering, descending=True)
        else:
            query.where_op(ordering, ">", current).order(ordering)
        self._apply_where(query, where)
        query.limit(1)
        row = self.db.load_assoc(query)

        own = self._key_filter(self.key_value())
        if row:
            neighbour = int(row[ordering])
            self.db.execute(
                self.db.get_query().update(table).set(ordering, neighbour).where_equals(own)
            )
            self.db.execute(
                self.db.get_query()
                .update(table)
                .set(ordering, current)
                .where_equals({k: row[k] for k in keys})
            )
            self._properties[ordering] = neighbour
        else:
            # 端に到達: 自身の値を書き戻すだけ
            self.db.execute(
                self.db.get_query().update(table).set(ordering, current).where_equals(own)
            )
        return True

    # --- error log --------------------------------------------------------
    def add_error(self, error: str) -> Table:
        logger.debug(f"{self.get_table()}: {error}")
        self._errors.append(error)
        return self

    def get_errors(self) -> list[str]:
        return self._errors.messages()

    def get_error(self) -> str | None:
        """First recorded error, or None."""
        return self._errors.first()

    def clear_errors(self) -> None:
        self._errors.clear()

    def has_error(self) -> bool:
        return len(self._errors) > 0

    @property
    def error_log(self) -> ErrorLog:
        return self._errors

    # --- locking ----------------------------------------------------------
    def lock(self) -> bool:
        self.db.lock_table(self.get_table())
        self.locked = True
        return True

    def unlock(self) -> bool:
        self.db.unlock_tables()
        self.locked = False
        return True

    @contextmanager
    def locking(self) -> Iterator[Table]:
        """Hold the table lock for the with-block; released on every exit path."""
        self.lock()
        try:
            yield self
        finally:
            self.unlock()
