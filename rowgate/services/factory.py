"""Table factory: builds record types by name with config driven collaborators.

Built-in record names (acl / tag / user) are reserved; config ``records``
entries add generic tables described only by their columns.
"""

from __future__ import annotations

from collections.abc import Mapping

from rowgate.db.driver import DatabaseDriver
from rowgate.models.config_models import RecordConfig, TableConfig
from rowgate.models.schema import Field, Schema
from rowgate.services.alias import Transliterator, ascii_transliterate
from rowgate.services.messages import Text
from rowgate.services.passwords import PasswordHasher
from rowgate.table import AclTable, Table, TagTable, UserTable

__all__ = [
    "RECORD_TYPES",
    "TableFactory",
    "UnknownRecordTypeError",
    "schema_from_config",
]

RECORD_TYPES: dict[str, type[Table]] = {
    "acl": AclTable,
    "tag": TagTable,
    "user": UserTable,
}


class UnknownRecordTypeError(KeyError):
    pass


def schema_from_config(rc: RecordConfig) -> Schema:
    return Schema(
        table=rc.table,
        fields=tuple(
            Field(
                name,
                primary_key=name in rc.primary_key,
                ordering=name == rc.ordering,
                serialized=name in rc.serialized,
            )
            for name in rc.fields
        ),
    )


class TableFactory:
    def __init__(
        self,
        db: DatabaseDriver,
        config: TableConfig | None = None,
        *,
        records: Mapping[str, RecordConfig] | None = None,
        text: Text | None = None,
        transliterator: Transliterator = ascii_transliterate,
    ) -> None:
        self.db = db
        self.config = config or TableConfig()
        self.text = text or Text()
        self.transliterator = transliterator
        self._hasher = PasswordHasher(self.config.password_iterations)
        self._schemas = {name: schema_from_config(rc) for name, rc in (records or {}).items()}

    def names(self) -> list[str]:
        return sorted(set(RECORD_TYPES) | set(self._schemas))

    def create(self, name: str) -> Table:
        cls = RECORD_TYPES.get(name)
        if cls is TagTable:
            return TagTable(
                self.db,
                text=self.text,
                transliterator=self.transliterator,
                max_alias_attempts=self.config.alias_max_attempts,
            )
        if cls is UserTable:
            return UserTable(
                self.db,
                text=self.text,
                hasher=self._hasher,
                username_max_length=self.config.username_max_length,
            )
        if cls is not None:
            return cls(self.db, text=self.text)
        if name in self._schemas:
            return Table(self.db, self._schemas[name], text=self.text)
        raise UnknownRecordTypeError(
            f"unknown record type {name!r} (known: {', '.join(self.names())})"
        )
