from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

"""Schema descriptor for row gateway tables.

Each record type declares its columns once as a ``Schema``. The gateway binds,
stores and orders rows generically over this descriptor.
"""

__all__ = [
    "Field",
    "Schema",
    "is_composite",
]


@dataclass(frozen=True)
class Field:
    """One column of a table.

    Attributes:
        name: Column name
        primary_key: Part of the (possibly composite) primary key
        ordering: Integer rank column maintained by reorder / move
        serialized: Parameter bag column; mappings and lists are stored as JSON text
    """
    name: str
    primary_key: bool = False
    ordering: bool = False
    serialized: bool = False


@dataclass(frozen=True)
class Schema:
    table: str  # 論理テーブル名 (#__ プレフィックス可)
    fields: tuple[Field, ...]

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate field in schema for {self.table!r}")
        if not any(f.primary_key for f in self.fields):
            raise ValueError(f"schema for {self.table!r} declares no primary key")

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def primary_key(self) -> tuple[str, ...]:
        """Primary key field names in declaration order."""
        return tuple(f.name for f in self.fields if f.primary_key)

    @property
    def ordering_field(self) -> str | None:
        for f in self.fields:
            if f.ordering:
                return f.name
        return None

    def has(self, name: str) -> bool:
        return any(f.name == name for f in self.fields)

    def field(self, name: str) -> Field:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)


def is_composite(value: object) -> bool:
    """True for mappings and non-string sequences (values that bind patches)."""
    if isinstance(value, (str, bytes, bytearray)):
        return False
    return isinstance(value, (Mapping, Sequence))
