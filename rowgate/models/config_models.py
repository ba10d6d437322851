from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for rowgate.

These are produced by rowgate.config.loader and consumed by the connection
helper and the table factory.
"""

DEFAULT_ALIAS_MAX_ATTEMPTS = 100
DEFAULT_USERNAME_MAX_LENGTH = 150
DEFAULT_PASSWORD_ITERATIONS = 310_000


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    dialect: str = "postgresql"  # postgresql | sqlite
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
    prefix: str = ""  # "#__" の置換先


@dataclass(frozen=True)
class TableConfig:
    """Tuning knobs shared by the record types."""
    alias_max_attempts: int = DEFAULT_ALIAS_MAX_ATTEMPTS
    username_max_length: int = DEFAULT_USERNAME_MAX_LENGTH
    password_iterations: int = DEFAULT_PASSWORD_ITERATIONS


@dataclass(frozen=True)
class RecordConfig:
    """Generic record type declared in config (columns only, no custom hooks)."""
    table: str
    fields: tuple[str, ...]
    primary_key: tuple[str, ...] = ("id",)
    ordering: str | None = None
    serialized: tuple[str, ...] = ()


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    database: DatabaseConfig
    tables: TableConfig = field(default_factory=TableConfig)
    messages: dict[str, str] = field(default_factory=dict)  # メッセージカタログ上書き
    records: dict[str, RecordConfig] = field(default_factory=dict)
