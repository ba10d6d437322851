from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from rowgate.models.config_models import (
    DEFAULT_ALIAS_MAX_ATTEMPTS,
    DEFAULT_PASSWORD_ITERATIONS,
    DEFAULT_USERNAME_MAX_LENGTH,
    AppConfig,
    DatabaseConfig,
    RecordConfig,
    TableConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config (default: config/rowgate.yml)
- Validate against rowgate/config/config_schema.json
- Apply defaults (dialect=postgresql, prefix="", table tuning defaults)
"""

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or the config
            data fails schema validation.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _load_records(raw: dict[str, Any]) -> dict[str, RecordConfig]:
    records: dict[str, RecordConfig] = {}
    for name, spec in raw.items():
        fields = tuple(spec["fields"])
        primary_key = tuple(spec.get("primary_key", ["id"]))
        ordering = spec.get("ordering")
        serialized = tuple(spec.get("serialized", []))
        # スキーマでは表現できない相互参照チェック
        referenced = set(primary_key) | set(serialized) | ({ordering} if ordering else set())
        missing = sorted(referenced - set(fields))
        if missing:
            raise ConfigError(f"record {name!r}: columns not listed in fields: {missing}")
        records[name] = RecordConfig(
            table=spec["table"],
            fields=fields,
            primary_key=primary_key,
            ordering=ordering,
            serialized=serialized,
        )
    return records


def load_config(path: Path) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    db_raw = data["database"] or {}
    db = DatabaseConfig(
        dialect=db_raw.get("dialect", "postgresql"),
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
        prefix=db_raw.get("prefix", ""),
    )
    tables_raw = data.get("tables") or {}
    tables = TableConfig(
        alias_max_attempts=tables_raw.get("alias_max_attempts", DEFAULT_ALIAS_MAX_ATTEMPTS),
        username_max_length=tables_raw.get("username_max_length", DEFAULT_USERNAME_MAX_LENGTH),
        password_iterations=tables_raw.get("password_iterations", DEFAULT_PASSWORD_ITERATIONS),
    )
    return AppConfig(
        database=db,
        tables=tables,
        messages=dict(data.get("messages") or {}),
        records=_load_records(data.get("records") or {}),
    )
