from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

One ErrorRecord is one message taken from a table's error log, stamped with the
table it came from and the key of the row being handled. ``key`` is None when
the row has no primary key yet (insert path or filter load).

The record adheres to the JSON schema contract in
rowgate/logging/error_record_schema.json.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        table: Logical table name (prefix placeholder kept)
        key: Primary key of the row as text, or None
        operation: Gateway operation that failed (load, save, publish, ...)
        message: Human readable message from the error log
    """
    timestamp: str  # ISO8601 UTC
    table: str
    key: str | None
    operation: str
    message: str

    @staticmethod
    def create(table: str, key: str | None, operation: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            table=table,
            key=key,
            operation=operation,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize ErrorRecord to JSON Lines format (no extra keys)."""
        return json.dumps(asdict(self), ensure_ascii=False)
