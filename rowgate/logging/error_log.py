from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path

from rowgate.models.error_record import ErrorRecord

"""Per-table error log and JSON Lines export.

ErrorLog は Table インスタンスごとのメッセージ列 (追記のみ、明示 clear で空に戻る)。
ErrorLogBuffer は CLI 失敗時に ErrorRecord を `logs/errors-YYYYMMDD-HHMMSS.log`
(UTC) へ JSON Lines で書き出す。
"""

__all__ = [
    "ErrorRecord",
    "ErrorLog",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLog:
    """Ordered, append-only list of human readable messages.

    Not thread safe; a table instance is used by one caller at a time.
    """
    def __init__(self, table: str) -> None:
        self.table = table
        self._messages: list[str] = []

    def append(self, message: str) -> None:
        self._messages.append(message)

    def first(self) -> str | None:
        return self._messages[0] if self._messages else None

    def messages(self) -> list[str]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._messages))

    def to_records(self, operation: str, key: str | None = None) -> list[ErrorRecord]:
        return [ErrorRecord.create(self.table, key, operation, m) for m in self._messages]


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    - flush() 呼び出し時にファイル (なければ生成) へ一括追記
    - ファイルパスは初回アクセスで決定
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._logs_dir = logs_dir or LOGS_DIR
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def extend(self, records: list[ErrorRecord]) -> None:
        self._records.extend(records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path:
        if not self._records:
            return self.file_path
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
