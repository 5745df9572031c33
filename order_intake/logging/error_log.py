from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord
from ..services.validator import RowValidationError

"""Buffered JSON Lines error log for batch intake runs.

Each run gets ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC), created lazily on
the first flush that has records. One line per ErrorRecord with a fixed key
set: timestamp, file, row, error_type, message.
"""

__all__ = [
    "ErrorLogBuffer",
    "ErrorRecord",
    "records_from_validation",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

ROW_INVALID = "ROW_INVALID"


def records_from_validation(file_name: str, invalid: Iterable[RowValidationError]) -> list[ErrorRecord]:
    """One record per invalid item; ``row`` is 1-based among data rows."""
    return [
        ErrorRecord.create(
            file=file_name,
            row=err.index + 1,
            error_type=ROW_INVALID,
            message=f"{err.item.part_number or '<no sku>'}: {'; '.join(err.errors)}",
        )
        for err in invalid
    ]


class ErrorLogBuffer:
    """Collects error records in memory; ``flush`` appends them to the run's log file.

    Serial use only.
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def extend(self, records: Iterable[ErrorRecord]) -> None:
        self._records.extend(records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Write pending records; returns the file path, or None when nothing was pending."""
        if not self._records:
            return None
        fp = self.file_path
        fp.parent.mkdir(parents=True, exist_ok=True)
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
