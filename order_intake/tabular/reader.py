from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import pandas as pd

"""Tabular reader: uploaded order file -> rectangular grid of text cells.

Row 0 of the returned grid is always the header row. CSV input goes through a
single-pass character scanner (quoted fields may contain the delimiter, a
doubled quote inside a quoted field is one literal quote); spreadsheet input
is decoded with pandas, first sheet only.
"""

__all__ = [
    "CANDIDATE_DELIMITERS",
    "CSV_MIME_TYPES",
    "EmptyFileError",
    "FileKind",
    "SUPPORTED_SUFFIXES",
    "TabularData",
    "TabularReadError",
    "UnreadableFileError",
    "detect_delimiter",
    "detect_kind",
    "parse_csv",
    "read_spreadsheet",
    "read_tabular",
    "read_tabular_file",
]

logger = logging.getLogger(__name__)

# Comma first: later candidates must strictly beat the current count
CANDIDATE_DELIMITERS: tuple[str, ...] = (",", ";", "\t", "|")

SUPPORTED_SUFFIXES = {".csv", ".xlsx", ".xls", ".xlsm"}

CSV_MIME_TYPES = frozenset({"text/csv", "text/comma-separated-values", "application/csv"})


class TabularReadError(Exception):
    """Base class for file acquisition / decode failures."""


class UnreadableFileError(TabularReadError):
    """Raised when the file cannot be read or decoded (cause is chained)."""


class EmptyFileError(TabularReadError):
    """Raised when the decoded grid has no rows at all."""


class FileKind(Enum):
    CSV = "csv"
    SPREADSHEET = "spreadsheet"


@dataclass(frozen=True)
class TabularData:
    grid: list[list[str]]
    delimiter: str | None = None  # CSV only


def detect_kind(file_name: str, mime_type: str | None = None) -> FileKind:
    """Pick the decoder from the display name / MIME type of the picked file."""
    if file_name.lower().endswith(".csv"):
        return FileKind.CSV
    if mime_type and mime_type.split(";", 1)[0].strip().lower() in CSV_MIME_TYPES:
        return FileKind.CSV
    return FileKind.SPREADSHEET


def detect_delimiter(content: str) -> str:
    """Return the candidate delimiter producing the most splits on the first line."""
    first_line = content.split("\n", 1)[0]
    best = ","
    max_count = 0
    for candidate in CANDIDATE_DELIMITERS:
        count = first_line.count(candidate)
        if count > max_count:
            max_count = count
            best = candidate
    return best


def _finish_field(buf: list[str], quoted: bool, closed_at: int | None) -> str:
    text = "".join(buf)
    if not quoted:
        return text.strip()
    # keep the quoted part verbatim, drop padding after the closing quote
    if closed_at is None:
        return text
    return text[:closed_at] + text[closed_at:].rstrip()


def parse_csv(content: str, delimiter: str | None = None) -> TabularData:
    """Split CSV text into a grid in one pass over the characters.

    Blank lines are skipped. Line breaks inside a quoted field are kept as
    part of the value. A quote that is never closed is taken as a literal
    character and scanning resumes right after it, so the lines below it are
    still read as rows.
    """
    if content.startswith("\ufeff"):
        content = content[1:]
    if delimiter is None:
        delimiter = detect_delimiter(content)

    grid: list[list[str]] = []
    row: list[str] = []
    buf: list[str] = []
    in_quotes = False
    quoted = False
    closed_at: int | None = None
    # (position, buf, quoted, closed_at) at the last opening quote
    opened: tuple[int, list[str], bool, int | None] | None = None

    def end_field() -> None:
        nonlocal buf, quoted, closed_at
        row.append(_finish_field(buf, quoted, closed_at))
        buf = []
        quoted = False
        closed_at = None

    def end_row() -> None:
        nonlocal row
        end_field()
        if not (len(row) == 1 and row[0] == ""):
            grid.append(row)
        row = []

    i = 0
    n = len(content)
    while True:
        if i >= n:
            if not in_quotes or opened is None:
                break
            pos, buf_at_open, quoted, closed_at = opened
            logger.warning("unterminated quote at offset %d, reading it as a literal character", pos)
            buf = buf_at_open + ['"']
            in_quotes = False
            opened = None
            i = pos + 1
            continue
        ch = content[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < n and content[i + 1] == '"':
                    buf.append('"')
                    i += 2
                    continue
                in_quotes = False
                closed_at = len(buf)
            else:
                buf.append(ch)
        elif ch == '"':
            opened = (i, list(buf), quoted, closed_at)
            if not quoted and not "".join(buf).strip():
                buf = []
            quoted = True
            in_quotes = True
        elif ch == delimiter:
            end_field()
        elif ch == "\r" or ch == "\n":
            if ch == "\r" and i + 1 < n and content[i + 1] == "\n":
                i += 1
            end_row()
        else:
            buf.append(ch)
        i += 1

    if buf or row or quoted:
        end_row()

    return TabularData(grid=grid, delimiter=delimiter)


def _cell_to_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if pd.isna(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    return str(value)


def read_spreadsheet(data: bytes) -> list[list[str]]:
    """Decode the first sheet of an XLS/XLSX workbook into text cells.

    Empty cells become "" (never None/NaN) and fully empty rows are dropped.
    """
    xls = pd.ExcelFile(io.BytesIO(data))
    if not xls.sheet_names:
        return []
    # header=None: the first physical row stays at index 0 as the header
    df = xls.parse(xls.sheet_names[0], header=None, dtype=object, keep_default_na=False, na_values=[])
    grid: list[list[str]] = []
    for raw in df.itertuples(index=False, name=None):
        cells = [_cell_to_text(v) for v in raw]
        if all(c.strip() == "" for c in cells):
            continue
        grid.append(cells)
    return grid


def read_tabular(data: bytes | str, kind: FileKind, file_name: str = "<upload>") -> TabularData:
    """Decode raw file content into a grid.

    Raises:
        UnreadableFileError: decode failure (underlying error chained)
        EmptyFileError: decoded grid has zero rows
    """
    try:
        if kind is FileKind.CSV:
            text = data.decode("utf-8-sig") if isinstance(data, bytes) else data
            result = parse_csv(text)
        else:
            if isinstance(data, str):
                raise TypeError("spreadsheet content must be bytes")
            result = TabularData(grid=read_spreadsheet(data), delimiter=None)
    except TabularReadError:
        raise
    except Exception as e:
        raise UnreadableFileError(f"cannot read '{file_name}': {e}") from e

    if not result.grid:
        raise EmptyFileError(f"'{file_name}' contains no rows")
    return result


def read_tabular_file(path: Path, mime_type: str | None = None) -> TabularData:
    """Read a picked file from disk and decode it according to its name/MIME type."""
    try:
        data = path.read_bytes()
    except OSError as e:
        raise UnreadableFileError(f"cannot open '{path}': {e}") from e
    return read_tabular(data, detect_kind(path.name, mime_type), file_name=path.name)
