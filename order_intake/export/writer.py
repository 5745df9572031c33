from __future__ import annotations

import io
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

import pandas as pd
from openpyxl.utils import get_column_letter

from ..models.order_item import OrderItem

"""Exporter: validated order items -> XLSX file -> share sheet or folder.

The workbook has one sheet ("Objednávka") with the columns SKU, Množstvo,
Popis, Cena at fixed widths. Files are named ``<prefix>_<timestamp>.xlsx``.
Any write or hand-off problem surfaces as ExportFailure; the caller keeps its
data and may retry.
"""

__all__ = [
    "DirectorySink",
    "ExportFailure",
    "ExportTarget",
    "Exporter",
    "SPREADSHEET_MIME",
    "ShareSink",
    "build_workbook",
    "timestamped_filename",
]

logger = logging.getLogger(__name__)

SPREADSHEET_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SHEET_NAME = "Objednávka"
SHARE_DIALOG_TITLE = "Uložiť objednávku"
EXPORT_COLUMNS: tuple[tuple[str, int], ...] = (
    ("SKU", 15),
    ("Množstvo", 10),
    ("Popis", 40),
    ("Cena", 10),
)

# (path, mime type, dialog title)
ShareHandler = Callable[[Path, str, str], None]
DirectoryPicker = Callable[[], Path | None]


class ExportFailure(Exception):
    """Raised when the spreadsheet cannot be written or handed off."""


class ExportTarget(Enum):
    SHARE = "share"
    DEVICE = "device"


def build_workbook(items: Sequence[OrderItem]) -> bytes:
    """Serialize items into XLSX bytes."""
    records = [
        {
            "SKU": item.part_number,
            "Množstvo": item.quantity,
            "Popis": item.description or "",
            "Cena": item.price,  # None -> empty cell
        }
        for item in items
    ]
    df = pd.DataFrame(records, columns=[name for name, _ in EXPORT_COLUMNS])
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
        ws = writer.sheets[SHEET_NAME]
        for idx, (_, width) in enumerate(EXPORT_COLUMNS, start=1):
            ws.column_dimensions[get_column_letter(idx)].width = width
    return buf.getvalue()


def timestamped_filename(prefix: str = "objednavka", now: datetime | None = None) -> str:
    """``objednavka_2024-05-01T12-30-05.xlsx`` (UTC, ':' and '.' replaced)."""
    stamp = (now or datetime.now(UTC)).strftime("%Y-%m-%dT%H-%M-%S")
    return f"{prefix}_{stamp}.xlsx"


class ShareSink:
    """Stages the file in ``staging_dir`` and hands it to the system share handler."""

    def __init__(self, staging_dir: Path, handler: ShareHandler | None = None) -> None:
        self.staging_dir = staging_dir
        self.handler = handler

    @property
    def available(self) -> bool:
        return self.handler is not None

    def deliver(self, content: bytes, filename: str) -> Path:
        if self.handler is None:
            raise ExportFailure("sharing is not available on this device")
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        path = self.staging_dir / filename
        path.write_bytes(content)
        self.handler(path, SPREADSHEET_MIME, SHARE_DIALOG_TITLE)
        return path


class DirectorySink:
    """Writes into a directory chosen through a storage-access picker.

    The picker returns None when the user declines to grant a directory.
    """

    def __init__(self, picker: DirectoryPicker | None = None) -> None:
        self.picker = picker

    @property
    def available(self) -> bool:
        return self.picker is not None

    def deliver(self, content: bytes, filename: str) -> Path | None:
        if self.picker is None:
            raise ExportFailure("directory picker is not available")
        directory = self.picker()
        if directory is None:
            return None
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / filename
        path.write_bytes(content)
        return path


class Exporter:
    def __init__(
        self,
        share_sink: ShareSink | None = None,
        directory_sink: DirectorySink | None = None,
        filename_prefix: str = "objednavka",
    ) -> None:
        self.share_sink = share_sink
        self.directory_sink = directory_sink
        self.filename_prefix = filename_prefix

    def share(self, items: Sequence[OrderItem]) -> Path:
        """Open the share surface with a freshly generated workbook."""
        if self.share_sink is None:
            raise ExportFailure("sharing is not available on this device")
        try:
            content = build_workbook(items)
            path = self.share_sink.deliver(content, timestamped_filename(self.filename_prefix))
        except ExportFailure:
            raise
        except Exception as e:
            raise ExportFailure(f"export failed: {e}") from e
        logger.info("shared %d items as %s", len(items), path.name)
        return path

    def save_to_device(self, items: Sequence[OrderItem]) -> Path | None:
        """Save into a user-picked directory, falling back to sharing.

        Returns the written path, or None when the user declined the picker.
        """
        if self.directory_sink is None or not self.directory_sink.available:
            return self.share(items)
        try:
            content = build_workbook(items)
            path = self.directory_sink.deliver(content, timestamped_filename(self.filename_prefix))
        except ExportFailure:
            raise
        except Exception as e:
            raise ExportFailure(f"saving to device failed: {e}") from e
        if path is None:
            logger.info("directory permission not granted, nothing saved")
        else:
            logger.info("saved %d items to %s", len(items), path)
        return path

    def export(self, items: Sequence[OrderItem], target: ExportTarget) -> Path | None:
        if target is ExportTarget.SHARE:
            return self.share(items)
        return self.save_to_device(items)
