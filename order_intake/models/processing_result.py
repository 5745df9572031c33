from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Processing result models for the batch intake command.

Aggregated results and per-file statistics rendered into the SUMMARY line.
"""


@dataclass(frozen=True)
class FileStat:
    """Per-file processing statistics (internal helper for ProcessingResult)."""
    file_name: str
    status: str  # success/failed
    total_items: int
    invalid_items: int
    duplicates: int
    elapsed_seconds: float
    ai_enhanced: bool = False


@dataclass(frozen=True)
class ProcessingResult:
    """Aggregated results for one batch intake run."""
    success_files: int
    failed_files: int
    total_items: int
    invalid_items: int
    duplicates: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    file_stats: list[FileStat] | None = None
