from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

"""IntakeRun domain model and FileStatus enum for the batch intake command.

The IntakeRun represents the processing context for a single order file
picked up by the batch CLI, tracking its status from discovery through
export.
"""


class FileStatus(Enum):
    """Status enum for IntakeRun lifecycle.

    State transitions: pending → processing → (success | failed)

    - PENDING: File discovered but not yet processed
    - PROCESSING: File is currently going through the wizard
    - SUCCESS: File read, mapped, validated and exported
    - FAILED: File could not be read, mapped or exported
    """
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class IntakeRun:
    """Processing context for a single order file."""
    path: Path                           # Full path to the order file
    name: str                            # File name
    start_time: datetime | None = None   # Processing start (UTC)
    end_time: datetime | None = None     # Processing end (UTC)
    status: FileStatus = FileStatus.PENDING
    total_items: int = 0                 # Items transformed from data rows
    invalid_items: int = 0               # Items failing validation
    duplicates: int = 0                  # Duplicate SKUs (advisory)
    ai_enhanced: bool = False            # Mapping came from the LLM adapter
    export_path: Path | None = None      # Written spreadsheet, if any
    error: str | None = None             # Failure reason summary
