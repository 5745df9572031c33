from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from order_intake.models.intake_run import FileStatus, IntakeRun
from order_intake.models.processing_result import FileStat, ProcessingResult

"""Unit tests for batch processing result models."""


class TestFileStat:
    def test_file_stat_creation(self):
        stat = FileStat("orders.xlsx", "success", total_items=12, invalid_items=1, duplicates=0, elapsed_seconds=0.4)
        assert stat.file_name == "orders.xlsx"
        assert stat.ai_enhanced is False

    def test_file_stat_immutable(self):
        stat = FileStat("orders.xlsx", "success", 12, 1, 0, 0.4)
        with pytest.raises(AttributeError):
            stat.file_name = "other.xlsx"


class TestProcessingResult:
    def test_processing_result_defaults(self):
        start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)
        end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=UTC)
        result = ProcessingResult(
            success_files=1, failed_files=1, total_items=5, invalid_items=2, duplicates=1,
            start_time=start, end_time=end, elapsed_seconds=2.0,
        )
        assert result.file_stats is None
        with pytest.raises(AttributeError):
            result.success_files = 3


class TestIntakeRun:
    def test_intake_run_starts_pending(self):
        run = IntakeRun(path=Path("data/a.csv"), name="a.csv")
        assert run.status is FileStatus.PENDING
        assert run.export_path is None
        assert run.error is None
