from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest
from openpyxl import load_workbook

from order_intake.logging.error_log import ErrorLogBuffer
from order_intake.models.config_models import IntakeConfig
from order_intake.models.intake_run import FileStatus
from order_intake.services.analysis import Analyzer
from order_intake.services.orchestrator import ProcessingError, process_all, process_file, scan_order_files


@pytest.fixture()
def config(temp_workdir: Path) -> IntakeConfig:
    return IntakeConfig(source_directory="data", output_directory="export")


def _write_csv(path: Path, rows: list[list[str]]) -> Path:
    path.write_text("\n".join(";".join(r) for r in rows) + "\n", encoding="utf-8")
    return path


def _error_lines(log_dir: Path) -> list[dict]:
    lines = []
    for f in log_dir.glob("errors-*.log"):
        lines += [json.loads(x) for x in f.read_text(encoding="utf-8").splitlines()]
    return lines


def test_scan_order_files_filters_and_sorts(temp_workdir: Path):
    data = temp_workdir / "data"
    for name in ["b.xlsx", "a.csv", "notes.txt", "~$a.xlsx", "c.XLS"]:
        (data / name).write_bytes(b"")
    (data / "sub.csv").mkdir()
    assert [p.name for p in scan_order_files(data)] == ["a.csv", "b.xlsx", "c.XLS"]


def test_scan_order_files_missing_directory(tmp_path: Path):
    with pytest.raises(ProcessingError):
        scan_order_files(tmp_path / "missing")
    (tmp_path / "file.csv").write_text("x", encoding="utf-8")
    with pytest.raises(ProcessingError):
        scan_order_files(tmp_path / "file.csv")


def test_process_file_success_exports_all_items(temp_workdir: Path, config, field_service, order_grid):
    path = _write_csv(temp_workdir / "data" / "acme.csv", order_grid)
    run = process_file(path, config, field_service, Analyzer(), ErrorLogBuffer())
    assert run.status is FileStatus.SUCCESS
    assert run.total_items == 3
    assert run.invalid_items == 0
    assert run.export_path is not None
    assert run.export_path.parent == Path("export")
    assert run.export_path.name.startswith("objednavka_acme_")
    ws = load_workbook(run.export_path)["Objednávka"]
    assert ws.max_row == 4


def test_process_file_exports_only_valid_subset(temp_workdir: Path, config, field_service):
    rows = [["SKU", "Qty"], ["A-1", "2"], ["B-2", "0"], ["C-3", "20000"], ["D-4", "1"]]
    path = _write_csv(temp_workdir / "data" / "mixed.csv", rows)
    log = ErrorLogBuffer()
    run = process_file(path, config, field_service, Analyzer(), log)
    assert run.status is FileStatus.SUCCESS
    assert (run.total_items, run.invalid_items) == (4, 2)
    ws = load_workbook(run.export_path)["Objednávka"]
    assert [ws.cell(row=r, column=1).value for r in range(2, ws.max_row + 1)] == ["A-1", "D-4"]
    assert len(log) == 2


def test_process_file_failures_are_recorded(temp_workdir: Path, config, field_service):
    data = temp_workdir / "data"
    log = ErrorLogBuffer(logs_dir=temp_workdir / "logs")
    broken = data / "broken.xlsx"
    broken.write_bytes(b"definitely not a workbook")
    unmapped = _write_csv(data / "notes.csv", [["Poznamka", "Autor"], ["call the customer back", "Jana Novakova"]])
    empty = data / "empty.csv"
    empty.write_text("\n", encoding="utf-8")
    invalid = _write_csv(data / "invalid.csv", [["SKU", "Qty"], ["A-1", "0"]])

    results = {p.name: process_file(p, config, field_service, Analyzer(), log) for p in [broken, unmapped, empty, invalid]}
    assert all(r.status is FileStatus.FAILED for r in results.values())
    assert results["invalid.csv"].invalid_items == 1
    log.flush()
    types = {(e["file"], e["error_type"]) for e in _error_lines(temp_workdir / "logs")}
    assert ("broken.xlsx", "UNREADABLE_FILE") in types
    assert ("notes.csv", "MAPPING_INCOMPLETE") in types
    assert ("empty.csv", "EMPTY_FILE") in types
    assert ("invalid.csv", "ROW_INVALID") in types
    assert ("invalid.csv", "NO_VALID_ITEMS") in types


def test_process_all_aggregates(temp_workdir: Path, config, field_service, order_grid):
    data = temp_workdir / "data"
    _write_csv(data / "a.csv", order_grid)
    pd.DataFrame(order_grid).to_excel(data / "b.xlsx", header=False, index=False, engine="openpyxl")
    (data / "c.xlsx").write_bytes(b"garbage")

    result = process_all(config, field_service, Analyzer())
    assert (result.success_files, result.failed_files) == (2, 1)
    assert result.total_items == 6
    assert [s.file_name for s in result.file_stats] == ["a.csv", "b.xlsx", "c.xlsx"]
    assert [s.status for s in result.file_stats] == ["success", "success", "failed"]
    assert len(list((temp_workdir / "export").glob("*.xlsx"))) == 2
    assert len(list((temp_workdir / "logs").glob("errors-*.log"))) == 1


def test_process_all_empty_directory(temp_workdir: Path, config, field_service):
    result = process_all(config, field_service, Analyzer())
    assert (result.success_files, result.failed_files, result.total_items) == (0, 0, 0)
    assert result.file_stats == []
    assert not (temp_workdir / "logs").exists()
