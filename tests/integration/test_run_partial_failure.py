from __future__ import annotations

import json
import re
from pathlib import Path

from openpyxl import load_workbook

from order_intake.cli.__main__ import main as cli_main

"""Integration test: partial failure (one unreadable file, one file with invalid rows).

- The unreadable file fails, the others still export
- Invalid rows are left out of the export and logged as ROW_INVALID
- Exit code 2 and a SUMMARY line with success/failed counts
"""

SUMMARY_RE = re.compile(
    r"SUMMARY files=(\d+) success=(\d+) failed=(\d+) items=(\d+) invalid=(\d+) duplicates=(\d+)"
)


def _csv(path: Path, grid: list[list[str]]) -> None:
    path.write_text("\n".join(";".join(r) for r in grid) + "\n", encoding="utf-8")


def test_run_partial_failure(temp_workdir: Path, write_config: Path, order_grid, capsys):
    data_dir = temp_workdir / "data"
    _csv(data_dir / "acme.csv", order_grid)
    _csv(data_dir / "mixed.csv", [["SKU", "Qty"], ["A-1", "2"], ["B-2", "0"], ["a-1", "1"]])
    (data_dir / "broken.xlsx").write_bytes(b"PK\x03\x04 truncated")

    code = cli_main([])
    out = capsys.readouterr().out
    assert code == 2

    m = SUMMARY_RE.search(out)
    assert m is not None, out
    files, success, failed, items, invalid, duplicates = (int(g) for g in m.groups())
    assert (files, success, failed) == (3, 2, 1)
    assert (items, invalid, duplicates) == (6, 1, 1)

    exports = {p.name.split("_")[1]: p for p in (temp_workdir / "export").glob("*.xlsx")}
    assert set(exports) == {"acme", "mixed"}
    ws = load_workbook(exports["mixed"])["Objednávka"]
    assert [ws.cell(row=r, column=1).value for r in range(2, ws.max_row + 1)] == ["A-1", "A-1"]

    (log_file,) = (temp_workdir / "logs").glob("errors-*.log")
    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    for rec in records:
        assert set(rec) == {"timestamp", "file", "row", "error_type", "message"}
    by_file = {(r["file"], r["error_type"]): r for r in records}
    assert by_file[("broken.xlsx", "UNREADABLE_FILE")]["row"] == -1
    row_invalid = by_file[("mixed.csv", "ROW_INVALID")]
    assert row_invalid["row"] == 2
    assert row_invalid["message"].startswith("B-2:")
