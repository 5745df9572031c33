# Shared pytest fixtures
from __future__ import annotations
import tempfile
from pathlib import Path

import pytest

from order_intake.logging.init import reset_logging
from order_intake.registry.fields import FieldService, InMemoryFieldRegistry


@pytest.fixture(autouse=True)
def _clean_env_and_logging(monkeypatch):
    # Environment of the developer machine must not leak into tests
    for var in (
        "DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE",
        "GEMINI_API_KEY", "DISABLE_DB_CONNECT",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "export").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
output_directory: ./export
settings_path: ./.order_intake/settings.json
export:
  filename_prefix: objednavka
llm:
  enabled: false
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "intake.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def order_grid() -> list[list[str]]:
    """Well-formed order sheet: header + 3 data rows."""
    return [
        ["Item Code", "Qty", "Desc", "Unit Price"],
        ["SKU-001", "10", "Widget large", "5.50"],
        ["SKU-002", "3", "Gadget small", "12"],
        ["sku 003", "7ks", "Spare part kit", ""],
    ]


@pytest.fixture()
def grid_to_csv():
    def _render(grid: list[list[str]], delimiter: str = ",") -> str:
        return "\n".join(delimiter.join(row) for row in grid) + "\n"
    return _render


@pytest.fixture()
def field_service() -> FieldService:
    service = FieldService(InMemoryFieldRegistry())
    service.load()
    return service
