# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any

import pytest
from openpyxl import Workbook
from openpyxl.styles import PatternFill

from bom_importer.logging.init import reset_logging
from bom_importer.models.grid import Grid

GREY = "FF7F7F7F"

SheetSpec = list[list[Any]]


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def no_db(monkeypatch):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
timezone: UTC
parser:
  header_search_rows: 10
  inactive_fill_color: "7F7F7F"
writer:
  batch_size: 50
  commit: false
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def build_workbook(
    path: Path,
    sheets: dict[str, SheetSpec],
    grey_rows: dict[str, list[int]] | None = None,
) -> Path:
    """Write an .xlsx with one sheet per entry; ``grey_rows`` are 1-based row numbers
    whose first cell gets the inactive grey fill."""
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(row)
        for row_no in (grey_rows or {}).get(name, []):
            ws.cell(row=row_no, column=1).fill = PatternFill(
                start_color=GREY, end_color=GREY, fill_type="solid"
            )
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return path


def make_grid(rows: SheetSpec, name: str = "Sheet1", grey_rows: list[int] = ()) -> Grid:
    """In-memory Grid; ``grey_rows`` are 0-based indices marked inactive."""
    return Grid(name=name, rows=[list(r) for r in rows], fills={(r, 0): "7F7F7F" for r in grey_rows})
