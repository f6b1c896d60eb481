# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from openpyxl import Workbook

from lotsheet.logging.init import reset_logging

ACC_SHEET = "00 ACC DETAILS 01"
SOA_SHEET = "01 SOA 01"


def _xlsx_bytes(sheets: dict[str, dict[str, Any]]) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)
    for name, cells in sheets.items():
        ws = wb.create_sheet(name)
        for address, value in cells.items():
            ws[address] = value
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _account_cells(**overrides: Any) -> dict[str, Any]:
    # ACCOUNT DETAILS marker on row 5 -> fields at +1 .. +11 in column C
    cells: dict[str, Any] = {
        "A1": "NATIONAL IRRIGATION ADMINISTRATION",
        "A5": "Account Details",
        "B6": "Lot No.",
        "C6": "3170-1",
        "C10": "Dominga",
        "C11": "Santos",
        "C12": "Mendoza",
        "C14": "Pedro",
        "C15": "Reyes",
        "C16": "Cruz",
        "D30": 1.5,
        "D31": 2,
    }
    cells.update(overrides)
    return cells


def _soa_cells(**overrides: Any) -> dict[str, Any]:
    cells: dict[str, Any] = {
        "A3": "STATEMENT OF ACCOUNT",
        "G13": 3.5,
        "C17": 1000,
        "D17": 1500,
        "E17": 2,
        "F17": 30,
        "C18": 1200,
        "D18": 2400,
        "E18": 3,
        "F18": 72,
        "A100": "SUB-TOTAL",
        "D100": 3900,
        "F100": 102,
        "G101": 500,
        "G102": 4502,
    }
    cells.update(overrides)
    return cells


@pytest.fixture(autouse=True)
def _fresh_logging():
    """Handlers bound to a captured stdout must not leak between tests."""
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def make_xlsx() -> Callable[[dict[str, dict[str, Any]]], bytes]:
    """Factory: {sheet: {A1 address: value}} -> xlsx bytes."""
    return _xlsx_bytes


@pytest.fixture()
def make_document() -> Callable[..., bytes]:
    """Factory for a two-sheet account / SOA document.

    ``acc`` / ``soa`` override (or with None, blank) individual cells.
    """
    def factory(acc: dict[str, Any] | None = None, soa: dict[str, Any] | None = None) -> bytes:
        acc_cells = {k: v for k, v in _account_cells(**(acc or {})).items() if v is not None}
        soa_cells = {k: v for k, v in _soa_cells(**(soa or {})).items() if v is not None}
        return _xlsx_bytes({ACC_SHEET: acc_cells, SOA_SHEET: soa_cells})
    return factory


@pytest.fixture()
def template_path(temp_workdir: Path) -> Path:
    """Profile template at data/template.xlsx (rates 1000 / 1200, pct 2 / 3)."""
    wb = Workbook()
    acc = wb.active
    acc.title = ACC_SHEET
    acc["A1"] = "FARMER PROFILE"
    acc["A2"] = "ACCOUNT DETAILS"
    acc["B3"] = "Lot"
    acc["B29"] = "Crop Season"
    soa = wb.create_sheet(SOA_SHEET)
    soa["A3"] = "STATEMENT OF ACCOUNT"
    soa["C17"] = 1000
    soa["C18"] = 1200
    soa["E17"] = 2
    soa["E18"] = 3
    soa["A100"] = "SUB-TOTAL"
    soa["D100"] = "=SUM(D17:D99)"
    soa["F100"] = "=SUM(F17:F99)"
    soa["G102"] = "=D100+F100+G101"
    path = temp_workdir / "data" / "template.xlsx"
    wb.save(path)
    return path


@pytest.fixture()
def masters_rows() -> list[list[Any]]:
    """Master list rows (header + data) in column order A..Q."""
    header = [
        "No", "Division", "Lot", "Season", "Year", "F", "G", "Area",
        "I", "J", "K", "L", "Owner Last", "Owner First", "Farmer Last", "Farmer First", "Old Account",
    ]

    def row(lot, season, year, area, o_last, o_first, f_last, f_first, old):
        return [None, "D10", lot, season, year, None, None, area,
                None, None, None, None, o_last, o_first, f_last, f_first, old]

    return [
        header,
        row("3170-1", "DRY", "2023", 1.5, "Mendoza", "Dominga VDA", "Cruz", "Pedro", 500),
        row("3170-2", "DRY", "2023", 0.8, "N", "N", "Reyes", "Ana", "N"),
        row("3170-1", "WET", "2023", 2, "Ignored", "Ignored", "Cruz", "Pedro", "N"),
        row(None, "WET", "2023", 1, "No", "Lot", "N", "N", "N"),
        row("3170-3", "N", "N", "N", "N", "N", "N", "N", "N"),
    ]


@pytest.fixture()
def masters_bytes(masters_rows: list[list[Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Masters List"
    for values in masters_rows:
        ws.append(values)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture()
def write_config(temp_workdir: Path) -> Path:
    """config/lotsheet.yml with a fast batch (no delays)."""
    cfg = temp_workdir / "config" / "lotsheet.yml"
    cfg.write_text(
        """
template_paths:
  - data/template.xlsx
output_directory: out
archive_name: profiles.zip
destination:
  workbook: data/destination.xlsx
  tab_name: Lots
  write_quota: 100
  quota_window: 60
batch:
  inter_item_delay: 0
  cooldown_seconds: 0
  auto_retry: true
""".lstrip(),
        encoding="utf-8",
    )
    return cfg
