from __future__ import annotations

import pytest

from lotsheet.excel.grid import Grid, ParseError, Workbook, build_workbook, parse_address
from lotsheet.excel.reader import read_excel_bytes


def test_parse_address():
    assert parse_address("A1") == (0, 0)
    assert parse_address("D100") == (99, 3)
    assert parse_address("$G$13") == (12, 6)
    with pytest.raises(ValueError):
        parse_address("100D")


def test_build_workbook_keeps_sheet_order_and_positions(make_xlsx):
    data = make_xlsx({
        "Second": {"B2": "x"},
        "First": {"A1": "Title", "C3": 12, "D100": 2.5},
    })
    wb = build_workbook(data)
    assert list(wb) == ["Second", "First"]
    assert wb.cell("First", 0, 0) == "Title"
    assert wb.cell("First", 2, 2) == 12
    assert wb.cell_by_address("First", "D100") == 2.5
    assert wb.cell("Second", 1, 1) == "x"


def test_out_of_bounds_is_empty(make_xlsx):
    wb = build_workbook(make_xlsx({"S": {"A1": "only"}}))
    grid = wb["S"]
    assert grid.cell(0, 0) == "only"
    assert grid.cell(0, 50) is None
    assert grid.cell(500, 0) is None
    assert grid.cell(-1, 0) is None
    assert grid.cell_by_address("ZZ9999") is None
    assert wb.cell("Missing", 0, 0) is None
    assert wb.cell_by_address("Missing", "A1") is None


def test_leading_blank_rows_and_columns_keep_addresses(make_xlsx):
    wb = build_workbook(make_xlsx({"S": {"C5": "anchor"}}))
    assert wb["S"].cell(4, 2) == "anchor"
    assert wb["S"].cell_by_address("C5") == "anchor"


def test_cell_by_address_trims_and_blank_is_empty():
    grid = Grid.from_rows("S", [["  padded  ", "   "]])
    assert grid.cell_by_address("A1") == "padded"
    assert grid.cell_by_address("B1") is None
    assert grid.cell_by_address("not an address") is None


def test_from_rows_normalizes_variants():
    from datetime import datetime

    grid = Grid.from_rows("S", [[float("nan"), True, datetime(2024, 1, 2), None]])
    assert grid.cell(0, 0) is None
    assert grid.cell(0, 1) == "TRUE"
    assert grid.cell(0, 2) == "2024-01-02T00:00:00"
    assert grid.rows == ((None, "TRUE", "2024-01-02T00:00:00"),)


def test_find_sheet_by_fragment():
    wb = Workbook({
        "00 ACC DETAILS 01": Grid.from_rows("00 ACC DETAILS 01", [["a"]]),
        "01 SOA 01": Grid.from_rows("01 SOA 01", [["b"]]),
        "01 SOA 02": Grid.from_rows("01 SOA 02", [["c"]]),
    })
    assert wb.find_sheet("01 SOA").name == "01 SOA 01"
    assert wb.find_sheet("99 NOPE") is None
    assert wb.first().name == "00 ACC DETAILS 01"


def test_parse_error_for_non_spreadsheet_bytes():
    with pytest.raises(ParseError):
        build_workbook(b"definitely not a zip container")
    with pytest.raises(ParseError):
        build_workbook(b"")


def test_read_excel_bytes_target_sheets_filter(make_xlsx):
    data = make_xlsx({"A": {"A1": 1}, "B": {"A1": 2}})
    assert set(read_excel_bytes(data)) == {"A", "B"}
    assert set(read_excel_bytes(data, target_sheets=["B"])) == {"B"}
