from __future__ import annotations

from types import SimpleNamespace

import pytest
from openpyxl import Workbook, load_workbook

from lotsheet.sheets.target import (
    NOT_FOUND,
    RangeUpdate,
    RateLimited,
    WorkbookTarget,
    WriteFailed,
    classify_write_error,
    find_target_row,
    range_with_sheet,
    split_range,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def dest(tmp_path):
    wb = Workbook()
    ws = wb.active
    ws.title = "Lots"
    for value in ("File ID", 10, 12, "0013 extra"):
        ws.append([value])
    wb.create_sheet("My Tab")
    path = tmp_path / "dest.xlsx"
    wb.save(path)
    return path


def test_range_with_sheet():
    assert range_with_sheet(None, "A:A") == "A:A"
    assert range_with_sheet("  ", "A:A") == "A:A"
    assert range_with_sheet("Lots", "B2:G2") == "Lots!B2:G2"
    assert range_with_sheet("My Tab", "B2:G2") == "'My Tab'!B2:G2"
    assert range_with_sheet("O'Brien", "A1") == "'O''Brien'!A1"


def test_split_range_inverts_range_with_sheet():
    assert split_range("A1") == (None, "A1")
    assert split_range("Lots!B2:G2") == ("Lots", "B2:G2")
    assert split_range(range_with_sheet("O'Brien", "A1")) == ("O'Brien", "A1")


def test_find_target_row():
    column = [["File ID"], [10], [12.0], ["0013 extra"], [], [None]]
    assert find_target_row(column, "12") == 3
    assert find_target_row(column, "13") == 4
    assert find_target_row(column, "99") == NOT_FOUND
    assert find_target_row([[5], [5]], "5") == 1


def test_classify_write_error():
    assert isinstance(classify_write_error(Exception("Quota exceeded for metric")), RateLimited)
    assert isinstance(classify_write_error(Exception("HTTP 429 Too Many Requests")), RateLimited)

    status_err = Exception("slow down")
    status_err.status_code = 429
    assert isinstance(classify_write_error(status_err), RateLimited)

    response_err = Exception("api error")
    response_err.response = SimpleNamespace(status=429)
    assert isinstance(classify_write_error(response_err), RateLimited)

    failed = classify_write_error(ValueError("Unable to parse range"))
    assert isinstance(failed, WriteFailed)
    assert str(failed) == "Unable to parse range"

    original = RateLimited("x")
    assert classify_write_error(original) is original


def test_read_column_with_sheet_prefix(dest):
    target = WorkbookTarget(dest)
    assert target.read_column("Lots!A:A") == [["File ID"], [10], [12], ["0013 extra"]]


def test_batch_update_writes_and_saves(dest):
    target = WorkbookTarget(dest, default_sheet="Lots")
    target.batch_update([
        RangeUpdate("Lots!B3:D3", [["3170-1", "Mendoza", ""]]),
        RangeUpdate("'My Tab'!A1", [["x"]]),
    ])
    target.update("C2", [["no prefix"]])
    wb = load_workbook(dest)
    assert [wb["Lots"][c].value for c in ("B3", "C3", "D3")] == ["3170-1", "Mendoza", None]
    assert wb["Lots"]["C2"].value == "no prefix"
    assert wb["My Tab"]["A1"].value == "x"


def test_empty_string_clears_cell(dest):
    target = WorkbookTarget(dest)
    target.update("Lots!A2", [[""]])
    assert load_workbook(dest)["Lots"]["A2"].value is None


def test_unknown_sheet_is_write_failed(dest):
    target = WorkbookTarget(dest)
    with pytest.raises(WriteFailed):
        target.update("Nope!A1", [["x"]])
    with pytest.raises(WriteFailed):
        target.read_column("Nope!A:A")


def test_bad_range_is_write_failed(dest):
    with pytest.raises(WriteFailed):
        WorkbookTarget(dest).update("Lots!not-a-range", [["x"]])


def test_write_quota(dest):
    clock = FakeClock()
    target = WorkbookTarget(dest, write_quota=2, quota_window=60, clock=clock)
    target.update("Lots!B2", [[1]])
    target.update("Lots!B3", [[2]])
    with pytest.raises(RateLimited, match="Quota exceeded"):
        target.update("Lots!B4", [[3]])
    clock.now = 60.0
    target.update("Lots!B4", [[3]])
    assert load_workbook(dest)["Lots"]["B4"].value == 3


def test_new_workbook_uses_default_sheet(tmp_path):
    path = tmp_path / "new.xlsx"
    target = WorkbookTarget(path, default_sheet="Lots")
    target.update("A1", [["File ID"]])
    assert load_workbook(path).sheetnames == ["Lots"]


def test_batch_update_is_all_or_nothing(dest):
    target = WorkbookTarget(dest)
    with pytest.raises(WriteFailed):
        target.batch_update([
            RangeUpdate("Lots!B2:C2", [["3170-1", "Mendoza"]]),
            RangeUpdate("Nope!I2", [["3.50"]]),
        ])
    # a later successful save must not carry the first range along
    target.update("Lots!B5", [["ok"]])
    ws = load_workbook(dest)["Lots"]
    assert ws["B2"].value is None
    assert ws["C2"].value is None
    assert ws["B5"].value == "ok"
