from __future__ import annotations

from decimal import Decimal
from typing import Any

from lotsheet.excel.grid import Grid, parse_address
from lotsheet.extraction.aggregates import (
    derive_penalty,
    derive_principal,
    resolve_first,
    resolve_soa,
)
from lotsheet.extraction.anchors import SOA_MARKER, find_row

SOA = {
    "A3": "STATEMENT OF ACCOUNT",
    "G13": 3.5,
    "C17": 1000, "D17": 1500, "E17": 2, "F17": 30,
    "C18": 1200, "D18": 2400, "E18": 3, "F18": 72,
    "A100": "SUB-TOTAL",
    "D100": 3900, "F100": 102,
    "G101": 500,
    "G102": 4502,
}
ACC = {"D30": 1.5, "D31": 2}


def _grid(cells: dict[str, Any], name: str = "S") -> Grid:
    positioned = {parse_address(a): v for a, v in cells.items() if v is not None}
    height = max((r for r, _ in positioned), default=-1) + 1
    width = max((c for _, c in positioned), default=-1) + 1
    rows: list[list[Any]] = [[None] * width for _ in range(height)]
    for (r, c), v in positioned.items():
        rows[r][c] = v
    return Grid.from_rows(name, rows)


def _resolve(soa_overrides: dict[str, Any] | None = None, acc: dict[str, Any] | None = ACC):
    soa = _grid({**SOA, **(soa_overrides or {})})
    return resolve_soa(soa, _grid(acc) if acc is not None else None, find_row(soa, SOA_MARKER))


def test_resolve_first_short_circuits():
    calls = []

    def src(value):
        def f():
            calls.append(value)
            return value
        return f

    assert resolve_first([src(None), src(""), src("x"), src("y")]) == "x"
    assert calls == [None, "", "x"]
    assert resolve_first([src(None)]) == ""
    assert resolve_first([]) == ""


def test_derive_principal_pairs_positionally():
    areas = [Decimal("1.5"), None, Decimal(2)]
    rates = [Decimal(1000), Decimal(500), None]
    assert derive_principal(areas, rates) == Decimal("1500.0")
    assert derive_principal([None], [Decimal(1)]) is None
    assert derive_principal([], []) is None


def test_derive_penalty():
    areas = [Decimal("1.5"), Decimal(2)]
    rates = [Decimal(1000), Decimal(1200)]
    pcts = [Decimal(2), Decimal(3)]
    assert derive_penalty(areas, rates, pcts) == Decimal(102)
    assert derive_penalty(areas, rates, [None, None]) is None


def test_result_cells_win():
    d = _resolve()
    assert d.area == "3.50"
    assert d.principal == "3,900.00"
    assert d.penalty == "102.00"
    assert d.old_account == "500.00"
    assert d.total == "4,502.00"


def test_subtotal_row_found_by_label_beats_fixed_cell():
    d = _resolve({"A100": None, "A50": "Sub-Total", "D50": 777, "F50": 11})
    assert d.principal == "777.00"
    assert d.penalty == "11.00"


def test_range_sum_when_result_cells_empty():
    d = _resolve({"D100": None, "F100": None, "D17": 100, "D18": 200})
    assert d.principal == "300.00"
    # penalty range F17:F99 = 30 + 72
    assert d.penalty == "102.00"


def test_range_sum_stops_at_subtotal_row():
    d = _resolve({"A100": None, "D100": None, "A20": "SUB-TOTAL", "D25": 999999})
    assert d.principal == "3,900.00"


def test_derived_from_inputs_when_no_amount_cells():
    d = _resolve({"D100": None, "F100": None, "D17": None, "D18": None, "F17": None, "F18": None})
    # 1.5 x 1000 + 2 x 1200
    assert d.principal == "3,900.00"
    # 1500 x 2% + 2400 x 3%
    assert d.penalty == "102.00"


def test_derived_without_acc_sheet_is_empty():
    d = _resolve(
        {"D100": None, "F100": None, "D17": None, "D18": None, "F17": None, "F18": None},
        acc=None,
    )
    assert d.principal == ""
    assert d.penalty == ""


def test_area_falls_back_to_crop_block_sum():
    d = _resolve({"G13": None}, acc={"D30": 4, "D31": 2})
    assert d.area == "6.00"


def test_total_alternate_then_derived():
    assert _resolve({"G102": None, "G103": 999}).total == "999.00"
    assert _resolve({"G102": None}).total == "4,502.00"
    assert _resolve({"G102": None, "G101": None}).total == "4,002.00"


def test_missing_values_are_empty_not_zero():
    d = _resolve({
        "G13": None, "D100": None, "F100": None, "G101": None, "G102": None,
        "C17": None, "C18": None, "D17": None, "D18": None, "F17": None, "F18": None,
    }, acc={})
    assert d.principal == ""
    assert d.penalty == ""
    assert d.old_account == ""
    assert d.total == ""
    assert d.area == ""
    assert d.is_empty()


def test_text_amounts_are_reformatted():
    d = _resolve({"D100": "1234.5", "G101": "N/A"})
    assert d.principal == "1,234.50"
    assert d.old_account == "N/A"
