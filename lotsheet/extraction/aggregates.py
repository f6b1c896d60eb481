from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from decimal import Decimal

from ..excel.grid import Grid
from ..models.records import SOADetail
from .anchors import NOT_FOUND, SUBTOTAL_MARKER, find_row
from .fields import cell_text, format_amount, format_number, parse_number

"""Statement-of-account aggregate resolution.

The SOA workbook carries its totals as formulas, and the cached results are
often missing when the file was produced by something other than Excel. Each
figure is therefore resolved through an ordered cascade of sources:

1. the result cell itself (fixed address, or the SUB-TOTAL row found by label)
2. the sum of the raw entry rows above the sub-total
3. a recomputation from the inputs (area x rate, principal x pct / 100)

The first source producing a value wins. Sources are never mixed within one
field.
"""

__all__ = [
    "Source",
    "SOA_AREA_CELL",
    "SOA_OLD_ACCOUNT_CELL",
    "SOA_TOTAL_CELL",
    "SOA_TOTAL_ALT_CELL",
    "SOA_PRINCIPAL_CELL",
    "SOA_PENALTY_CELL",
    "SOA_ENTRY_FIRST_ROW",
    "SOA_ENTRY_LAST_ROW",
    "SOA_RATE_COL",
    "SOA_PRINCIPAL_COL",
    "SOA_PCT_COL",
    "SOA_PENALTY_COL",
    "CROP_BLOCK_FIRST_ROW",
    "CROP_BLOCK_CAPACITY",
    "CROP_AREA_COL",
    "column_values",
    "derive_penalty",
    "derive_principal",
    "resolve_first",
    "resolve_soa",
]

Source = Callable[[], str | None]

# SOA sheet layout (A1 addresses / zero-based indexes)
SOA_AREA_CELL = "G13"
SOA_PRINCIPAL_CELL = "D100"
SOA_PENALTY_CELL = "F100"
SOA_OLD_ACCOUNT_CELL = "G101"
SOA_TOTAL_CELL = "G102"
SOA_TOTAL_ALT_CELL = "G103"
SOA_ENTRY_FIRST_ROW = 16  # row 17
SOA_ENTRY_LAST_ROW = 98  # row 99, just above the fixed sub-total row
SOA_RATE_COL = 2  # C
SOA_PRINCIPAL_COL = 3  # D
SOA_PCT_COL = 4  # E
SOA_PENALTY_COL = 5  # F

# ACC DETAILS sheet crop block (season / year / planted area from B30)
CROP_BLOCK_FIRST_ROW = 29
CROP_BLOCK_CAPACITY = 25
CROP_AREA_COL = 3  # D


def resolve_first(sources: Iterable[Source]) -> str:
    """Evaluate sources in order and return the first non-empty result ("" if none)."""
    for source in sources:
        value = source()
        if value:
            return value
    return ""


def _nonzero(number: Decimal | None) -> str | None:
    if number is None or number == 0:
        return None
    return format_amount(number)


def column_values(grid: Grid, col: int, first_row: int, count: int) -> list[Decimal | None]:
    """Parsed numbers of ``count`` consecutive cells in one column."""
    return [parse_number(grid.cell(first_row + i, col)) for i in range(count)]


def derive_principal(
    areas: Sequence[Decimal | None], rates: Sequence[Decimal | None]
) -> Decimal | None:
    """Σ(area_i × rate_i) over positionally paired rows; None if no pair is complete."""
    total: Decimal | None = None
    for area, rate in zip(areas, rates):
        if area is None or rate is None:
            continue
        total = (total or Decimal(0)) + area * rate
    return total


def derive_penalty(
    areas: Sequence[Decimal | None],
    rates: Sequence[Decimal | None],
    pcts: Sequence[Decimal | None],
) -> Decimal | None:
    """Σ(principal_i × pct_i / 100) with principal_i = area_i × rate_i."""
    total: Decimal | None = None
    for area, rate, pct in zip(areas, rates, pcts):
        if area is None or rate is None or pct is None:
            continue
        total = (total or Decimal(0)) + area * rate * pct / Decimal(100)
    return total


def _direct(grid: Grid, address: str) -> Source:
    def source() -> str | None:
        text = cell_text(grid.cell_by_address(address))
        return format_number(text) if text else None
    return source


def _row_cell(grid: Grid, row: int, col: int) -> Source:
    def source() -> str | None:
        if row == NOT_FOUND:
            return None
        text = cell_text(grid.cell(row, col))
        return format_number(text) if text else None
    return source


def _range_sum(grid: Grid, col: int, first_row: int, stop_row: int) -> Source:
    def source() -> str | None:
        numbers = [n for n in column_values(grid, col, first_row, stop_row - first_row) if n is not None]
        return _nonzero(sum(numbers, Decimal(0))) if numbers else None
    return source


class _Inputs:
    """Paired input columns from the ACC DETAILS crop block and the SOA entry block."""

    def __init__(self, soa: Grid, acc: Grid | None) -> None:
        count = CROP_BLOCK_CAPACITY
        self.areas = (
            column_values(acc, CROP_AREA_COL, CROP_BLOCK_FIRST_ROW, count) if acc is not None else []
        )
        self.rates = column_values(soa, SOA_RATE_COL, SOA_ENTRY_FIRST_ROW, count)
        self.pcts = column_values(soa, SOA_PCT_COL, SOA_ENTRY_FIRST_ROW, count)

    def area(self) -> str | None:
        numbers = [a for a in self.areas if a is not None]
        return _nonzero(sum(numbers, Decimal(0))) if numbers else None

    def principal(self) -> str | None:
        return _nonzero(derive_principal(self.areas, self.rates))

    def penalty(self) -> str | None:
        return _nonzero(derive_penalty(self.areas, self.rates, self.pcts))


def _derived_total(principal: str, penalty: str, old_account: str) -> Source:
    def source() -> str | None:
        parts = [parse_number(v) for v in (principal, penalty, old_account)]
        numbers = [p for p in parts if p is not None]
        if not numbers:
            return None
        return _nonzero(sum(numbers, Decimal(0)))
    return source


def resolve_soa(soa: Grid, acc: Grid | None, anchor_row: int) -> SOADetail:
    """Resolve the SOA figures of one document.

    ``anchor_row`` is the STATEMENT OF ACCOUNT marker row; the SUB-TOTAL label
    is searched from there. ``acc`` is the ACC DETAILS sheet if the workbook
    has one (needed only for the derived tier).
    """
    subtotal_row = find_row(soa, SUBTOTAL_MARKER, start_row=max(anchor_row, 0))
    entry_stop = subtotal_row if subtotal_row != NOT_FOUND else SOA_ENTRY_LAST_ROW + 1
    inputs = _Inputs(soa, acc)

    area = resolve_first([
        _direct(soa, SOA_AREA_CELL),
        inputs.area,
    ])
    principal = resolve_first([
        _row_cell(soa, subtotal_row, SOA_PRINCIPAL_COL),
        _direct(soa, SOA_PRINCIPAL_CELL),
        _range_sum(soa, SOA_PRINCIPAL_COL, SOA_ENTRY_FIRST_ROW, entry_stop),
        inputs.principal,
    ])
    penalty = resolve_first([
        _row_cell(soa, subtotal_row, SOA_PENALTY_COL),
        _direct(soa, SOA_PENALTY_CELL),
        _range_sum(soa, SOA_PENALTY_COL, SOA_ENTRY_FIRST_ROW, entry_stop),
        inputs.penalty,
    ])
    old_account = resolve_first([_direct(soa, SOA_OLD_ACCOUNT_CELL)])
    total = resolve_first([
        _direct(soa, SOA_TOTAL_CELL),
        _direct(soa, SOA_TOTAL_ALT_CELL),
        _derived_total(principal, penalty, old_account),
    ])
    return SOADetail(
        area=area,
        principal=principal,
        penalty=penalty,
        old_account=old_account,
        total=total,
    )
