from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from ..excel.grid import Cell, Grid

"""Positional field reading and cell normalization.

Offsets are declared as tables of FieldSpec and consumed by ``read_fields``;
there is no per-field extraction code.
"""

__all__ = [
    "PLACEHOLDER",
    "FieldSpec",
    "cell_text",
    "empty_if_placeholder",
    "format_amount",
    "format_number",
    "parse_number",
    "quantize_cents",
    "read_fields",
]

# 「該当なし」を表すマスターリスト上の慣例
PLACEHOLDER = "N"

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class FieldSpec:
    """One field at (base_row + row_offset, col)."""
    name: str
    row_offset: int
    col: int
    numeric: bool = False


def cell_text(value: Cell) -> str:
    """Render a cell as trimmed text ("" for empty, 12.0 -> "12")."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float):
        if value != value:  # NaN
            return ""
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def empty_if_placeholder(text: str) -> str:
    """A field holding exactly "N" means not applicable; "North 5" is kept."""
    stripped = text.strip()
    return "" if stripped == PLACEHOLDER else stripped


def parse_number(value: Cell | str) -> Decimal | None:
    """Parse a numeric cell or numeric-looking text (thousands separators allowed)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        text = repr(value) if isinstance(value, float) else str(value)
    else:
        text = value.strip().replace(",", "")
        if not text:
            return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def quantize_cents(number: Decimal) -> Decimal:
    """Round half up to 0.01 whatever the magnitude."""
    with localcontext() as ctx:
        # 既定精度 (28 桁) を超える値でも quantize できるように
        ctx.prec = max(28, number.adjusted() + 3)
        return number.quantize(_CENTS, rounding=ROUND_HALF_UP)


def format_amount(number: Decimal) -> str:
    """Fixed-point, two fraction digits, thousands separators."""
    return f"{quantize_cents(number):,.2f}"


def format_number(text: str) -> str:
    """Re-render numeric-looking text as ``1,234.50``; other text passes through."""
    number = parse_number(text)
    if number is None:
        return text
    return format_amount(number)


def read_fields(grid: Grid, base_row: int, specs: Iterable[FieldSpec]) -> dict[str, str]:
    """Read every spec relative to ``base_row`` into a name -> text mapping."""
    values: dict[str, str] = {}
    for spec in specs:
        text = cell_text(grid.cell(base_row + spec.row_offset, spec.col))
        if spec.numeric and text:
            text = format_number(text)
        values[spec.name] = text
    return values
