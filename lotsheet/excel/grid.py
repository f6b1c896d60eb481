from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import date, datetime, time

import pandas as pd
from openpyxl.utils.cell import column_index_from_string, coordinate_from_string
from openpyxl.utils.exceptions import CellCoordinatesException

from .reader import ParseError, read_excel_bytes

"""Addressable cell grid built from a parsed workbook.

A Grid is the frozen, positional view of one sheet. Values are one of
``str | int | float | None``; anything else coming out of the reader (dates,
booleans) is rendered to text on build so downstream code only has to deal
with those three variants plus "empty".
"""

__all__ = [
    "Cell",
    "Grid",
    "ParseError",
    "Workbook",
    "build_workbook",
    "parse_address",
]

Cell = str | int | float | None


def _to_cell(value: object) -> Cell:
    if value is None:
        return None
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) else value
    if isinstance(value, str):
        return value if value.strip() != "" else None
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if pd.isna(value):  # NaT / pd.NA
        return None
    return str(value)


def parse_address(address: str) -> tuple[int, int]:
    """Convert an A1 address to zero-based (row, col).

    Raises ValueError for malformed addresses.
    """
    try:
        letters, row = coordinate_from_string(address.strip().replace("$", "").upper())
    except CellCoordinatesException as e:
        raise ValueError(str(e)) from e
    return row - 1, column_index_from_string(letters) - 1


@dataclass(frozen=True)
class Grid:
    """Sparse, immutable 2-D view of a sheet (zero-based row/col)."""

    name: str
    rows: tuple[tuple[Cell, ...], ...]

    @classmethod
    def from_rows(cls, name: str, rows: list[list[object]]) -> Grid:
        frozen = []
        for raw in rows:
            cells = [_to_cell(v) for v in raw]
            # 末尾の空セルは保持しない
            while cells and cells[-1] is None:
                cells.pop()
            frozen.append(tuple(cells))
        while frozen and not frozen[-1]:
            frozen.pop()
        return cls(name=name, rows=tuple(frozen))

    @classmethod
    def from_dataframe(cls, name: str, df: pd.DataFrame) -> Grid:
        return cls.from_rows(name, df.values.tolist())

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def cell(self, row: int, col: int) -> Cell:
        """Value at (row, col); out-of-bounds positions are empty (None)."""
        if row < 0 or col < 0 or row >= len(self.rows):
            return None
        cells = self.rows[row]
        if col >= len(cells):
            return None
        return cells[col]

    def cell_by_address(self, address: str) -> Cell:
        """Value at an A1 address such as ``"D100"``; strings come back trimmed."""
        try:
            row, col = parse_address(address)
        except ValueError:
            return None
        value = self.cell(row, col)
        if isinstance(value, str):
            return value.strip() or None
        return value

    def iter_rows(self) -> Iterator[tuple[int, tuple[Cell, ...]]]:
        return iter(enumerate(self.rows))


class Workbook(Mapping[str, Grid]):
    """Ordered mapping of sheet name -> Grid (source sheet order)."""

    def __init__(self, sheets: Mapping[str, Grid]) -> None:
        self._sheets: dict[str, Grid] = dict(sheets)

    def __getitem__(self, name: str) -> Grid:
        return self._sheets[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._sheets)

    def __len__(self) -> int:
        return len(self._sheets)

    def find_sheet(self, fragment: str) -> Grid | None:
        """First sheet (in workbook order) whose name contains ``fragment``."""
        for name, grid in self._sheets.items():
            if fragment in name:
                return grid
        return None

    def first(self) -> Grid | None:
        for grid in self._sheets.values():
            return grid
        return None

    def cell(self, sheet: str, row: int, col: int) -> Cell:
        grid = self._sheets.get(sheet)
        return grid.cell(row, col) if grid is not None else None

    def cell_by_address(self, sheet: str, address: str) -> Cell:
        grid = self._sheets.get(sheet)
        return grid.cell_by_address(address) if grid is not None else None


def build_workbook(data: bytes) -> Workbook:
    """Decode workbook bytes into a Workbook of Grids.

    Raises ParseError when the buffer is not a readable spreadsheet.
    """
    dfs = read_excel_bytes(data)
    return Workbook({name: Grid.from_dataframe(name, df) for name, df in dfs.items()})
