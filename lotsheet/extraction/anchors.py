from __future__ import annotations

from ..excel.grid import Grid

"""Marker-text scanning for labeled blocks whose position varies per document."""

__all__ = [
    "NOT_FOUND",
    "ACCOUNT_DETAILS_MARKER",
    "SOA_MARKER",
    "SUBTOTAL_MARKER",
    "find_row",
]

NOT_FOUND = -1

ACCOUNT_DETAILS_MARKER = "ACCOUNT DETAILS"
SOA_MARKER = "STATEMENT OF ACCOUNT"
SUBTOTAL_MARKER = "SUB-TOTAL"


def find_row(grid: Grid, marker: str, start_row: int = 0) -> int:
    """Return the first row containing a text cell that includes ``marker``.

    Case-insensitive, row-major top to bottom. Only string cells are matched.
    Returns NOT_FOUND when no row matches; a missing marker simply means the
    document does not carry that block.
    """
    needle = marker.upper()
    for index, cells in grid.iter_rows():
        if index < start_row:
            continue
        for value in cells:
            if isinstance(value, str) and needle in value.upper():
                return index
    return NOT_FOUND
