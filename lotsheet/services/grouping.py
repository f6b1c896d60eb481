from __future__ import annotations

import logging
from collections.abc import Iterable

from ..excel.grid import Grid
from ..extraction.fields import cell_text, empty_if_placeholder
from ..models.masters import LotGroup, MastersListRow

"""Master list parsing and lot grouping.

Master list columns (zero-based): C(2)=Lot, D(3)=CropSeason, E(4)=CropYear,
H(7)=PlantedArea, M(12)=LandOwnerLast, N(13)=LandOwnerFirst,
O(14)=FarmerLast, P(15)=FarmerFirst, Q(16)=OldAccount. Row 1 is the header.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "MASTERS_COLUMNS",
    "group_rows",
    "parse_masters_list",
]

MASTERS_COLUMNS: dict[str, int] = {
    "lot_code": 2,
    "crop_season": 3,
    "crop_year": 4,
    "planted_area": 7,
    "land_owner_last": 12,
    "land_owner_first": 13,
    "farmer_last": 14,
    "farmer_first": 15,
    "old_account": 16,
}

HEADER_ROWS = 1


def parse_masters_list(grid: Grid) -> list[MastersListRow]:
    """Read master list rows, skipping the header and rows without a lot code."""
    rows: list[MastersListRow] = []
    for index in range(HEADER_ROWS, grid.row_count):
        values = {
            name: empty_if_placeholder(cell_text(grid.cell(index, col)))
            for name, col in MASTERS_COLUMNS.items()
        }
        if not values["lot_code"]:
            continue
        rows.append(MastersListRow(**values))
    logger.debug("master list %s: %d rows", grid.name, len(rows))
    return rows


def group_rows(rows: Iterable[MastersListRow]) -> list[LotGroup]:
    """Group rows by lot code in order of first appearance.

    The first row of a lot seeds the owner name; later rows are appended
    without touching it.
    """
    groups: list[LotGroup] = []
    index_by_code: dict[str, int] = {}
    for row in rows:
        if not row.lot_code:
            continue
        pos = index_by_code.get(row.lot_code)
        if pos is None:
            pos = len(groups)
            index_by_code[row.lot_code] = pos
            groups.append(
                LotGroup(
                    lot_code=row.lot_code,
                    land_owner_first=row.land_owner_first,
                    land_owner_last=row.land_owner_last,
                )
            )
        groups[pos].rows.append(row)
    return groups
