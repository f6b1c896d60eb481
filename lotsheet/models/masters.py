from __future__ import annotations

from dataclasses import dataclass, field

"""Master list rows and the per-lot groups built from them."""

__all__ = [
    "LotGroup",
    "MastersListRow",
]


@dataclass(frozen=True)
class MastersListRow:
    """One row of the flat master list ("N" placeholders already blanked)."""
    lot_code: str
    crop_season: str = ""
    crop_year: str = ""
    planted_area: str = ""
    land_owner_first: str = ""
    land_owner_last: str = ""
    farmer_first: str = ""
    farmer_last: str = ""
    old_account: str = ""


@dataclass
class LotGroup:
    """Rows sharing a lot code, in the order they appear in the master list.

    Owner names come from the first row of the group.
    """
    lot_code: str
    land_owner_first: str
    land_owner_last: str
    rows: list[MastersListRow] = field(default_factory=list)

    @property
    def first_row(self) -> MastersListRow | None:
        return self.rows[0] if self.rows else None
