from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Extraction result models.

ExtractedData is what the read path hands back to callers. ``to_dict`` gives
the camelCase wire form consumed by the web layer.
"""

__all__ = [
    "AccountDetail",
    "ExtractedData",
    "PersonName",
    "SOADetail",
]


@dataclass(frozen=True)
class PersonName:
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""

    def is_empty(self) -> bool:
        return not (self.first_name or self.middle_name or self.last_name)

    def to_dict(self) -> dict[str, str]:
        return {
            "firstName": self.first_name,
            "middleName": self.middle_name,
            "lastName": self.last_name,
        }


@dataclass(frozen=True)
class AccountDetail:
    """Lot account block (one per document at most)."""
    lot_no: str
    lot_owner: PersonName
    farmer: PersonName

    def to_dict(self) -> dict[str, Any]:
        return {
            "lotNo": self.lot_no,
            "lotOwner": self.lot_owner.to_dict(),
            "farmer": self.farmer.to_dict(),
        }


@dataclass(frozen=True)
class SOADetail:
    """Statement of account figures.

    Every field is a formatted amount (``"1,234.50"``) or ``""`` when it could
    not be determined. An empty string never stands for zero.
    """
    area: str = ""
    principal: str = ""
    penalty: str = ""
    old_account: str = ""
    total: str = ""

    def is_empty(self) -> bool:
        return not (self.area or self.principal or self.penalty or self.old_account or self.total)

    def as_row(self) -> list[str]:
        return [self.area, self.principal, self.penalty, self.old_account, self.total]

    def to_dict(self) -> dict[str, str]:
        return {
            "area": self.area,
            "principal": self.principal,
            "penalty": self.penalty,
            "oldAccount": self.old_account,
            "total": self.total,
        }


@dataclass(frozen=True)
class ExtractedData:
    file_id: str
    account_details: list[AccountDetail] = field(default_factory=list)
    soa_details: list[SOADetail] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileId": self.file_id,
            "accountDetails": [d.to_dict() for d in self.account_details],
            "soaDetails": [d.to_dict() for d in self.soa_details],
        }
