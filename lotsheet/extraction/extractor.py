from __future__ import annotations

import logging
import re

from ..excel.grid import Grid, Workbook, build_workbook
from ..models.records import AccountDetail, ExtractedData, PersonName, SOADetail
from .aggregates import resolve_soa
from .anchors import ACCOUNT_DETAILS_MARKER, NOT_FOUND, SOA_MARKER, find_row
from .fields import FieldSpec, read_fields

"""Read path: workbook -> ExtractedData.

Two sheets are recognised by name fragment: ``00 ACC DETAILS`` (lot number,
owner and farmer names laid out below an ACCOUNT DETAILS marker) and
``01 SOA`` (statement of account figures, see aggregates.py).
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ACC_SHEET_FRAGMENT",
    "ACCOUNT_FIELDS",
    "SOA_SHEET_FRAGMENT",
    "extract_account_details",
    "extract_data",
    "extract_document",
    "extract_file_id",
    "extract_soa_details",
]

ACC_SHEET_FRAGMENT = "00 ACC DETAILS"
SOA_SHEET_FRAGMENT = "01 SOA"

# (Δrow from the ACCOUNT DETAILS marker, column C)
ACCOUNT_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("lot_no", 1, 2),
    FieldSpec("owner_first", 5, 2),
    FieldSpec("owner_middle", 6, 2),
    FieldSpec("owner_last", 7, 2),
    FieldSpec("farmer_first", 9, 2),
    FieldSpec("farmer_middle", 10, 2),
    FieldSpec("farmer_last", 11, 2),
)

_LEADING_ID = re.compile(r"^(\d+)\s")
_TRAILING_ID = re.compile(r"_(\d+)\.[^.\\/]+$")


def extract_file_id(filename: str) -> str:
    """Numeric id carried by a source filename.

    ``"0012 DELA CRUZ.xlsx"`` -> ``"12"`` (leading digits followed by
    whitespace). Exports named ``<prefix>_<id>.xlsx`` are accepted as well.
    Returns "" when the name carries no id.
    """
    match = _LEADING_ID.match(filename) or _TRAILING_ID.search(filename)
    if not match:
        return ""
    return str(int(match.group(1)))


def extract_account_details(grid: Grid) -> list[AccountDetail]:
    anchor = find_row(grid, ACCOUNT_DETAILS_MARKER)
    if anchor == NOT_FOUND:
        return []
    f = read_fields(grid, anchor, ACCOUNT_FIELDS)
    if not f["lot_no"]:
        return []
    owner = PersonName(f["owner_first"], f["owner_middle"], f["owner_last"])
    farmer = PersonName(f["farmer_first"], f["farmer_middle"], f["farmer_last"])
    if owner.is_empty() and farmer.is_empty():
        return []
    return [AccountDetail(lot_no=f["lot_no"], lot_owner=owner, farmer=farmer)]


def extract_soa_details(grid: Grid, acc: Grid | None = None) -> list[SOADetail]:
    anchor = find_row(grid, SOA_MARKER)
    if anchor == NOT_FOUND:
        return []
    detail = resolve_soa(grid, acc, anchor)
    if detail.is_empty():
        return []
    return [detail]


def extract_data(workbook: Workbook, filename: str = "") -> ExtractedData:
    soa = workbook.find_sheet(SOA_SHEET_FRAGMENT)
    acc = workbook.find_sheet(ACC_SHEET_FRAGMENT)
    data = ExtractedData(
        file_id=extract_file_id(filename),
        account_details=extract_account_details(acc) if acc is not None else [],
        soa_details=extract_soa_details(soa, acc) if soa is not None else [],
    )
    logger.debug(
        "extracted %s: file_id=%r accounts=%d soa=%d",
        filename, data.file_id, len(data.account_details), len(data.soa_details),
    )
    return data


def extract_document(data: bytes, filename: str = "") -> ExtractedData:
    """Decode and extract one document. Raises ParseError for undecodable bytes."""
    return extract_data(build_workbook(data), filename)
