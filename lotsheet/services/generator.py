from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from openpyxl import load_workbook
from openpyxl.workbook.workbook import Workbook as XlsxWorkbook
from openpyxl.worksheet.worksheet import Worksheet

from ..extraction.aggregates import (
    CROP_BLOCK_CAPACITY,
    CROP_BLOCK_FIRST_ROW,
    SOA_ENTRY_FIRST_ROW,
    SOA_OLD_ACCOUNT_CELL,
    SOA_PCT_COL,
    SOA_PENALTY_CELL,
    SOA_PRINCIPAL_CELL,
    SOA_RATE_COL,
    SOA_TOTAL_CELL,
    derive_penalty,
    derive_principal,
)
from ..extraction.extractor import ACC_SHEET_FRAGMENT, SOA_SHEET_FRAGMENT
from ..extraction.fields import PLACEHOLDER, empty_if_placeholder, parse_number, quantize_cents
from ..models.masters import LotGroup

"""Profile workbook generation from lot groups.

Each lot group is written into a copy of the profile template: identity
fields on the ACC DETAILS sheet, one crop row per master list row, and the
principal / penalty / total amounts on the SOA sheet. The amounts are
computed here and written as plain values because readers of the generated
files do not evaluate the template formulas.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_TEMPLATE_CANDIDATES",
    "GeneratedProfile",
    "TemplateError",
    "TemplateMissing",
    "build_archive",
    "format_filename",
    "generate_profile",
    "generate_profiles",
    "locate_template",
    "write_profiles",
]

DEFAULT_TEMPLATE_CANDIDATES: tuple[Path, ...] = (
    Path("data") / "template.xlsx",
    Path("public") / "template.xlsx",
)

# ACC DETAILS identity cells
LOT_CODE_CELL = "C3"
OWNER_FIRST_CELL = "C7"
OWNER_LAST_CELL = "C9"
FARMER_FIRST_CELL = "C11"
FARMER_LAST_CELL = "C13"
# crop block columns: B=season, C=year, D=planted area
CROP_COLUMNS = ("B", "C", "D")

# 生成物のメタデータ固定 (同一入力 -> 同一内容)
FIXED_TIMESTAMP = datetime(2000, 1, 1)

ARCHIVE_COMPRESSLEVEL = 6


class TemplateError(Exception):
    """Template asset unusable; aborts the whole generation run."""


class TemplateMissing(TemplateError):
    """No template found at any candidate path."""


@dataclass(frozen=True)
class GeneratedProfile:
    filename: str
    content: bytes


def locate_template(candidates: Iterable[Path | str] = DEFAULT_TEMPLATE_CANDIDATES) -> Path:
    tried: list[str] = []
    for candidate in candidates:
        path = Path(candidate)
        if path.is_file():
            return path
        tried.append(str(path))
    raise TemplateMissing(f"Template not found. Tried: {', '.join(tried)}")


def _sanitize(part: str) -> str:
    return part.replace("/", "-").replace("\\", "-").strip()


def _is_name(part: str) -> bool:
    stripped = part.strip()
    return stripped != "" and stripped != PLACEHOLDER


def format_filename(
    sequence: int,
    lot_code: str,
    owner_last: str = "",
    owner_first: str = "",
    farmer_last: str = "",
    farmer_first: str = "",
) -> str:
    """``"01 3170-1 Mendoza, Dominga VDA.xlsx"``.

    Owner name preferred, farmer name as fallback, name segment dropped when
    neither is present.
    """
    owner = [_sanitize(p) for p in (owner_last, owner_first) if _is_name(p)]
    farmer = [_sanitize(p) for p in (farmer_last, farmer_first) if _is_name(p)]
    name = ", ".join(owner) if owner else ", ".join(farmer)
    base = f"{sequence:02d} {_sanitize(lot_code)}".strip()
    return f"{base} {name}.xlsx" if name else f"{base}.xlsx"


def _cell_value(value: str | Decimal | None) -> str | int | float | None:
    """Numeric-looking text goes in as a number, "N"/"" as an empty cell."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(quantize_cents(value))
    text = empty_if_placeholder(value)
    if text == "":
        return None
    if "," not in text:
        number = parse_number(text)
        if number is not None:
            return int(number) if number == number.to_integral_value() else float(number)
    return text


def _sheet(wb: XlsxWorkbook, fragment: str) -> Worksheet:
    for name in wb.sheetnames:
        if fragment in name:
            return wb[name]
    raise TemplateError(f"template has no sheet matching {fragment!r}")


def _template_inputs(raw: bytes) -> tuple[list[Decimal | None], list[Decimal | None]]:
    """Rate / percentage columns of the SOA entry block (cached values)."""
    wb = load_workbook(io.BytesIO(raw), data_only=True)
    try:
        soa = _sheet(wb, SOA_SHEET_FRAGMENT)
        rates: list[Decimal | None] = []
        pcts: list[Decimal | None] = []
        for i in range(CROP_BLOCK_CAPACITY):
            row = SOA_ENTRY_FIRST_ROW + i + 1
            rates.append(parse_number(soa.cell(row=row, column=SOA_RATE_COL + 1).value))
            pcts.append(parse_number(soa.cell(row=row, column=SOA_PCT_COL + 1).value))
        return rates, pcts
    finally:
        wb.close()


def generate_profile(group: LotGroup, sequence: int, template_path: Path) -> GeneratedProfile:
    """Render one lot group into a profile workbook held in memory."""
    try:
        raw = template_path.read_bytes()
    except OSError as e:
        raise TemplateMissing(f"template unreadable: {template_path}: {e}") from e

    wb = load_workbook(io.BytesIO(raw))
    acc = _sheet(wb, ACC_SHEET_FRAGMENT)
    soa = _sheet(wb, SOA_SHEET_FRAGMENT)

    first = group.first_row
    farmer_first = first.farmer_first if first else ""
    farmer_last = first.farmer_last if first else ""
    old_account = first.old_account if first else ""

    acc[LOT_CODE_CELL] = _cell_value(group.lot_code)
    acc[OWNER_FIRST_CELL] = _cell_value(group.land_owner_first)
    acc[OWNER_LAST_CELL] = _cell_value(group.land_owner_last)
    acc[FARMER_FIRST_CELL] = _cell_value(farmer_first)
    acc[FARMER_LAST_CELL] = _cell_value(farmer_last)

    crop_rows = group.rows[:CROP_BLOCK_CAPACITY]
    if len(group.rows) > CROP_BLOCK_CAPACITY:
        logger.warning(
            "lot %s has %d rows; only the first %d fit the template",
            group.lot_code, len(group.rows), CROP_BLOCK_CAPACITY,
        )
    for i, row in enumerate(crop_rows):
        excel_row = CROP_BLOCK_FIRST_ROW + i + 1
        for col, value in zip(CROP_COLUMNS, (row.crop_season, row.crop_year, row.planted_area)):
            acc[f"{col}{excel_row}"] = _cell_value(value)

    soa[SOA_OLD_ACCOUNT_CELL] = _cell_value(old_account)

    rates, pcts = _template_inputs(raw)
    areas = [parse_number(r.planted_area) for r in crop_rows]
    principal = derive_principal(areas, rates)
    penalty = derive_penalty(areas, rates, pcts)
    if principal is not None:
        soa[SOA_PRINCIPAL_CELL] = _cell_value(principal)
    if penalty is not None:
        soa[SOA_PENALTY_CELL] = _cell_value(penalty)
    parts = [principal, penalty, parse_number(old_account)]
    if any(p is not None for p in parts):
        total = sum((p for p in parts if p is not None), Decimal(0))
        soa[SOA_TOTAL_CELL] = _cell_value(total)

    wb.properties.created = FIXED_TIMESTAMP
    wb.properties.modified = FIXED_TIMESTAMP
    buffer = io.BytesIO()
    wb.save(buffer)
    wb.close()

    filename = format_filename(
        sequence,
        group.lot_code,
        group.land_owner_last,
        group.land_owner_first,
        farmer_last,
        farmer_first,
    )
    return GeneratedProfile(filename=filename, content=buffer.getvalue())


def generate_profiles(groups: Sequence[LotGroup], template_path: Path) -> list[GeneratedProfile]:
    """Generate every group; sequence numbers start at 1 in group order."""
    profiles = []
    for sequence, group in enumerate(groups, start=1):
        profile = generate_profile(group, sequence, template_path)
        logger.debug("generated %s", profile.filename)
        profiles.append(profile)
    return profiles


def build_archive(profiles: Iterable[GeneratedProfile]) -> bytes:
    """Bundle profiles into one zip (deflate per entry)."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(
        buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=ARCHIVE_COMPRESSLEVEL
    ) as zf:
        for profile in profiles:
            zf.writestr(profile.filename, profile.content)
    return buffer.getvalue()


def write_profiles(profiles: Iterable[GeneratedProfile], directory: Path) -> list[Path]:
    directory.mkdir(parents=True, exist_ok=True)
    written = []
    for profile in profiles:
        path = directory / profile.filename
        path.write_bytes(profile.content)
        written.append(path)
    return written
