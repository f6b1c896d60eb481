from __future__ import annotations

import re
import time
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from openpyxl import Workbook, load_workbook
from openpyxl.utils.cell import range_boundaries

"""Destination write target.

The orchestrator writes into an addressable 2-D range store: A1 ranges (with
an optional sheet prefix) and 2-D value blocks, single or batched. Any store
implementing WriteTarget will do; WorkbookTarget implements it on a local
.xlsx file with openpyxl.

Write errors are funnelled through ``classify_write_error`` into RateLimited
(quota exceeded, retry later) or WriteFailed (anything else).
"""

__all__ = [
    "NOT_FOUND",
    "RangeUpdate",
    "RateLimited",
    "WorkbookTarget",
    "WriteFailed",
    "WriteTarget",
    "WriteTargetError",
    "classify_write_error",
    "find_target_row",
    "range_with_sheet",
    "split_range",
]

NOT_FOUND = -1

_NEEDS_QUOTES = re.compile(r"[\s'\"]")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class WriteTargetError(Exception):
    pass


class RateLimited(WriteTargetError):
    """Destination refused the write because a quota was exceeded (transient)."""


class WriteFailed(WriteTargetError):
    """Any other destination write error."""


@dataclass(frozen=True)
class RangeUpdate:
    range: str
    values: list[list[Any]]


class WriteTarget(Protocol):
    def read_column(self, range_: str) -> list[list[Any]]:
        ...

    def update(self, range_: str, values: list[list[Any]]) -> None:
        ...

    def batch_update(self, updates: Sequence[RangeUpdate]) -> None:
        ...


def range_with_sheet(sheet_name: str | None, range_: str) -> str:
    """Prefix a range with a sheet name, quoting names with spaces or quotes."""
    if not sheet_name or not sheet_name.strip():
        return range_
    if _NEEDS_QUOTES.search(sheet_name):
        escaped = sheet_name.replace("'", "''")
        return f"'{escaped}'!{range_}"
    return f"{sheet_name}!{range_}"


def split_range(range_: str) -> tuple[str | None, str]:
    """Inverse of range_with_sheet: ``"'My Tab'!B2:G2"`` -> ("My Tab", "B2:G2")."""
    if "!" not in range_:
        return None, range_
    sheet, _, cells = range_.rpartition("!")
    if len(sheet) >= 2 and sheet[0] == "'" and sheet[-1] == "'":
        sheet = sheet[1:-1].replace("''", "'")
    return sheet, cells


def _status_of(exc: BaseException) -> int | None:
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    if response is not None:
        for attr in ("status_code", "status"):
            value = getattr(response, attr, None)
            if isinstance(value, int):
                return value
    return None


def classify_write_error(exc: BaseException) -> WriteTargetError:
    """Map an arbitrary write error to RateLimited or WriteFailed."""
    if isinstance(exc, WriteTargetError):
        return exc
    message = str(exc)
    if _status_of(exc) == 429 or "Quota exceeded" in message or "429" in message:
        return RateLimited(message or "rate limited")
    return WriteFailed(message or type(exc).__name__)


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value else None
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def find_target_row(column: Sequence[Sequence[Any]], file_id: str) -> int:
    """1-based row whose first cell equals ``file_id`` numerically ("01" == "1").

    First match wins; NOT_FOUND when nothing matches.
    """
    for index, row in enumerate(column):
        if not row:
            continue
        number = _as_int(row[0])
        if number is not None and str(number) == file_id:
            return index + 1
    return NOT_FOUND


class WorkbookTarget:
    """WriteTarget backed by a local .xlsx file.

    Ranges without a sheet prefix go to ``default_sheet`` (or the active
    sheet). The file is saved after every write call. ``write_quota`` limits
    write calls per ``quota_window`` seconds; exceeding it raises RateLimited
    like a remote API would.
    """

    def __init__(
        self,
        path: Path,
        *,
        default_sheet: str | None = None,
        write_quota: int | None = None,
        quota_window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.path = path
        self.default_sheet = default_sheet
        self.write_quota = write_quota
        self.quota_window = quota_window
        self._clock = clock
        self._writes: deque[float] = deque()
        if path.exists():
            self._wb = load_workbook(path)
        else:
            self._wb = Workbook()
            if default_sheet:
                self._wb.active.title = default_sheet

    def _sheet(self, name: str | None):
        name = name or self.default_sheet
        if name is None:
            return self._wb.active
        if name not in self._wb.sheetnames:
            raise WriteFailed(f"Unable to parse range: sheet {name!r} not found")
        return self._wb[name]

    def _check_quota(self) -> None:
        if self.write_quota is None:
            return
        now = self._clock()
        while self._writes and now - self._writes[0] >= self.quota_window:
            self._writes.popleft()
        if len(self._writes) >= self.write_quota:
            raise RateLimited(
                f"Quota exceeded: {self.write_quota} writes per {self.quota_window:g}s"
            )
        self._writes.append(now)

    def read_column(self, range_: str) -> list[list[Any]]:
        sheet_name, cells = split_range(range_)
        ws = self._sheet(sheet_name)
        min_col, min_row, max_col, max_row = range_boundaries(cells)
        rows = []
        for row in ws.iter_rows(
            min_row=min_row or 1,
            max_row=min(max_row or ws.max_row, ws.max_row),
            min_col=min_col,
            max_col=max_col,
            values_only=True,
        ):
            rows.append(list(row))
        return rows

    def _resolve(self, update: RangeUpdate) -> tuple[Any, int, int]:
        sheet_name, cells = split_range(update.range)
        ws = self._sheet(sheet_name)
        try:
            min_col, min_row, _, _ = range_boundaries(cells)
        except ValueError as e:
            raise WriteFailed(f"Unable to parse range: {update.range}") from e
        return ws, min_row or 1, min_col or 1

    @staticmethod
    def _write(ws: Any, first_row: int, first_col: int, values: list[list[Any]]) -> None:
        for r, row in enumerate(values):
            for c, value in enumerate(row):
                cell = ws.cell(row=first_row + r, column=first_col + c)
                cell.value = None if value == "" else value

    def update(self, range_: str, values: list[list[Any]]) -> None:
        self.batch_update([RangeUpdate(range_, values)])

    def batch_update(self, updates: Sequence[RangeUpdate]) -> None:
        if not updates:
            return
        # 全レンジを先に検証: 途中で失敗しても一部だけ書き込まれない
        resolved = [(self._resolve(u), u.values) for u in updates]
        self._check_quota()
        for (ws, first_row, first_col), values in resolved:
            self._write(ws, first_row, first_col, values)
        try:
            self._wb.save(self.path)
        except OSError as e:
            raise WriteFailed(f"save failed: {e}") from e
