from __future__ import annotations

import io
from collections.abc import Iterable

import pandas as pd

"""Raw spreadsheet reader.

Workbooks arrive as byte buffers (uploads, files read by the CLI). Every sheet
is parsed without a header row and with ``dtype=object`` so that the cell
values keep their original Python types; positional extraction depends on
row/column indexes matching the source exactly.
"""

__all__ = [
    "ParseError",
    "read_excel_bytes",
]


class ParseError(Exception):
    """Raised when a byte buffer cannot be decoded as a spreadsheet container."""


def read_excel_bytes(
    data: bytes, target_sheets: Iterable[str] | None = None
) -> dict[str, pd.DataFrame]:
    """Read a workbook held in memory returning raw DataFrames keyed by sheet name.

    Parameters
    ----------
    data: workbook bytes (.xlsx)
    target_sheets: restrict to these sheet names (None = all sheets)

    Sheet order of the returned dict follows the workbook.
    """
    if not data:
        raise ParseError("empty document")
    try:
        xls = pd.ExcelFile(io.BytesIO(data), engine="openpyxl")
    except Exception as e:
        raise ParseError(f"not a spreadsheet document: {e}") from e

    wanted = set(target_sheets) if target_sheets is not None else None
    dfs: dict[str, pd.DataFrame] = {}
    try:
        for name in xls.sheet_names:
            if wanted is not None and str(name) not in wanted:
                continue
            # NA 変換は行わない: 空セルのみ NaN になる
            df = xls.parse(name, header=None, dtype=object, keep_default_na=False, na_values=[])
            dfs[str(name)] = df
    except Exception as e:
        raise ParseError(f"failed reading sheets: {e}") from e
    finally:
        xls.close()
    return dfs
