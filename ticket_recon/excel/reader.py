from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

"""Spreadsheet decode.

Reports are read as raw grids: first sheet only, no header row, every cell as object.
Normalization to the engine's Cell type:

- NaN / NaT -> ""
- datetime / date -> "yyyy-mm-dd"
- numpy scalars -> Python int / float
- rows padded with "" to a rectangle
"""

__all__ = [
    "EXCEL_SUFFIXES",
    "SpreadsheetReadError",
    "read_first_sheet",
    "pad_rows",
    "normalize_cell",
]

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xls")


class SpreadsheetReadError(Exception):
    """Raised when a workbook cannot be opened or decoded."""


def _engine_for(path: Path) -> str | None:
    # .xls は xlrd (legacy extra)、それ以外は openpyxl
    if path.suffix.lower() == ".xls":
        return "xlrd"
    return "openpyxl"


def normalize_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (datetime, pd.Timestamp)):
        if pd.isna(value):
            return ""
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return value
    if pd.isna(value):
        return ""
    # numpy scalar -> python
    if hasattr(value, "item"):
        return value.item()
    return value


def pad_rows(rows: Sequence[Sequence[Any]]) -> list[list[Any]]:
    width = max((len(r) for r in rows), default=0)
    return [list(r) + [""] * (width - len(r)) for r in rows]


def read_first_sheet(path: Path) -> tuple[str, list[list[Any]]]:
    """Read the first sheet of ``path`` as (sheet name, rectangular grid)."""
    if not path.exists():
        raise SpreadsheetReadError(f"file not found: {path}")
    try:
        with pd.ExcelFile(path, engine=_engine_for(path)) as xls:
            if not xls.sheet_names:
                raise SpreadsheetReadError(f"workbook has no sheets: {path.name}")
            sheet_name = str(xls.sheet_names[0])
            df = xls.parse(xls.sheet_names[0], header=None, dtype=object)
    except SpreadsheetReadError:
        raise
    except Exception as e:
        raise SpreadsheetReadError(f"cannot read {path.name}: {e}") from e

    rows = [[normalize_cell(v) for v in raw] for raw in df.itertuples(index=False, name=None)]
    return sheet_name, pad_rows(rows)
