from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

"""Spreadsheet encode.

Writes named sheets of records with pandas + openpyxl. A sheet may carry a metadata
block (label / value pairs) above its table; the table then starts after one blank row.
"""

__all__ = [
    "MAX_SHEET_NAME",
    "SheetSpec",
    "sanitize_sheet_name",
    "make_unique_sheet_name",
    "write_workbook",
]

MAX_SHEET_NAME = 31

_INVALID_SHEET_CHARS = re.compile(r"[\\/?*\[\]:]")


@dataclass
class SheetSpec:
    name: str
    records: list[dict[str, Any]]
    columns: Sequence[str] | None = None  # 空シートでもヘッダを出す
    meta: list[tuple[str, Any]] = field(default_factory=list)


def sanitize_sheet_name(name: str) -> str:
    cleaned = _INVALID_SHEET_CHARS.sub(" ", name or "").strip()
    return cleaned[:MAX_SHEET_NAME] or "Sheet"


def make_unique_sheet_name(base: str, used: set[str]) -> str:
    """Sanitized name, suffixed _2, _3, ... (still <= 31 chars) on collision."""
    initial = sanitize_sheet_name(base)
    if initial not in used:
        used.add(initial)
        return initial
    i = 2
    while True:
        suffix = f"_{i}"
        candidate = initial[: MAX_SHEET_NAME - len(suffix)] + suffix
        if candidate not in used:
            used.add(candidate)
            return candidate
        i += 1


def write_workbook(path: Path, sheets: Sequence[SheetSpec]) -> Path:
    """Write every sheet to ``path`` (parent directories are created)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    used: set[str] = set()
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet in sheets:
            sheet_name = make_unique_sheet_name(sheet.name, used)
            start_row = 0
            if sheet.meta:
                meta_df = pd.DataFrame(sheet.meta)
                meta_df.to_excel(writer, sheet_name=sheet_name, header=False, index=False)
                start_row = len(sheet.meta) + 1
            df = pd.DataFrame(sheet.records, columns=list(sheet.columns) if sheet.columns else None)
            df.to_excel(writer, sheet_name=sheet_name, index=False, startrow=start_row)
    return path
