from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

"""Cell / digit normalization.

Converts heterogeneous spreadsheet cell values into canonical digit strings and
fixed-width barcode text. Nothing in this module raises on bad input: a cell without
digits simply normalizes to "" (or None for numeric helpers) and the caller treats it
as a parse-miss.

Two barcode policies exist side by side because the ERP stock summary and the agent
return report number their tickets differently:

- ERP: drop the first N digits, read the remainder as an integer (leading zeros vanish)
- Returns / V1: drop the first N digits, optionally prepend a 2-digit default prefix
  when the remainder is short, then force exactly 7 digits
"""

__all__ = [
    "BARCODE_WIDTH",
    "TrimPolicy",
    "ERP_POLICY",
    "RETURN_POLICY",
    "to_digits_string",
    "to_number",
    "trim_leading_digits",
    "normalize_barcode_to7",
    "barcode_value",
]

BARCODE_WIDTH = 7

_NON_DIGIT = re.compile(r"[^\d]")
_NON_NUMERIC = re.compile(r"[^\d-]")
_SCIENTIFIC_HINT = re.compile(r"e", re.IGNORECASE)


@dataclass(frozen=True)
class TrimPolicy:
    """Barcode trim policy for one input format.

    Attributes:
        trim_digits: number of leading digits to drop from the scanned value
        prefix: default prefix prepended when the trimmed value is shorter than 7 digits
            (fixed-width policies only; "" disables it)
        fixed_width: True -> normalize to 7-digit text, False -> plain integer after trim
    """
    trim_digits: int = 0
    prefix: str = ""
    fixed_width: bool = True

    def __post_init__(self) -> None:
        # frozen なので object.__setattr__ で正規化
        object.__setattr__(self, "trim_digits", max(0, int(self.trim_digits or 0)))
        object.__setattr__(self, "prefix", _NON_DIGIT.sub("", self.prefix or "")[:2])


ERP_POLICY = TrimPolicy(fixed_width=False)
RETURN_POLICY = TrimPolicy(fixed_width=True)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_digits_string(value: Any) -> str:
    """Convert any cell into a digits-only string.

    - numbers are truncated toward zero first (sign dropped)
    - strings in scientific notation ("3.50801165E8") are parsed as float and truncated
    - everything else keeps only its digits
    """
    if value is None or isinstance(value, bool):
        return ""
    if _is_number(value):
        if not math.isfinite(value):
            return ""
        return str(abs(math.trunc(value)))

    raw = str(value).strip()
    if not raw:
        return ""

    if _SCIENTIFIC_HINT.search(raw):
        try:
            num = float(raw)
        except ValueError:
            num = None
        if num is not None and math.isfinite(num):
            return str(abs(math.trunc(num)))

    return _NON_DIGIT.sub("", raw)


def to_number(value: Any) -> int | None:
    """Loose integer parse used for availability block input ("1,000,050" -> 1000050)."""
    if value is None or isinstance(value, bool):
        return None
    if _is_number(value):
        return math.trunc(value) if math.isfinite(value) else None
    cleaned = _NON_NUMERIC.sub("", str(value))
    if not cleaned:
        return None
    try:
        return int(cleaned)
    except ValueError:
        # "-" のみ / "1-2" 等
        return None


def trim_leading_digits(digits: str, trim_digits: int) -> str:
    """Drop the first ``trim_digits`` digits; "" when nothing would remain."""
    if trim_digits <= 0:
        return digits
    if len(digits) <= trim_digits:
        return ""
    return digits[trim_digits:]


def normalize_barcode_to7(raw: Any, policy: TrimPolicy = RETURN_POLICY) -> str:
    """Return exactly 7 barcode digits, or "" when there is no barcode.

    Accepts a raw cell or an already extracted digit string.
    """
    digits = to_digits_string(raw)
    if not digits:
        return ""

    trimmed = trim_leading_digits(digits, policy.trim_digits)
    if not trimmed:
        return ""

    if policy.prefix and len(trimmed) < BARCODE_WIDTH:
        trimmed = policy.prefix + trimmed

    if len(trimmed) >= BARCODE_WIDTH:
        return trimmed[-BARCODE_WIDTH:]
    return trimmed.zfill(BARCODE_WIDTH)


def barcode_value(raw: Any, policy: TrimPolicy) -> int | None:
    """Integer barcode under ``policy``; None when the cell carries no barcode."""
    if policy.fixed_width:
        text = normalize_barcode_to7(raw, policy)
        return int(text) if text else None

    digits = to_digits_string(raw)
    if not digits:
        return None
    trimmed = trim_leading_digits(digits, policy.trim_digits)
    if not trimmed:
        return None
    return int(trimmed)
