from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from .dealers import DealerResolver
from .digits import to_digits_string

"""Row classifier / extractor.

Report layouts vary per operator and per export, so a row is never read by column
position. Instead an ordered table of named extraction rules scans the cells:

    dealer_code   left-to-right   first cell with a 5 or 6 digit value
    from_barcode  left-to-right   first cell with >= 7 digits
    to_barcode    left-to-right   second cell with >= 7 digits
    quantity      right-to-left   first cell with 1..5 digits
    game_code     left-to-right   first standalone 2..5 letter token
    draw_date     left-to-right   first dd/mm/yyyy token

The order of EXTRACTION_RULES is the tie-break policy. Identifiers sit early in the
report rows and quantities/totals late, which is why quantity is the only rule that
scans from the right.
"""

__all__ = [
    "Cell",
    "Row",
    "ExtractionRule",
    "EXTRACTION_RULES",
    "ClassifiedRow",
    "is_empty_row",
    "contains_total",
    "has_hash_marker",
    "has_placeholder_dealer",
    "extract",
    "classify_row",
]

Cell = Any  # str | int | float | None
Row = Sequence[Cell]

_GAME_TOKEN = re.compile(r"^[A-Za-z]{2,5}$")
_DRAW_DDMMYYYY = re.compile(r"^\d{2}/\d{2}/\d{4}$")
# Whole-cell calendar dates never count as dealer codes / barcodes / quantities
_CALENDAR_DATE = re.compile(r"^(\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2})$")


@dataclass(frozen=True)
class ExtractionRule:
    """One named predicate + extractor pair.

    ``occurrence`` selects the n-th matching cell (1 = first) in scan direction.
    """
    name: str
    matches: Callable[[Cell, str], bool]  # (cell, digit string) -> bool
    extract: Callable[[Cell, str], Any]
    reverse: bool = False
    occurrence: int = 1

    def apply(self, row: Row) -> Any:
        cells = reversed(row) if self.reverse else iter(row)
        seen = 0
        for cell in cells:
            digits = _numeric_digits(cell)
            if self.matches(cell, digits):
                seen += 1
                if seen == self.occurrence:
                    return self.extract(cell, digits)
        return None


def _numeric_digits(cell: Cell) -> str:
    if isinstance(cell, str) and _CALENDAR_DATE.match(cell.strip()):
        return ""
    return to_digits_string(cell)


def _text(cell: Cell) -> str:
    return cell.strip() if isinstance(cell, str) else ""


def _digits(_cell: Cell, digits: str) -> str:
    return digits


EXTRACTION_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule(
        name="dealer_code",
        matches=lambda _c, d: len(d) in (5, 6),
        extract=_digits,
    ),
    ExtractionRule(
        name="from_barcode",
        matches=lambda _c, d: len(d) >= 7,
        extract=_digits,
    ),
    ExtractionRule(
        name="to_barcode",
        matches=lambda _c, d: len(d) >= 7,
        extract=_digits,
        occurrence=2,
    ),
    ExtractionRule(
        name="quantity",
        matches=lambda _c, d: 1 <= len(d) <= 5,
        extract=lambda _c, d: int(d),
        reverse=True,
    ),
    ExtractionRule(
        name="game_code",
        matches=lambda c, _d: bool(_GAME_TOKEN.match(_text(c))),
        extract=lambda c, _d: _text(c).upper(),
    ),
    ExtractionRule(
        name="draw_date",
        matches=lambda c, _d: bool(_DRAW_DDMMYYYY.match(_text(c))),
        extract=lambda c, _d: _text(c),
    ),
)

_RULES_BY_NAME = {r.name: r for r in EXTRACTION_RULES}


@dataclass(frozen=True)
class ClassifiedRow:
    """Typed view of one data row. Barcodes stay raw digit strings (pre-trim)."""
    row_index: int
    dealer_code: str
    from_digits: str
    to_digits: str | None = None
    qty: int | None = None
    game: str | None = None
    draw: str | None = None


def is_empty_row(row: Row) -> bool:
    return all(c is None or str(c).strip() == "" for c in row)


def contains_total(row: Row) -> bool:
    return any(isinstance(c, str) and "TOTAL" in c.upper() for c in row)


def has_hash_marker(row: Row) -> bool:
    return any(isinstance(c, str) and "#" in c for c in row)


def has_placeholder_dealer(row: Row) -> bool:
    """Paper-form convention: an illegible dealer field is written as '?????'."""
    return any(isinstance(c, str) and "?" in c for c in row)


def extract(row: Row, rule_name: str) -> Any:
    """Run a single named rule against ``row`` (None when nothing matches)."""
    return _RULES_BY_NAME[rule_name].apply(row)


def classify_row(row: Row, resolver: DealerResolver, row_index: int = 0) -> ClassifiedRow | None:
    """Classify one grid row; None for header / blank / summary / decorative rows."""
    if is_empty_row(row) or contains_total(row):
        return None

    fields = {rule.name: rule.apply(row) for rule in EXTRACTION_RULES}

    raw_dealer = fields["dealer_code"]
    if raw_dealer is not None:
        dealer = resolver.normalize_dealer_code(raw_dealer)
    elif has_placeholder_dealer(row):
        dealer = resolver.master_code
    else:
        return None

    if not fields["from_barcode"]:
        return None

    return ClassifiedRow(
        row_index=row_index,
        dealer_code=dealer,
        from_digits=fields["from_barcode"],
        to_digits=fields["to_barcode"],
        qty=fields["quantity"],
        game=fields["game_code"],
        draw=fields["draw_date"],
    )
