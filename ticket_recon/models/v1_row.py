from __future__ import annotations

from dataclasses import dataclass

"""V1 existing row model.

A V1 row describes tickets already reported by an earlier run. It is only ever used as
the subtrahend of the interval exclusion, never emitted.
"""

__all__ = [
    "V1ExistingRow",
]


@dataclass(frozen=True)
class V1ExistingRow:
    """Previously reported range. Either ``end`` (To) or ``qty`` must be present.

    Barcodes stay raw digit strings; they are normalized with the return trim policy.
    """
    dealer_code: str  # 5 or 6 digits, normalized to 6 on use
    start: str  # From barcode, 7+ digits
    end: str | None = None  # To barcode (wins over qty)
    qty: int | None = None
    game: str | None = None  # strict scope only
    draw: str | None = None  # strict scope only
