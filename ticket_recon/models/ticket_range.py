from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

"""Ticket range domain models.

TicketRange is the internal record every stage of the reconciliation engine passes
around; the export shape (StructuredRow) is derived from it by dropping ``end``.
"""

__all__ = [
    "TicketRange",
    "BreakingSegment",
    "AvailabilityBlock",
    "ERP_COLUMNS",
    "RETURN_COLUMNS",
]

ERP_COLUMNS = ("DealerCode", "Game", "Draw", "From", "Qty")
RETURN_COLUMNS = ("DealerCode", "Game", "Draw", "Qty", "From")


@dataclass(frozen=True)
class TicketRange:
    """Inclusive barcode range [start, end] attributed to one dealer.

    ``position`` orders the output (original row index, fractional for gap ranges)
    and is not part of equality.
    """
    dealer_code: str  # 6 digits, alias already resolved
    game: str
    draw: str
    start: int
    end: int
    position: float = field(default=0.0, compare=False)

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"invalid range: start {self.start} > end {self.end}")

    @property
    def qty(self) -> int:
        return self.end - self.start + 1

    def with_bounds(self, start: int, end: int) -> TicketRange:
        return replace(self, start=start, end=end)

    def to_record(self, columns: tuple[str, ...] = ERP_COLUMNS, from_width: int | None = None) -> dict[str, Any]:
        """Export view (no ``To``). ``from_width`` renders From as zero-padded text."""
        from_value: Any = str(self.start).zfill(from_width) if from_width else self.start
        values = {
            "DealerCode": self.dealer_code,
            "Game": self.game,
            "Draw": self.draw,
            "From": from_value,
            "Qty": self.qty,
        }
        return {c: values[c] for c in columns}


@dataclass(frozen=True, order=True)
class BreakingSegment:
    """Inclusive [start, end] stretch of barcodes considered available."""
    start: int
    end: int


@dataclass(frozen=True)
class AvailabilityBlock:
    """Raw FROM/TO pair as typed by the operator (validated before use)."""
    from_text: str = ""
    to_text: str = ""
