from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from ..models.ticket_range import BreakingSegment, TicketRange
from .classifier import Row, classify_row, extract, has_hash_marker
from .dealers import DealerResolver
from .digits import ERP_POLICY, TrimPolicy, barcode_value
from .segments import apply_segments

"""Range builder for ERP stock summaries.

Every dealer row (dealer code + From + To barcodes) becomes one TicketRange. Rows
marked with ``#`` flag the start of an unassigned stretch: the tickets between the
latest dealer range above the marker and the marker's own From barcode belong to
nobody in the report and are attributed to the master (house) dealer.

Malformed rows are skipped, never raised: one bad hand-maintained row must not abort
a whole-file import.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "GAME_MARKER",
    "DRAW_MARKER",
    "GAP_POSITION_OFFSET",
    "detect_game_name",
    "detect_draw_date",
    "build_ranges",
    "build_structured_rows",
]

GAME_MARKER = "ITEM :"
DRAW_MARKER = "DRAW DATE"
# gap range sorts just before its '#' row, i.e. after the dealer rows above it
GAP_POSITION_OFFSET = 0.1

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


@dataclass(frozen=True)
class _DealerAnchor:
    row_index: int
    end: int


def detect_game_name(grid: Sequence[Row]) -> str:
    """Text after the first 'ITEM :' marker, or ""."""
    for row in grid:
        for cell in row:
            if isinstance(cell, str) and GAME_MARKER in cell:
                return cell.replace(GAME_MARKER, "", 1).strip()
    return ""


def detect_draw_date(grid: Sequence[Row]) -> str:
    """yyyy-mm-dd from the first 'DRAW DATE' cell carrying one, or ""."""
    for row in grid:
        for cell in row:
            if isinstance(cell, str) and DRAW_MARKER in cell:
                m = _ISO_DATE.search(cell)
                if m:
                    return m.group(0)
    return ""


def build_ranges(
    grid: Sequence[Row],
    resolver: DealerResolver,
    game_override: str | None = None,
    draw_override: str | None = None,
    gap_fill: bool = True,
    policy: TrimPolicy = ERP_POLICY,
) -> list[TicketRange]:
    """Dealer ranges plus master-dealer gap ranges, ordered by source row."""
    game = (game_override or "").strip() or detect_game_name(grid)
    draw = (draw_override or "").strip() or detect_draw_date(grid)

    out: list[TicketRange] = []
    anchors: list[_DealerAnchor] = []
    skipped = 0

    for idx, row in enumerate(grid):
        classified = classify_row(row, resolver, row_index=idx)
        if classified is None or not classified.to_digits:
            continue
        start = barcode_value(classified.from_digits, policy)
        end = barcode_value(classified.to_digits, policy)
        if start is None or end is None or end < start:
            skipped += 1
            continue
        anchors.append(_DealerAnchor(row_index=idx, end=end))
        out.append(
            TicketRange(
                dealer_code=classified.dealer_code,
                game=game,
                draw=draw,
                start=start,
                end=end,
                position=float(idx),
            )
        )

    if gap_fill:
        out.extend(_gap_ranges(grid, anchors, resolver.master_code, game, draw, policy))

    if skipped:
        logger.debug(f"skipped {skipped} dealer rows with unusable barcodes")

    out.sort(key=lambda r: r.position)
    return out


def _gap_ranges(
    grid: Sequence[Row],
    anchors: list[_DealerAnchor],
    master_code: str,
    game: str,
    draw: str,
    policy: TrimPolicy,
) -> list[TicketRange]:
    gaps: list[TicketRange] = []
    for idx, row in enumerate(grid):
        if not has_hash_marker(row):
            continue
        next_start = barcode_value(extract(row, "from_barcode"), policy)
        if next_start is None:
            continue

        # latest dealer row strictly above the marker wins
        prev = max((a for a in anchors if a.row_index < idx), key=lambda a: a.row_index, default=None)
        if prev is None:
            continue

        gap_from, gap_to = prev.end + 1, next_start - 1
        if gap_to < gap_from:
            continue

        logger.debug(f"gap detected -> master {master_code} : {gap_from} -> {gap_to} (qty={gap_to - gap_from + 1})")
        gaps.append(
            TicketRange(
                dealer_code=master_code,
                game=game,
                draw=draw,
                start=gap_from,
                end=gap_to,
                position=idx - GAP_POSITION_OFFSET,
            )
        )
    return gaps


def build_structured_rows(
    grid: Sequence[Row],
    resolver: DealerResolver,
    segments: Sequence[BreakingSegment] = (),
    game_override: str | None = None,
    draw_override: str | None = None,
    gap_fill: bool = True,
    policy: TrimPolicy = ERP_POLICY,
) -> list[TicketRange]:
    """build_ranges + availability filtering, order preserved."""
    ranges = build_ranges(
        grid,
        resolver,
        game_override=game_override,
        draw_override=draw_override,
        gap_fill=gap_fill,
        policy=policy,
    )
    out: list[TicketRange] = []
    for rng in ranges:
        out.extend(apply_segments(rng, segments))
    return out
