from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from ..models.ticket_range import TicketRange
from ..models.v1_row import V1ExistingRow
from .classifier import Row, classify_row, extract, is_empty_row
from .dealers import DealerResolver, pad_dealer_code
from .digits import RETURN_POLICY, TrimPolicy, barcode_value

"""Interval exclusion engine (V1 subtraction) and return-report parsing.

Return reports list one row per returned book: dealer, From barcode and a trailing
quantity. Tickets already reported in a previous ("V1") run are subtracted per dealer,
or per dealer+game+draw in strict scope, so nothing is reported twice. A partially
covered range is split into its uncovered remainders.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "NumRange",
    "subtract_ranges",
    "exclusion_key",
    "build_exclusion_index",
    "exclude_v1",
    "normalize_v1_rows",
    "parse_v1_sheet",
    "parse_return_rows",
    "build_return_rows",
]

NumRange = tuple[int, int]  # inclusive (from, to)


def _overlaps(a: NumRange, b: NumRange) -> bool:
    return not (b[1] < a[0] or b[0] > a[1])


def subtract_ranges(base: NumRange, excludes: Iterable[NumRange]) -> list[NumRange]:
    """Remaining pieces of ``base`` after removing every exclude interval."""
    hits = sorted((e for e in excludes if _overlaps(base, e)), key=lambda e: e[0])
    remaining: list[NumRange] = [base]

    for ex in hits:
        nxt: list[NumRange] = []
        for seg in remaining:
            if not _overlaps(seg, ex):
                nxt.append(seg)
                continue
            if ex[0] > seg[0]:
                nxt.append((seg[0], ex[0] - 1))
            if ex[1] < seg[1]:
                nxt.append((ex[1] + 1, seg[1]))
        remaining = nxt
        if not remaining:
            break

    return remaining


def exclusion_key(dealer_code: str, game: str | None, draw: str | None, strict_scope: bool) -> str:
    dealer6 = pad_dealer_code(dealer_code)
    if not strict_scope:
        return dealer6
    return f"{dealer6}__{(game or '').strip()}__{(draw or '').strip()}"


def build_exclusion_index(v1: Iterable[TicketRange], strict_scope: bool) -> dict[str, list[NumRange]]:
    index: dict[str, list[NumRange]] = {}
    for r in v1:
        lo, hi = min(r.start, r.end), max(r.start, r.end)
        key = exclusion_key(r.dealer_code, r.game, r.draw, strict_scope)
        index.setdefault(key, []).append((lo, hi))
    for ranges in index.values():
        ranges.sort()
    return index


def exclude_v1(
    ranges: Iterable[TicketRange],
    v1: Iterable[TicketRange],
    strict_scope: bool = False,
) -> list[TicketRange]:
    """Subtract the V1 ranges from ``ranges``; fully covered ranges disappear."""
    index = build_exclusion_index(v1, strict_scope)
    if not index:
        return list(ranges)

    out: list[TicketRange] = []
    for rng in ranges:
        excludes = index.get(exclusion_key(rng.dealer_code, rng.game, rng.draw, strict_scope), [])
        for lo, hi in subtract_ranges((rng.start, rng.end), excludes):
            out.append(rng.with_bounds(lo, hi))
    return out


def normalize_v1_rows(
    rows: Iterable[V1ExistingRow],
    policy: TrimPolicy = RETURN_POLICY,
    resolver: DealerResolver | None = None,
) -> list[TicketRange]:
    """V1 rows -> ranges. To wins over Qty; rows with neither are dropped."""
    out: list[TicketRange] = []
    for r in rows:
        dealer = resolver.normalize_dealer_code(r.dealer_code) if resolver else pad_dealer_code(r.dealer_code)
        start = barcode_value(r.start, policy)
        if not dealer or start is None:
            continue

        end: int | None = None
        if r.end:
            end = barcode_value(r.end, policy)
        elif r.qty is not None and r.qty > 0:
            end = start + r.qty - 1
        if end is None:
            continue

        lo, hi = min(start, end), max(start, end)
        out.append(TicketRange(dealer, r.game or "", r.draw or "", lo, hi))
    return out


def parse_v1_sheet(grid: Sequence[Row]) -> list[V1ExistingRow]:
    """Permissive V1 reader.

    Accepts DealerCode | [Game | Draw |] From | To-or-Qty layouts in any column order:
    dealer = first 5/6 digit value, From/To = first/second 7+ digit values,
    Qty = last small number, Game = first letter token, Draw = first dd/mm/yyyy.
    """
    out: list[V1ExistingRow] = []
    for row in grid:
        if is_empty_row(row):
            continue
        dealer = extract(row, "dealer_code")
        start = extract(row, "from_barcode")
        if not dealer or not start:
            continue
        end = extract(row, "to_barcode")
        out.append(
            V1ExistingRow(
                dealer_code=dealer,
                start=start,
                end=end,
                qty=None if end else extract(row, "quantity"),
                game=extract(row, "game_code"),
                draw=extract(row, "draw_date"),
            )
        )
    return out


def parse_return_rows(
    grid: Sequence[Row],
    resolver: DealerResolver,
    game: str,
    draw: str,
    policy: TrimPolicy = RETURN_POLICY,
) -> list[TicketRange]:
    """Dealer + From + trailing Qty rows of an agent return report."""
    out: list[TicketRange] = []
    for idx, row in enumerate(grid):
        classified = classify_row(row, resolver, row_index=idx)
        if classified is None or not classified.qty:
            continue
        start = barcode_value(classified.from_digits, policy)
        if start is None:
            continue
        out.append(
            TicketRange(
                dealer_code=classified.dealer_code,
                game=game,
                draw=draw,
                start=start,
                end=start + classified.qty - 1,
                position=float(idx),
            )
        )
    return out


def build_return_rows(
    grid: Sequence[Row],
    resolver: DealerResolver,
    game: str,
    draw: str,
    policy: TrimPolicy = RETURN_POLICY,
    v1: Sequence[TicketRange] = (),
    strict_scope: bool = False,
) -> list[TicketRange]:
    parsed = parse_return_rows(grid, resolver, game, draw, policy)
    if not v1:
        return parsed
    remaining = exclude_v1(parsed, v1, strict_scope)
    logger.debug(
        f"v1 exclusion: {len(parsed)} parsed -> {len(remaining)} remaining "
        f"(qty {sum(r.qty for r in parsed)} -> {sum(r.qty for r in remaining)})"
    )
    return remaining
