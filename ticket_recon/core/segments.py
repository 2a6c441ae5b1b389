from __future__ import annotations

from collections.abc import Iterable, Sequence

from ..models.ticket_range import AvailabilityBlock, BreakingSegment, TicketRange
from .digits import to_number

"""Availability / breaking segmenter.

Segments describe the barcodes currently confirmed as available stock for a file.
Filtering is opt-in: with no segments every range passes unchanged; with segments a
range keeps only the parts that fall inside them and vanishes when none intersect.
"""

__all__ = [
    "merge_segments",
    "apply_segments",
    "build_breaking_segments",
    "segments_from_blocks",
    "validate_availability_blocks",
    "validate_breaking",
]


def merge_segments(segments: Iterable[BreakingSegment]) -> list[BreakingSegment]:
    """Sort by start and merge overlapping or adjacent segments."""
    ordered = sorted(segments, key=lambda s: (s.start, s.end))
    merged: list[BreakingSegment] = []
    for seg in ordered:
        if merged and seg.start <= merged[-1].end + 1:
            last = merged[-1]
            merged[-1] = BreakingSegment(last.start, max(last.end, seg.end))
        else:
            merged.append(seg)
    return merged


def apply_segments(rng: TicketRange, segments: Sequence[BreakingSegment]) -> list[TicketRange]:
    """Intersect ``rng`` with the (merged) segments; 0, 1 or many ranges come back."""
    if not segments:
        return [rng]

    out: list[TicketRange] = []
    for seg in merge_segments(segments):
        start = max(rng.start, seg.start)
        end = min(rng.end, seg.end)
        if start <= end:
            out.append(rng.with_bounds(start, end))
    return out


def build_breaking_segments(start: int | None, sizes: Iterable[int]) -> list[BreakingSegment]:
    """Consecutive segments of the given sizes starting at ``start``.

    Non-positive sizes are skipped and do not advance the cursor.
    """
    if start is None:
        return []
    segments: list[BreakingSegment] = []
    cursor = start
    for size in sizes:
        if size > 0:
            end = cursor + size - 1
            segments.append(BreakingSegment(cursor, end))
            cursor = end + 1
    return segments


def segments_from_blocks(blocks: Iterable[AvailabilityBlock]) -> list[BreakingSegment]:
    """Merged segments from operator blocks; incomplete or inverted blocks are ignored."""
    raw: list[BreakingSegment] = []
    for b in blocks:
        start, end = to_number(b.from_text), to_number(b.to_text)
        if start is not None and end is not None and start <= end:
            raw.append(BreakingSegment(start, end))
    return merge_segments(raw)


def validate_availability_blocks(blocks: Iterable[AvailabilityBlock]) -> str | None:
    """First problem found in the operator's blocks, as a readable warning."""
    for b in blocks:
        from_text, to_text = str(b.from_text or "").strip(), str(b.to_text or "").strip()
        has_from, has_to = bool(from_text), bool(to_text)

        if has_from != has_to:
            return (
                f'Block with FROM "{from_text}" and TO "{to_text}" is incomplete. '
                "Both are required or leave both empty."
            )
        if not has_from:
            continue

        start, end = to_number(from_text), to_number(to_text)
        if start is None or end is None:
            return f'Block "{from_text}–{to_text}" must be numeric barcodes.'
        if start > end:
            return f'Block "{from_text}–{to_text}" has FROM greater than TO.'
    return None


def validate_breaking(start: int | None, sizes: Sequence[int], declared_to: int | None) -> str | None:
    """Check FROM + sum(breaks) - 1 == TO for a breaking declaration."""
    if start is None:
        return "Breaking FROM barcode is missing."
    if any(s <= 0 for s in sizes):
        return "Breaking sizes must be positive."
    if declared_to is None:
        return None
    computed_to = start + sum(sizes) - 1
    if computed_to != declared_to:
        return (
            f"Breaking does not add up: FROM {start} + {sum(sizes)} tickets - 1 = "
            f"{computed_to}, but TO is {declared_to}."
        )
    return None
