from __future__ import annotations

from ticket_recon.core.segments import (
    apply_segments,
    build_breaking_segments,
    merge_segments,
    segments_from_blocks,
    validate_availability_blocks,
    validate_breaking,
)
from ticket_recon.models.ticket_range import AvailabilityBlock, BreakingSegment, TicketRange


def _rng(start: int, end: int) -> TicketRange:
    return TicketRange("100100", "SFT", "2025-12-02", start, end)


def test_merge_segments_joins_overlapping_and_adjacent():
    merged = merge_segments(
        [BreakingSegment(30, 40), BreakingSegment(1, 10), BreakingSegment(11, 15), BreakingSegment(35, 50)]
    )
    assert merged == [BreakingSegment(1, 15), BreakingSegment(30, 50)]


def test_apply_segments_empty_passes_through():
    r = _rng(100, 199)
    assert apply_segments(r, []) == [r]


def test_apply_segments_splits_and_discards():
    r = _rng(100, 199)
    pieces = apply_segments(r, [BreakingSegment(150, 160), BreakingSegment(90, 120)])
    assert [(p.start, p.end, p.qty) for p in pieces] == [(100, 120, 21), (150, 160, 11)]
    assert apply_segments(r, [BreakingSegment(500, 600)]) == []


def test_segmentation_conservation():
    r = _rng(1000, 1999)
    segments = [BreakingSegment(900, 1100), BreakingSegment(1500, 1549), BreakingSegment(1540, 1600)]
    pieces = apply_segments(r, segments)

    merged = merge_segments(segments)
    expected = sum(max(0, min(r.end, s.end) - max(r.start, s.start) + 1) for s in merged)
    assert sum(p.qty for p in pieces) == expected
    assert all(r.start <= p.start <= p.end <= r.end for p in pieces)
    assert all(a.end < b.start for a, b in zip(pieces, pieces[1:]))


def test_build_breaking_segments():
    assert build_breaking_segments(1000, [50, 0, -3, 40]) == [
        BreakingSegment(1000, 1049),
        BreakingSegment(1050, 1089),
    ]
    assert build_breaking_segments(None, [10]) == []


def test_segments_from_blocks_ignores_invalid():
    blocks = [
        AvailabilityBlock("1,000,100", "1000149"),
        AvailabilityBlock("1000150", "1000199"),
        AvailabilityBlock("1000300", ""),
        AvailabilityBlock("1000500", "1000400"),
    ]
    assert segments_from_blocks(blocks) == [BreakingSegment(1000100, 1000199)]


def test_validate_availability_blocks_messages():
    assert validate_availability_blocks([AvailabilityBlock("", ""), AvailabilityBlock("1", "2")]) is None
    assert "incomplete" in validate_availability_blocks([AvailabilityBlock("1000100", "")])
    assert "must be numeric" in validate_availability_blocks([AvailabilityBlock("abc", "def")])
    assert "FROM greater than TO" in validate_availability_blocks([AvailabilityBlock("20", "10")])


def test_validate_breaking():
    assert validate_breaking(1000100, [50, 50], 1000199) is None
    assert validate_breaking(1000100, [50, 50], None) is None
    assert validate_breaking(None, [50], 1000149) == "Breaking FROM barcode is missing."
    assert validate_breaking(1000100, [50, 0], 1000149) == "Breaking sizes must be positive."
    msg = validate_breaking(1000100, [50, 40], 1000199)
    assert msg is not None and "does not add up" in msg and "1000189" in msg
