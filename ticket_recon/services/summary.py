from __future__ import annotations

from ..models.processing_result import ProcessingResult

"""SUMMARY line rendering.

Format::

    SUMMARY files={n}/{n} success={s} empty={e} failed={f} rows={rows} qty={qty}
            warnings={w} elapsed_sec={x} throughput_rps={y}

(one line; wrapped here for readability)
"""

__all__ = [
    "format_number",
    "render_summary_line",
]


def format_number(value: float) -> str:
    """Integers without a decimal point, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: ProcessingResult) -> str:
    """
    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2025, 12, 2, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2025, 12, 2, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = ProcessingResult(
        ...     success_files=1, empty_files=0, failed_files=0, total_rows=12, total_qty=600,
        ...     warnings=0, start_time=start, end_time=end,
        ...     elapsed_seconds=2.0, throughput_rows_per_sec=6.0,
        ... )
        >>> render_summary_line(result)
        'SUMMARY files=1/1 success=1 empty=0 failed=0 rows=12 qty=600 warnings=0 elapsed_sec=2 throughput_rps=6'
    """
    total = result.total_files
    return (
        f"SUMMARY files={total}/{total} "
        f"success={result.success_files} "
        f"empty={result.empty_files} "
        f"failed={result.failed_files} "
        f"rows={result.total_rows} "
        f"qty={result.total_qty} "
        f"warnings={result.warnings} "
        f"elapsed_sec={format_number(result.elapsed_seconds)} "
        f"throughput_rps={format_number(result.throughput_rows_per_sec)}"
    )
