from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

"""Processing result models.

FileStat is the per-file outcome of one reconciliation run; ProcessingResult aggregates
them into the numbers printed on the SUMMARY line.
"""

__all__ = [
    "FileStat",
    "ProcessingResult",
]


@dataclass(frozen=True)
class FileStat:
    """Per-file processing statistics."""
    file_name: str
    status: str  # success / empty / failed
    rows: int  # 出力レコード数
    qty: int  # 出力チケット数
    elapsed_seconds: float
    warnings: tuple[str, ...] = ()
    message: str | None = None  # empty / failed の理由


@dataclass(frozen=True)
class ProcessingResult:
    """Aggregated results of one run (SUMMARY line source)."""
    success_files: int
    empty_files: int
    failed_files: int
    total_rows: int
    total_qty: int
    warnings: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float
    file_stats: list[FileStat] = field(default_factory=list)
    output_path: str | None = None
    export_blocked: bool = False

    @property
    def total_files(self) -> int:
        return self.success_files + self.empty_files + self.failed_files

    @property
    def exit_code(self) -> int:
        """0 when every file succeeded or was empty, 2 otherwise."""
        if self.failed_files > 0 or self.export_blocked:
            return 2
        return 0
