from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .ticket_range import TicketRange

"""ReconFile domain model and FileStatus enum.

A ReconFile tracks one input report through a run: pending -> processing ->
(success | empty | failed). ``empty`` is informational (nothing left to report),
not an error.
"""

__all__ = [
    "FileStatus",
    "ReconFile",
]


class FileStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass
class ReconFile:
    """Processing context for a single report file."""
    path: Path
    game: str = ""
    draw: str = ""
    status: FileStatus = FileStatus.PENDING
    ranges: list[TicketRange] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    message: str | None = None  # empty / failed の理由

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def qty(self) -> int:
        return sum(r.qty for r in self.ranges)
