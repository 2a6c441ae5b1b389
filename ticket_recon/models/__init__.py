"""Domain models for the ticket-range reconciliation tool.

Ranges and segments flow through the reconciliation engine; the remaining models carry
per-file outcomes and structured error records for logging and the SUMMARY line.
"""

from .error_record import ErrorRecord
from .game import GameDef
from .processing_result import FileStat, ProcessingResult
from .recon_file import FileStatus, ReconFile
from .ticket_range import (
    ERP_COLUMNS,
    RETURN_COLUMNS,
    AvailabilityBlock,
    BreakingSegment,
    TicketRange,
)
from .v1_row import V1ExistingRow

__all__ = [
    # Range models
    "TicketRange",
    "BreakingSegment",
    "AvailabilityBlock",
    "V1ExistingRow",
    "ERP_COLUMNS",
    "RETURN_COLUMNS",
    # Master data
    "GameDef",
    # Processing models
    "FileStatus",
    "ReconFile",
    "FileStat",
    "ProcessingResult",
    "ErrorRecord",
]
