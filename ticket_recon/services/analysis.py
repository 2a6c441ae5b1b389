from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from pathlib import Path

from ..config.loader import ReconConfig
from ..core.game_map import ERP_GAME_MAP, day_from_date
from ..core.return_analysis import (
    AgentQty,
    TypeResult,
    allowed_lottery_types,
    analyse,
    infer_lottery_type,
    parse_returns,
    parse_sales,
    type_result_sheet,
)
from ..excel.reader import SpreadsheetReadError, read_first_sheet
from ..excel.writer import SheetSpec, write_workbook
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.processing_result import FileStat, ProcessingResult
from ..models.recon_file import FileStatus
from .orchestrator import ProcessingError, finalize_result, scan_excel_files
from .progress import ProgressTracker

"""Sales vs returns analysis run (mode: analysis).

Sales and return summaries are classified by lottery type from their file names (only
the business date's weekday codes are allowed), parsed, merged per agent and written as
one sheet per lottery type.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ANALYSIS_COLUMNS",
    "run_analysis",
]

ANALYSIS_COLUMNS = (
    "Rank", "AgentCode", "AgentName", "LotteryType", "SalesQty", "ReturnQty", "ActualSales", "ReturnPct",
)


def _collect(
    kind: str,
    directory: str | None,
    allowed: list[str],
    error_log: ErrorLogBuffer,
    stats: list[FileStat],
    progress: ProgressTracker,
) -> dict[str, list[AgentQty]]:
    by_type: dict[str, list[AgentQty]] = {}
    if not directory:
        return by_type
    parser = parse_sales if kind == "sales" else parse_returns

    for path in scan_excel_files(Path(directory)):
        progress.start_file(path)
        file_start = datetime.now(UTC)
        lottery_type = infer_lottery_type(path.name, allowed)
        rows: list[AgentQty] = []
        status, message = FileStatus.SUCCESS, None

        if lottery_type is None:
            message = f"no valid lottery type in file name (allowed: {', '.join(allowed)})"
            logger.error(f"{kind}: {path.name}: {message}")
            error_log.append(ErrorRecord.create(path.name, "", -1, "LOTTERY_TYPE_UNKNOWN", message))
            status = FileStatus.FAILED
        else:
            try:
                sheet_name, grid = read_first_sheet(path)
                rows = parser(grid)
            except SpreadsheetReadError as e:
                logger.error(f"{kind}: {path.name}: {e}")
                error_log.append(ErrorRecord.create(path.name, "", -1, "READ_ERROR", str(e)))
                status, message = FileStatus.FAILED, str(e)
            else:
                by_type.setdefault(lottery_type, []).extend(rows)
                if not rows:
                    status, message = FileStatus.EMPTY, f"no {kind} rows found in {sheet_name}"
                    logger.info(f"{kind}: {path.name}: {message}")
                else:
                    logger.info(f"{kind}: {path.name}: {lottery_type} {len(rows)} agent rows")

        stats.append(
            FileStat(
                file_name=path.name,
                status=status.value,
                rows=len(rows),
                qty=int(sum(r.qty for r in rows)),
                elapsed_seconds=(datetime.now(UTC) - file_start).total_seconds(),
                message=message,
            )
        )
        progress.finish_file()
    return by_type


def _count_files(directory: str | None) -> int:
    if not directory:
        return 0
    return len(scan_excel_files(Path(directory)))


def run_analysis(config: ReconConfig) -> tuple[ProcessingResult, list[TypeResult]]:
    """Analyse the configured sales / return directories.

    Raises:
        ProcessingError: no sales directory configured, or a directory problem
    """
    if not config.analysis.sales_directory:
        raise ProcessingError("analysis.sales_directory is required in analysis mode")

    start_time = datetime.now(UTC)
    business_date = config.business_date or date.today().isoformat()
    day = day_from_date(business_date)
    allowed = allowed_lottery_types(day, config.game_code_table or ERP_GAME_MAP)
    if not allowed:
        raise ProcessingError(f"no lottery types configured for {day}")

    error_log = ErrorLogBuffer()
    stats: list[FileStat] = []
    total = _count_files(config.analysis.sales_directory) + _count_files(config.analysis.returns_directory)

    with ProgressTracker(total, description="Analysing files") as progress:
        sales = _collect("sales", config.analysis.sales_directory, allowed, error_log, stats, progress)
        returns = _collect("returns", config.analysis.returns_directory, allowed, error_log, stats, progress)

    written = error_log.flush()
    if written is not None:
        logger.info(f"error log written: {written}")

    results = analyse(sales, returns, top_n=config.analysis.top_n)
    for r in results:
        logger.info(
            f"{r.lottery_type}: agents={r.unique_agents} sales={r.total_sales_qty:g} "
            f"returns={r.total_return_qty:g} return_pct={r.overall_return_pct:.2f}"
        )

    output_path = None
    if results:
        sheets = []
        for r in results:
            meta, records = type_result_sheet(r, business_date, day)
            sheets.append(SheetSpec(name=r.lottery_type, records=records, columns=ANALYSIS_COLUMNS, meta=meta))
        output_path = write_workbook(Path(config.output_directory) / f"return-analysis-{business_date}.xlsx", sheets)
        logger.info(f"output written: {output_path}")
    else:
        logger.info("no valid results. Check that the sales files contain the expected summary layout.")

    return finalize_result(start_time, stats, output_path=output_path), results
