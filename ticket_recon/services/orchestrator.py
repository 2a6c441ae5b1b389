from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

import psycopg2

from ..config.loader import FileOverride, ReconConfig
from ..core.dealers import DealerConfig, DealerResolver
from ..core.digits import to_number
from ..core.exclusion import build_return_rows, normalize_v1_rows, parse_return_rows, parse_v1_sheet
from ..core.game_map import ERP_GAME_MAP, CodeTable, suggest_game
from ..core.ranges import build_structured_rows, detect_draw_date, detect_game_name
from ..core.segments import (
    build_breaking_segments,
    merge_segments,
    segments_from_blocks,
    validate_availability_blocks,
    validate_breaking,
)
from ..excel.reader import EXCEL_SUFFIXES, SpreadsheetReadError, read_first_sheet
from ..excel.writer import SheetSpec, write_workbook
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.game import GameDef
from ..models.processing_result import FileStat, ProcessingResult
from ..models.recon_file import FileStatus, ReconFile
from ..models.ticket_range import ERP_COLUMNS, RETURN_COLUMNS, BreakingSegment, TicketRange
from ..stores.uploads import StoreError, UploadHistoryStore
from .progress import ProgressTracker

"""Service orchestration for ERP / returns reconciliation runs.

process_all():
1. scan the source directory for report files (non-recursive, sorted)
2. per file: read the first sheet, resolve game / draw, build ranges
   (ERP: gap fill + availability segments, returns: V1 exclusion)
3. isolate failures per file (ErrorRecord + failed status, next file continues)
4. write one output workbook unless a validation warning blocks the export
5. return the aggregated ProcessingResult (SUMMARY line source)
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ProcessingError",
    "scan_excel_files",
    "resolve_game",
    "file_segments",
    "load_v1_ranges",
    "process_file",
    "process_all",
    "finalize_result",
]

OUTPUT_SHEETS = {"erp": "Structured", "returns": "Returns"}
RETURN_FROM_WIDTH = 7
ARCHIVE_SAVEPOINT = "archive_file"


class ProcessingError(Exception):
    """Fatal errors that prevent the whole run (bad directory, unreadable V1 file)."""


def scan_excel_files(directory: Path) -> list[Path]:
    """Report files in ``directory`` (non-recursive, sorted, Excel lock files skipped)."""
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")
    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")
    try:
        return sorted(
            p
            for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() in EXCEL_SUFFIXES and not p.name.startswith("~$")
        )
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e


def _business_date(config: ReconConfig) -> str:
    return config.business_date or date.today().isoformat()


def resolve_game(
    file_name: str,
    override: FileOverride,
    business_date: str,
    games: Sequence[GameDef] = (),
    table: CodeTable = ERP_GAME_MAP,
) -> str | None:
    """Explicit override > auto-mapped official game > None (report marker decides)."""
    if override.game:
        return override.game

    suggestion = suggest_game(file_name, business_date, table)
    if not suggestion.resolved or suggestion.status != "ok":
        logger.info(f"{file_name}: {suggestion.note}")
        return None

    logger.debug(f"{file_name}: {suggestion.note}")
    for game in games:
        if (game.short_code or "").upper() == suggestion.official:
            return game.name
    return suggestion.official


def file_segments(override: FileOverride) -> tuple[list[BreakingSegment], list[str]]:
    """Availability segments for one file plus validation warnings."""
    warnings: list[str] = []
    segments: list[BreakingSegment] = []

    if override.blocks:
        msg = validate_availability_blocks(override.blocks)
        if msg:
            warnings.append(msg)
        segments.extend(segments_from_blocks(override.blocks))

    if override.has_breaking:
        start = to_number(override.breaking_from)
        declared_to = to_number(override.breaking_to)
        msg = validate_breaking(start, override.breaking_sizes, declared_to)
        if msg:
            warnings.append(msg)
        segments.extend(build_breaking_segments(start, override.breaking_sizes))

    return merge_segments(segments), warnings


def load_v1_ranges(config: ReconConfig, resolver: DealerResolver) -> list[TicketRange]:
    if not config.v1_file:
        return []
    path = Path(config.v1_file)
    try:
        _, grid = read_first_sheet(path)
    except SpreadsheetReadError as e:
        raise ProcessingError(f"V1 file: {e}") from e
    ranges = normalize_v1_rows(parse_v1_sheet(grid), config.barcode.returns, resolver)
    logger.info(f"V1 loaded: {len(ranges)} ranges, {sum(r.qty for r in ranges)} tickets from {path.name}")
    return ranges


def _empty_message(recon: ReconFile, grid: Sequence[Sequence[Any]], config: ReconConfig,
                   resolver: DealerResolver, v1: Sequence[TicketRange]) -> str:
    if config.mode == "returns" and v1:
        parsed = parse_return_rows(grid, resolver, recon.game, recon.draw, config.barcode.returns)
        if parsed:
            return (
                f"All {len(parsed)} return rows ({sum(r.qty for r in parsed)} tickets) "
                "were already reported in V1. Nothing new to report."
            )
    return "No structured rows were produced. Check the report layout and dealer codes."


def process_file(
    path: Path,
    config: ReconConfig,
    resolver: DealerResolver,
    error_log: ErrorLogBuffer,
    games: Sequence[GameDef] = (),
    v1: Sequence[TicketRange] = (),
) -> ReconFile:
    """Process one report file; failures are recorded on the returned ReconFile."""
    recon = ReconFile(path=path, status=FileStatus.PROCESSING)
    override = config.override_for(path.name)
    business_date = _business_date(config)
    table = config.game_code_table or ERP_GAME_MAP

    try:
        sheet_name, grid = read_first_sheet(path)
    except SpreadsheetReadError as e:
        logger.error(f"{path.name}: {e}")
        error_log.append(ErrorRecord.create(path.name, "", -1, "READ_ERROR", str(e)))
        recon.status = FileStatus.FAILED
        recon.message = str(e)
        return recon

    game = resolve_game(path.name, override, business_date, games, table)

    try:
        if config.mode == "erp":
            segments, warnings = file_segments(override)
            recon.warnings.extend(warnings)
            recon.ranges = build_structured_rows(
                grid,
                resolver,
                segments=segments,
                game_override=game,
                draw_override=override.draw,
                gap_fill=config.gap_fill,
                policy=config.barcode.erp,
            )
            recon.game = game or detect_game_name(grid)
            recon.draw = override.draw or detect_draw_date(grid)
        else:
            recon.game = game or detect_game_name(grid)
            recon.draw = override.draw or detect_draw_date(grid) or business_date
            recon.ranges = build_return_rows(
                grid,
                resolver,
                recon.game,
                recon.draw,
                policy=config.barcode.returns,
                v1=v1,
                strict_scope=config.strict_scope,
            )
    except ValueError as e:
        # TicketRange 不変条件違反など (通常は発生しない)
        logger.error(f"{path.name}: {e}")
        error_log.append(ErrorRecord.create(path.name, sheet_name, -1, "PARSE_ERROR", str(e)))
        recon.status = FileStatus.FAILED
        recon.message = str(e)
        return recon

    for w in recon.warnings:
        logger.warning(f"{path.name}: {w}")

    if not recon.ranges:
        recon.status = FileStatus.EMPTY
        recon.message = _empty_message(recon, grid, config, resolver, v1)
        logger.info(f"{path.name}: {recon.message}")
        return recon

    recon.status = FileStatus.SUCCESS
    logger.info(f"{path.name}: {len(recon.ranges)} rows, {recon.qty} tickets (game={recon.game!r} draw={recon.draw!r})")
    return recon


def _archive(recon: ReconFile, kind: str, business_date: str, cursor: Any, error_log: ErrorLogBuffer) -> None:
    """Archive one processed file inside its own savepoint.

    A failed insert is rolled back to the savepoint so the run's transaction stays
    usable for the next file and the archives saved before it still commit.
    """
    savepoint_set = False
    try:
        try:
            cursor.execute(f"SAVEPOINT {ARCHIVE_SAVEPOINT}")
        except psycopg2.Error as e:
            raise StoreError(f"failed opening savepoint: {e}") from e
        savepoint_set = True
        UploadHistoryStore(cursor).save_upload(kind, recon.path, business_date, game_name=recon.game)
        try:
            cursor.execute(f"RELEASE SAVEPOINT {ARCHIVE_SAVEPOINT}")
        except psycopg2.Error as e:
            raise StoreError(f"failed releasing savepoint: {e}") from e
    except StoreError as e:
        logger.error(f"{recon.name}: archive failed: {e}")
        error_log.append(ErrorRecord.create(recon.name, "", -1, "STORE_ERROR", str(e)))
        recon.status = FileStatus.FAILED
        recon.message = str(e)
        if savepoint_set:
            _rollback_archive(recon, cursor, error_log)


def _rollback_archive(recon: ReconFile, cursor: Any, error_log: ErrorLogBuffer) -> None:
    try:
        cursor.execute(f"ROLLBACK TO SAVEPOINT {ARCHIVE_SAVEPOINT}")
    except psycopg2.Error as e:
        # 元のエラーは上書きしない
        logger.error(f"{recon.name}: rollback to savepoint failed: {e}")
        error_log.append(ErrorRecord.create(recon.name, "", -1, "TRANSACTION_ROLLBACK_ERROR", str(e)))


def _write_output(config: ReconConfig, files: Sequence[ReconFile]) -> Path | None:
    records: list[dict[str, Any]] = []
    for f in files:
        if f.status != FileStatus.SUCCESS:
            continue
        for r in f.ranges:
            if config.mode == "erp":
                records.append(r.to_record(ERP_COLUMNS))
            else:
                records.append(r.to_record(RETURN_COLUMNS, from_width=RETURN_FROM_WIDTH))
    if not records:
        return None

    sheet = OUTPUT_SHEETS[config.mode]
    columns = ERP_COLUMNS if config.mode == "erp" else RETURN_COLUMNS
    out = Path(config.output_directory) / f"{sheet.lower()}-{_business_date(config)}.xlsx"
    return write_workbook(out, [SheetSpec(name=sheet, records=records, columns=columns)])


def finalize_result(
    start_time: datetime,
    stats: list[FileStat],
    output_path: Path | None = None,
    export_blocked: bool = False,
) -> ProcessingResult:
    end_time = datetime.now(UTC)
    elapsed = (end_time - start_time).total_seconds()
    total_rows = sum(s.rows for s in stats if s.status == FileStatus.SUCCESS.value)
    return ProcessingResult(
        success_files=sum(1 for s in stats if s.status == FileStatus.SUCCESS.value),
        empty_files=sum(1 for s in stats if s.status == FileStatus.EMPTY.value),
        failed_files=sum(1 for s in stats if s.status == FileStatus.FAILED.value),
        total_rows=total_rows,
        total_qty=sum(s.qty for s in stats if s.status == FileStatus.SUCCESS.value),
        warnings=sum(len(s.warnings) for s in stats),
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed,
        throughput_rows_per_sec=total_rows / elapsed if elapsed > 0 else 0.0,
        file_stats=stats,
        output_path=str(output_path) if output_path else None,
        export_blocked=export_blocked,
    )


def process_all(
    config: ReconConfig,
    dealer_config: DealerConfig,
    games: Sequence[GameDef] = (),
    cursor: Any = None,
    archive: bool = False,
) -> ProcessingResult:
    """Run ERP or returns reconciliation over every file of ``config.source_directory``.

    Args:
        config: loaded ReconConfig (mode erp / returns)
        dealer_config: master code + alias snapshot for this run
        games: game master records (official code -> display name)
        cursor: psycopg2 cursor for the upload archive (None = no archive)
        archive: store processed inputs in the upload history

    Raises:
        ProcessingError: directory problems or an unreadable V1 file
    """
    if config.mode not in OUTPUT_SHEETS:
        raise ProcessingError(f"process_all does not handle mode {config.mode!r}")

    start_time = datetime.now(UTC)
    error_log = ErrorLogBuffer()
    resolver = DealerResolver(dealer_config)
    business_date = _business_date(config)

    file_paths = scan_excel_files(Path(config.source_directory))
    v1 = load_v1_ranges(config, resolver) if config.mode == "returns" else []

    if not file_paths:
        logger.info(f"no report files in {config.source_directory}")
        return finalize_result(start_time, [])

    files: list[ReconFile] = []
    stats: list[FileStat] = []
    with ProgressTracker(len(file_paths)) as progress:
        for path in file_paths:
            progress.start_file(path)
            file_start = datetime.now(UTC)

            recon = process_file(path, config, resolver, error_log, games=games, v1=v1)
            if archive and cursor is not None and recon.status in (FileStatus.SUCCESS, FileStatus.EMPTY):
                _archive(recon, config.mode, business_date, cursor, error_log)

            files.append(recon)
            stats.append(
                FileStat(
                    file_name=recon.name,
                    status=recon.status.value,
                    rows=len(recon.ranges),
                    qty=recon.qty,
                    elapsed_seconds=(datetime.now(UTC) - file_start).total_seconds(),
                    warnings=tuple(recon.warnings),
                    message=recon.message,
                )
            )
            progress.set_postfix(
                success=sum(1 for f in files if f.status == FileStatus.SUCCESS),
                failed=sum(1 for f in files if f.status == FileStatus.FAILED),
            )
            progress.finish_file()

    written = error_log.flush()
    if written is not None:
        logger.info(f"error log written: {written}")

    warnings = sum(len(f.warnings) for f in files)
    output_path = None
    if warnings:
        logger.warning(f"export blocked: {warnings} validation warning(s). Fix the inputs and run again.")
    else:
        output_path = _write_output(config, files)
        if output_path is not None:
            logger.info(f"output written: {output_path}")

    return finalize_result(start_time, stats, output_path=output_path, export_blocked=bool(warnings))
