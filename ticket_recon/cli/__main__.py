from __future__ import annotations

import argparse
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ticket_recon.config.loader import DEFAULT_CONFIG_PATH, ConfigError, ReconConfig, load_config, resolve_dsn
from ticket_recon.core.dealers import DealerConfig, DealerConfigError
from ticket_recon.excel.reader import SpreadsheetReadError, read_first_sheet
from ticket_recon.logging.init import log_summary, setup_logging
from ticket_recon.models.processing_result import ProcessingResult
from ticket_recon.services.analysis import run_analysis
from ticket_recon.services.orchestrator import ProcessingError, process_all, scan_excel_files
from ticket_recon.services.summary import render_summary_line
from ticket_recon.stores.dealer_config import DealerConfigStore
from ticket_recon.stores.games import GameStore
from ticket_recon.stores.uploads import KIND_TABLES, StoreError, UploadHistoryStore

"""CLI entrypoint.

Flow:
- load .env (python-dotenv) and the YAML config
- fetch the dealer config snapshot once (fatal on failure)
- run the configured mode (erp / returns / analysis)
- print the SUMMARY line and exit 0 (all success / empty), 2 (failures or export
  blocked by validation warnings) or 1 (fatal)
"""

__all__ = [
    "EXIT_SUCCESS_ALL",
    "EXIT_PARTIAL_FAILURE",
    "EXIT_FATAL",
    "main",
]

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

INSPECT_SAMPLE_ROWS = 5


@contextmanager
def _db_connection(cfg: ReconConfig) -> Iterator[Any]:
    """psycopg2 connection + cursor; commit on success, rollback on error."""
    dsn = resolve_dsn(cfg.database)
    if not dsn:
        raise StoreError("no database configured (DATABASE_URL / PGDSN / PG* / config database)")
    try:
        conn = psycopg2.connect(dsn)
    except psycopg2.Error as e:
        raise StoreError(f"database connection failed: {e}") from e
    cur = conn.cursor()
    try:
        yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cur.close()
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; .env values win over the inherited environment (DB 接続情報優先)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="ticket-recon", description="Lottery ticket-range reconciliation")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print the first rows of every report then exit")
    p.add_argument("--archive", action="store_true", help="Store processed inputs in the upload history")
    p.add_argument("--list-uploads", metavar="DATE", help="List archived uploads for DATE (yyyy-mm-dd) then exit")
    return p.parse_args(argv)


def _inspect_data(cfg: ReconConfig) -> int:
    try:
        files = scan_excel_files(Path(cfg.source_directory))
    except ProcessingError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    if not files:
        print("inspect: no report files")
        return EXIT_SUCCESS_ALL
    for f in files:
        print(f"FILE: {f.name}")
        try:
            sheet_name, grid = read_first_sheet(f)
        except SpreadsheetReadError as e:
            print(f"  read_error: {e}")
            continue
        width = len(grid[0]) if grid else 0
        print(f"  SHEET: {sheet_name} rows={len(grid)} cols={width}")
        for row in grid[:INSPECT_SAMPLE_ROWS]:
            print(f"    {row}")
    return EXIT_SUCCESS_ALL


def _list_uploads(cfg: ReconConfig, upload_date: str) -> int:
    with _db_connection(cfg) as cur:
        store = UploadHistoryStore(cur)
        for kind in KIND_TABLES:
            records = store.list_uploads_by_date(kind, upload_date)
            print(f"{kind}: {len(records)} upload(s) on {upload_date}")
            for r in records:
                print(f"  #{r.id} {r.file_name} game={r.game_name or '-'} size={r.size}")
    return EXIT_SUCCESS_ALL


def _run(cfg: ReconConfig, archive: bool) -> ProcessingResult:
    if cfg.mode == "analysis":
        result, _ = run_analysis(cfg)
        return result

    dealer_config = DealerConfig.load(DealerConfigStore(Path(cfg.dealer_config_path)))
    games = GameStore(Path(cfg.games_path)).fetch_games()

    if not archive:
        return process_all(cfg, dealer_config, games=games)
    with _db_connection(cfg) as cur:
        UploadHistoryStore(cur).ensure_tables()
        return process_all(cfg, dealer_config, games=games, cursor=cur, archive=True)


def main(argv: list[str] | None = None) -> int:
    # None のときのみ sys.argv を読む (テストで main([]) を渡すため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(cfg)

    if args.list_uploads:
        try:
            return _list_uploads(cfg, args.list_uploads)
        except StoreError as e:
            logger.error(f"uploads: {e}")
            return EXIT_FATAL

    logger.info(f"mode={cfg.mode} source={cfg.source_directory} business_date={cfg.business_date or 'today'}")

    try:
        result = _run(cfg, args.archive)
    except DealerConfigError as e:
        logger.error(f"dealer config: {e}")
        return EXIT_FATAL
    except (ProcessingError, StoreError) as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL

    # log_summary が "SUMMARY " を付けるので先頭を除去
    summary_line = render_summary_line(result)
    log_summary(summary_line[len("SUMMARY "):])

    return EXIT_PARTIAL_FAILURE if result.exit_code else EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
