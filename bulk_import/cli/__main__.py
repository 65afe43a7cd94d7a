from __future__ import annotations

import argparse
import asyncio
import os
import sys
from contextlib import contextmanager
from pathlib import Path

from dotenv import load_dotenv

from bulk_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from bulk_import.db.store import InMemoryStore, PostgresStore
from bulk_import.excel.templates import write_template
from bulk_import.formats import FORMATS, UnknownFormatError, get_format
from bulk_import.logging.error_log import ErrorLogBuffer
from bulk_import.logging.init import log_summary, setup_logging
from bulk_import.models.commit_result import ImportOutcome
from bulk_import.services.orchestrator import ImportAborted, ImportSession, run_import
from bulk_import.services.summary import render_metrics_line, render_summary_line

"""CLI entrypoint.

    python -m bulk_import.cli FILE --format bosta_shipments [--skip-duplicates]
        [--truncate] [--create-revenue] [--create-missing-skus]
    python -m bulk_import.cli FILE --format shopify_products --inspect-data
    python -m bulk_import.cli --format system_template --template out.xlsx

Exit codes: 0 success, 1 fatal, 2 partial commit failure, 3 decision required.
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2
EXIT_DECISION_REQUIRED = 3


@contextmanager
def _db_connection(cfg):  # pragma: no cover (thin wrapper; tested via integration)
    """Yield a psycopg2 connection pool sized for one commit batch.

    接続情報の優先順位:
        1. `.env` で読み込まれた環境変数 (main() 冒頭で上書き済み)
        2. DATABASE_URL / PGDSN, 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. config/import.yml の database セクション
    """
    from psycopg2.pool import ThreadedConnectionPool

    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if not dsn:
        host = os.getenv("PGHOST", db_cfg.host or "localhost")
        port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
        user = os.getenv("PGUSER", db_cfg.user or "postgres")
        password = os.getenv("PGPASSWORD", db_cfg.password or "")
        database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    # バッチ内の同時書き込み数だけ接続を確保 (1 行 = 1 トランザクション)
    pool = ThreadedConnectionPool(1, max(cfg.batch_size, 1), dsn)
    try:
        yield pool
    finally:
        pool.closeall()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; values override the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="bulk_import", description="Vendor export bulk importer")
    p.add_argument("file", nargs="?", type=Path, help="Uploaded export (.xlsx / .xls / .csv)")
    p.add_argument("--format", required=True, choices=sorted(FORMATS), dest="format_name")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--skip-duplicates", action="store_true", help="Skip rows already imported")
    p.add_argument("--truncate", action="store_true", help="Import only what fits the plan quota")
    p.add_argument("--create-revenue", action="store_true", help="Add revenue for delivered shipments")
    p.add_argument("--create-missing-skus", action="store_true", help="Create placeholder inventory for unknown SKUs")
    p.add_argument("--template", type=Path, metavar="OUT", help="Write the format's template and exit")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print headers, statistics & first rows then exit")
    return p.parse_args(argv)


def _inspect_data(args: argparse.Namespace, store) -> int:
    session = ImportSession(args.format_name, store, show_progress=False)
    try:
        classification = session.load_path(args.file)
    except Exception as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    stats = classification.statistics
    print(f"FILE: {args.file.name} format={args.format_name}")
    print(
        f"  rows={stats.total_rows} valid={stats.valid_rows} invalid={stats.invalid_rows} "
        f"duplicates={stats.duplicate_rows} unknown={stats.unknown_reference_rows}"
    )
    print(f"  metrics: {render_metrics_line(session.outcome())}")
    for failure in classification.failures[:5]:
        print(f"  invalid row {failure.row_number}: {failure.reason}")
    for row in classification.rows[:3]:
        print(f"  sample: {row}")
    if classification.unknown_skus:
        print(f"  unknown_skus={classification.unknown_skus[:10]}")
    return EXIT_SUCCESS_ALL


def _exit_code(outcome: ImportOutcome) -> int:
    if outcome.state.startswith("awaiting"):
        return EXIT_DECISION_REQUIRED
    if outcome.failed > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _run(args: argparse.Namespace, cfg, store, error_log: ErrorLogBuffer) -> ImportOutcome:
    return asyncio.run(run_import(
        args.format_name,
        args.file.read_bytes(),
        args.file.name,
        store,
        batch_size=cfg.batch_size,
        preview_limit=cfg.duplicate_preview_limit,
        skip_duplicates=args.skip_duplicates,
        truncate=args.truncate,
        create_revenue=args.create_revenue,
        create_missing_skus=args.create_missing_skus,
        error_log=error_log,
    ))


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # NOTE: [] が渡された場合に sys.argv[1:] を読まないよう None のときのみ参照
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    if args.debug:
        for h in logger.handlers:
            h.setLevel("DEBUG")
        logger.setLevel("DEBUG")
        logger.debug("debug mode enabled")

    if args.template is not None:
        try:
            path = write_template(get_format(args.format_name), args.template)
        except (ValueError, UnknownFormatError) as e:
            logger.error(f"template: {e}")
            return EXIT_FATAL
        logger.info(f"template written: {path}")
        return EXIT_SUCCESS_ALL

    if args.file is None:
        logger.error("no input file given")
        return EXIT_FATAL
    if not args.file.exists():
        logger.error(f"file not found: {args.file}")
        return EXIT_FATAL

    _load_env_file(Path('.env'), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    mock_store = InMemoryStore(inventory_limit=cfg.inventory_limit)
    if args.inspect_data:
        return _inspect_data(args, mock_store)

    error_log = ErrorLogBuffer()
    # DB 接続制御: テスト等で完全に無効化したい場合 DISABLE_DB_CONNECT=1
    db_mode = "mock"
    try:
        if os.getenv("DISABLE_DB_CONNECT") == "1":
            logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
            outcome = _run(args, cfg, mock_store, error_log)
        else:
            try:
                with _db_connection(cfg) as pool:
                    db_mode = "live"
                    store = PostgresStore(
                        pool, cfg.tables, cfg.brand_id, inventory_limit=cfg.inventory_limit
                    )
                    outcome = _run(args, cfg, store, error_log)
            except ImportAborted:
                raise
            except Exception as db_e:
                if db_mode == "live":
                    raise
                logger.info(f"DB connection failed -> fallback to mock mode: {db_e}")
                outcome = _run(args, cfg, mock_store, error_log)
    except ImportAborted as e:
        logger.error(f"import: {e}")
        return EXIT_FATAL
    except Exception as e:
        logger.error(f"import ({db_mode} mode) failed: {type(e).__name__}: {e}")
        return EXIT_FATAL
    finally:
        log_path = error_log.flush()
        if log_path is not None:
            logger.info(f"error log written: {log_path}")

    if outcome.decision is not None and outcome.decision.requires_decision:
        logger.warning(outcome.decision.describe())
    logger.info(f"mode={db_mode} {render_metrics_line(outcome)}")

    summary_line = render_summary_line(outcome)
    # log_summary が "SUMMARY " を付与するため除去
    log_summary(summary_line[len("SUMMARY "):])
    return _exit_code(outcome)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
