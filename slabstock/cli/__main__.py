from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from ..config.loader import ConfigError, load_config
from ..db.store import PgSlabStore, SlabStore, StoreError, read_all
from ..excel.debit_sheet import parse_debit_workbook
from ..excel.reader import MissingColumnsError, SpreadsheetReadError
from ..logging.init import log_summary, setup_logging
from ..models.config_models import AppConfig
from ..models.match_result import MatchCriteria
from ..services.auth import AuthenticationError, require_user
from ..services.exporter import export_slabs
from ..services.matcher import find_compatible_slabs
from ..services.orchestrator import FatalImportError, ImportInProgressError, SlabImporter
from ..services.progress import ImportProgressBar
from ..services.statistics import compute_park_statistics
from ..services.summary import render_summary_line

"""Command line entrypoint: ``python -m slabstock.cli <command>``.

Commands:
    import FILE        import a slab stock workbook
    export             write the Stock_Tranches_<date>.xlsx report
    match              list available slabs compatible with given dimensions
    stats              print park occupancy and valuation
    purge --yes        delete every slab of the acting user
    debit-sheet FILE   decode a production debit sheet (no database access)

Exit codes: 0 success, 2 import finished with errors, 1 fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _resolve_dsn(cfg: AppConfig) -> str:
    """Connection string: DATABASE_URL / PGDSN, then PG* variables, then the config file."""
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(cfg: AppConfig) -> Iterator[object]:  # pragma: no cover (thin wrapper)
    """psycopg2 cursor on an autocommit connection (one INSERT = one transaction)."""
    conn = psycopg2.connect(_resolve_dsn(cfg))
    try:
        conn.autocommit = True
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


@contextmanager
def _open_store(cfg: AppConfig, user_id: str) -> Iterator[SlabStore]:  # pragma: no cover
    with _db_connection(cfg) as cur:
        yield PgSlabStore(cur, user_id)


def _load_env_file(path: Path) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=False)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="slabstock", description="Slab stock import/export tool")
    p.add_argument("--config", type=Path, default=None, help="Path to slabstock.yml")
    p.add_argument("--user", default=None, help="Acting user id (overrides SLABSTOCK_USER_ID)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import a slab stock workbook")
    imp.add_argument("file", type=Path)

    exp = sub.add_parser("export", help="Export the stock report")
    exp.add_argument("--output", type=Path, default=None, help="Output directory")

    match = sub.add_parser("match", help="Find compatible available slabs")
    match.add_argument("--length", type=float, default=None)
    match.add_argument("--width", type=float, default=None)
    match.add_argument("--thickness", type=float, default=None)
    match.add_argument("--material", default=None)
    match.add_argument("--tolerance", type=float, default=None)

    sub.add_parser("stats", help="Print park statistics")

    purge = sub.add_parser("purge", help="Delete all slabs of the acting user")
    purge.add_argument("--yes", action="store_true", help="Confirm deletion")

    debit = sub.add_parser("debit-sheet", help="Decode a production debit sheet")
    debit.add_argument("file", type=Path)
    return p.parse_args(argv)


def _cmd_import(cfg: AppConfig, user: str, path: Path, logger) -> int:
    if not path.is_file():
        logger.error(f"file not found: {path}")
        return EXIT_FATAL
    with _open_store(cfg, user) as store, ImportProgressBar() as bar:
        importer = SlabImporter(store, user, settings=cfg.import_settings, on_progress=bar)
        try:
            result = importer.run(path, file_name=path.name)
        finally:
            importer.close()

    for message in result.errors:
        logger.warning(message)
    logger.info(
        f"added={result.added} skipped={result.skipped} batches={result.total_batches} "
        f"avg_batch_sec={result.avg_batch_seconds:.3f} p95_batch_sec={result.p95_batch_seconds:.3f}"
    )
    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(result).removeprefix("SUMMARY "))
    return EXIT_PARTIAL_FAILURE if result.has_errors else EXIT_SUCCESS_ALL


def _cmd_export(cfg: AppConfig, user: str, output: Path | None, logger) -> int:
    out_dir = output or Path(cfg.export.output_directory)
    with _open_store(cfg, user) as store:
        path = export_slabs(store, user, out_dir, page_size=cfg.import_settings.page_size)
    logger.info(f"report written: {path}")
    return EXIT_SUCCESS_ALL


def _cmd_match(cfg: AppConfig, user: str, args: argparse.Namespace, logger) -> int:
    tolerance = args.tolerance if args.tolerance is not None else cfg.matching.default_tolerance
    criteria = MatchCriteria(
        length=args.length,
        width=args.width,
        thickness=args.thickness,
        material=args.material,
        tolerance=tolerance,
    )
    with _open_store(cfg, user) as store:
        results = find_compatible_slabs(store, user, criteria, max_tolerance=cfg.matching.max_tolerance)
    logger.info(f"{len(results)} compatible slab(s)")
    for r in results:
        s, d = r.slab, r.dimension_match
        logger.info(
            f"{r.compatibility_score:>3}% {s.position:<4} {s.material} "
            f"{s.length:g}x{s.width:g}x{s.thickness:g} "
            f"(dL={d.length_diff:+g} dW={d.width_diff:+g} dT={d.thickness_diff:+g})"
        )
    return EXIT_SUCCESS_ALL


def _cmd_stats(cfg: AppConfig, user: str, logger) -> int:
    page_size = cfg.import_settings.page_size
    with _open_store(cfg, user) as store:
        slabs = read_all(store.fetch_slabs, page_size)
        materials = read_all(store.fetch_materials, page_size)
    st = compute_park_statistics(slabs, materials, old_slab_days=cfg.statistics.old_slab_days)
    logger.info(
        f"slabs={st.total_slabs} available={st.available_slabs} reserved={st.reserved_slabs} "
        f"positions={st.occupied_positions} occupation={st.occupation_rate:.1f}% "
        f"availability={st.availability_rate:.1f}%"
    )
    logger.info(
        f"surface_m2={st.total_surface_m2:.2f} volume_m3={st.total_volume_m3:.3f} "
        f"value={st.total_estimated_value:.2f} old_slabs={st.old_slabs_count} materials={len(st.materials)}"
    )
    return EXIT_SUCCESS_ALL


def _cmd_purge(cfg: AppConfig, user: str, confirmed: bool, logger) -> int:
    if not confirmed:
        logger.error("purge deletes every slab of the user; pass --yes to confirm")
        return EXIT_FATAL
    with _open_store(cfg, user) as store:
        outcome = store.delete_all_user_slabs(user)
    if not outcome.success:
        logger.error(f"purge failed: {outcome.message}")
        return EXIT_FATAL
    logger.info(f"purged {outcome.deleted_count} slab(s) {outcome.message}".rstrip())
    return EXIT_SUCCESS_ALL


def _cmd_debit_sheet(path: Path, logger) -> int:
    sheet = parse_debit_workbook(path)
    logger.info(
        f"commercial={sheet.commercial} client={sheet.client} order={sheet.order_number} site={sheet.site}"
    )
    for item in sheet.items:
        logger.info(
            f"line {item.row_number}: {item.description} x{item.quantity:g} "
            f"{item.length:g}x{item.width:g}x{item.thickness:g} m2={item.m2:.3f} m3={item.m3:.3f}"
        )
    logger.info(
        f"items={len(sheet.items)} supply={sheet.supply} thickness={sheet.thickness} "
        f"m2={sheet.m2:.3f} m3={sheet.m3:.3f}"
    )
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # only read sys.argv when no list is given (main([]) must not see pytest's args)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        setup_logging(debug=True)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"))
    try:
        cfg = load_config(args.config, required=args.config is not None)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        if args.command == "debit-sheet":
            return _cmd_debit_sheet(args.file, logger)

        user = require_user(args.user or cfg.user_id)
        if args.command == "import":
            return _cmd_import(cfg, user, args.file, logger)
        if args.command == "export":
            return _cmd_export(cfg, user, args.output, logger)
        if args.command == "match":
            return _cmd_match(cfg, user, args, logger)
        if args.command == "stats":
            return _cmd_stats(cfg, user, logger)
        if args.command == "purge":
            return _cmd_purge(cfg, user, args.yes, logger)
    except AuthenticationError as e:
        logger.error(f"auth: {e} (set SLABSTOCK_USER_ID or pass --user)")
        return EXIT_FATAL
    except (FatalImportError, ImportInProgressError, SpreadsheetReadError, MissingColumnsError) as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL
    except ValueError as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL
    except (StoreError, psycopg2.Error) as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    except OSError as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL

    logger.error(f"unknown command: {args.command}")
    return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
