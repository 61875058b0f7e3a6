from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2

from bom_importer.config.loader import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    load_config,
    load_env_file,
    resolve_dsn,
)
from bom_importer.excel.columns import HeaderNotFoundError, detect_columns
from bom_importer.excel.exclusion import find_excluded_rows
from bom_importer.excel.reader import ImportStructureError, cell_text, load_file
from bom_importer.excel.template import TEMPLATE_FORMATS, write_import_template
from bom_importer.logging.init import log_summary, set_debug, setup_logging
from bom_importer.models.config_models import ImportConfig, ParserSettings
from bom_importer.services.dispatcher import parse_file
from bom_importer.services.inventory import parse_inventory_file
from bom_importer.services.orchestrator import ProcessingError, process_all, scan_import_files
from bom_importer.services.summary import render_summary_line

"""CLI entrypoint: ``python -m bom_importer.cli``.

Modes:
- default: import every workbook of ``source_directory`` (parse-only unless
  ``writer.commit`` is enabled and a database is reachable)
- --inspect-data: print detected header rows and sample rows, then exit
- --preview FILE: parse one workbook and print the ImportResult JSON
- --inventory FILE: print the newest-lot inventory map of a stock export
- --template FORMAT OUT: write an example import workbook

Exit codes: 0 all files succeeded, 2 one or more files failed, 1 fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """psycopg2 connection + cursor; the orchestrator issues BEGIN/COMMIT per file.

    Connection settings: .env (loaded with override) > environment > YAML database section.
    """
    conn = psycopg2.connect(resolve_dsn(cfg.database))
    conn.autocommit = True  # explicit BEGIN/COMMIT from the orchestrator
    try:
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="bom_importer", description="Tool-order BOM spreadsheet importer"
    )
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--inspect-data", action="store_true", help="Print detected headers & first rows then exit"
    )
    p.add_argument("--preview", type=Path, metavar="FILE", help="Parse one workbook and print the result JSON")
    p.add_argument(
        "--inventory", type=Path, metavar="FILE", help="Print the newest-lot inventory map of a stock export"
    )
    p.add_argument(
        "--template",
        nargs=2,
        metavar=("FORMAT", "OUT"),
        help=f"Write an import template ({'/'.join(TEMPLATE_FORMATS)}) to OUT",
    )
    return p.parse_args(argv)


def _inspect_data(cfg: ImportConfig) -> int:
    try:
        files = scan_import_files(Path(cfg.source_directory))
    except ProcessingError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    if not files:
        print("inspect: no workbooks")
        return EXIT_SUCCESS_ALL
    for f in files:
        print(f"FILE: {f.name}")
        try:
            grids = load_file(f)
        except (OSError, ImportStructureError) as e:
            print(f"  read_error: {e}")
            continue
        for grid in grids:
            excluded = find_excluded_rows(grid, cfg.parser.inactive_fill_color)
            try:
                header_row, mapping = detect_columns(grid, excluded, cfg.parser.header_search_rows)
            except HeaderNotFoundError as e:
                print(f"  SHEET: {grid.name} rows={grid.row_count} header=none ({e})")
                continue
            print(
                f"  SHEET: {grid.name} rows={grid.row_count} header_row={header_row + 1} "
                f"excluded={len(excluded)} mapping={mapping}"
            )
            sample = [
                [cell_text(v) for v in grid.row(i)]
                for i in range(header_row + 1, min(header_row + 4, grid.row_count))
            ]
            print("    sample_rows=", sample)
    return EXIT_SUCCESS_ALL


def _preview(path: Path, settings: ParserSettings) -> int:
    result = parse_file(path, settings)
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return EXIT_SUCCESS_ALL if result.success else EXIT_PARTIAL_FAILURE


def _inventory(path: Path) -> int:
    result = parse_inventory_file(path)
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return EXIT_SUCCESS_ALL if result.success else EXIT_PARTIAL_FAILURE


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None only: an explicit [] (tests) must not fall through to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    if args.template:
        fmt, out = args.template
        try:
            path = write_import_template(Path(out), fmt)
        except (ValueError, OSError) as e:
            logger.error(f"template: {e}")
            return EXIT_FATAL
        logger.info(f"template written: {path}")
        return EXIT_SUCCESS_ALL

    if args.inventory is not None:
        return _inventory(args.inventory)

    # .env wins over the process environment for DB settings
    load_env_file(Path(".env"), override=True)

    cfg: ImportConfig | None = None
    if args.preview is None or args.config.exists():
        try:
            cfg = load_config(args.config)
        except ConfigError as e:
            logger.error(f"config: {e}")
            return EXIT_FATAL

    if args.preview is not None:
        return _preview(args.preview, cfg.parser if cfg else ParserSettings())

    directory = Path(cfg.source_directory)
    if not directory.exists():
        logger.error(f"directory not found: {directory}")
        return EXIT_FATAL

    logger.info(f"Processing files from: {directory}")

    if args.inspect_data:
        return _inspect_data(cfg)

    # DISABLE_DB_CONNECT=1 forces parse-only mode (tests, dry runs)
    use_db = cfg.writer.commit and os.getenv("DISABLE_DB_CONNECT") != "1"
    mode = "parse-only"
    try:
        if use_db:
            try:
                with _db_connection(cfg) as cur:
                    mode = "live"
                    result = process_all(cfg, cursor=cur)
            except psycopg2.Error as db_e:
                if mode == "live":
                    raise
                logger.warning(f"DB connection failed -> parse-only mode: {db_e}")
                result = process_all(cfg, cursor=None)
        else:
            result = process_all(cfg, cursor=None)
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    logger.info(f"mode={mode} line_items={result.total_line_items}")

    total_files = result.success_files + result.failed_files
    summary_line = render_summary_line(total_files, result)
    # log_summary adds the "SUMMARY " label itself
    log_summary(summary_line.removeprefix("SUMMARY "))

    if result.failed_files > 0:
        # partial or complete failure
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
