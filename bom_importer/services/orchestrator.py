from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..db.store import (
    CommitResult,
    apply_conflict_resolutions,
    commit_order,
    fetch_catalog,
    order_exists,
    save_new_parts,
)
from ..logging.error_log import FILE_LEVEL, ErrorLogBuffer
from ..models.catalog import PartConflict
from ..models.config_models import ImportConfig
from ..models.order import ImportedLineItem, ImportResult
from ..models.processing_result import BatchStatsAccumulator, FileStat, ProcessingResult
from .catalog import find_conflicts, resolve_conflicts, select_new_parts
from .dispatcher import parse_file
from .progress import ProgressTracker

"""Directory import orchestration.

Scans the source directory, parses every workbook and, when a cursor is given
and ``writer.commit`` is enabled, stores each order in its own transaction:

    BEGIN -> existing SO check -> catalog reconcile -> new parts
          -> order/tools/line items -> COMMIT

An SO number already in ``orders`` is skipped along with its catalog changes.

A failing file is rolled back and recorded; processing continues with the next
file. Without a cursor (or with commit disabled) the run is parse-only.
"""

__all__ = [
    "IMPORT_SUFFIXES",
    "ProcessingError",
    "ConflictResolver",
    "scan_import_files",
    "process_all",
]

logger = logging.getLogger(__name__)

IMPORT_SUFFIXES = (".xlsx", ".xlsm", ".xls", ".csv")

# Called with the conflicts of one file; sets ``action`` on the ones to update.
ConflictResolver = Callable[[list[PartConflict]], None]


class ProcessingError(Exception):
    """Fatal error that prevents the run (not a single file) from proceeding."""
    pass


@dataclass
class _FileOutcome:
    success: bool
    parse: ImportResult
    committed_rows: int = 0
    failed_batches: int = 0
    batch_stats: BatchStatsAccumulator = field(default_factory=BatchStatsAccumulator)


def scan_import_files(directory: Path) -> list[Path]:
    """Workbooks directly under ``directory`` (non-recursive, name order).

    Office lock files (``~$name.xlsx``) are ignored.

    Raises:
        ProcessingError: If directory doesn't exist or can't be read
    """
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")

    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")

    try:
        files = [
            p for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() in IMPORT_SUFFIXES and not p.name.startswith("~$")
        ]
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e
    return sorted(files, key=lambda p: p.name)


def process_all(
    config: ImportConfig,
    cursor: Any = None,
    *,
    error_log: ErrorLogBuffer | None = None,
    conflict_resolver: ConflictResolver | None = None,
) -> ProcessingResult:
    """Import every workbook of ``config.source_directory``.

    Args:
        config: Import configuration
        cursor: Database cursor (None = parse-only)
        error_log: Buffer for error records (a fresh one is flushed at the end)
        conflict_resolver: Decides catalog conflicts; unresolved ones keep the catalog

    Returns:
        ProcessingResult with aggregated metrics and file stats

    Raises:
        ProcessingError: the source directory cannot be scanned
    """
    start_time = datetime.now(UTC)
    own_log = error_log is None
    if error_log is None:
        error_log = ErrorLogBuffer()

    file_paths = scan_import_files(Path(config.source_directory))
    commit = cursor is not None and config.writer.commit
    if cursor is not None and not config.writer.commit:
        logger.info("writer.commit is disabled - parse-only run")

    file_stats: list[FileStat] = []
    success_count = 0
    failed_count = 0
    total_items = 0
    total_tools = 0
    total_warnings = 0

    with ProgressTracker(len(file_paths)) as progress:
        for file_path in file_paths:
            progress.start_file(file_path)
            file_start = time.perf_counter()
            outcome = _process_single_file(
                file_path, config, cursor if commit else None, error_log, conflict_resolver
            )
            elapsed = time.perf_counter() - file_start

            order = outcome.parse.order
            line_items = len(order.line_items) if order else 0
            tools = len(order.tools) if order else 0
            warnings = len(outcome.parse.warnings)
            total_warnings += warnings
            if outcome.success:
                success_count += 1
                total_items += line_items
                total_tools += tools
            else:
                failed_count += 1

            progress.set_postfix(success=success_count, failed=failed_count, items=total_items)
            progress.finish_file(success=outcome.success)

            total_batches, avg_batch, p95_batch = outcome.batch_stats.get_stats()
            file_stats.append(
                FileStat(
                    file_name=file_path.name,
                    status="success" if outcome.success else "failed",
                    line_items=line_items,
                    tools=tools,
                    warnings=warnings,
                    elapsed_seconds=elapsed,
                    committed_rows=outcome.committed_rows,
                    failed_batches=outcome.failed_batches,
                    total_batches=total_batches,
                    avg_batch_seconds=avg_batch,
                    p95_batch_seconds=p95_batch,
                )
            )

    if own_log:
        log_path = error_log.flush()
        if log_path is not None:
            logger.info(f"error log written: {log_path}")

    end_time = datetime.now(UTC)
    return ProcessingResult(
        success_files=success_count,
        failed_files=failed_count,
        total_line_items=total_items,
        total_tools=total_tools,
        total_warnings=total_warnings,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        file_stats=file_stats,
    )


def _record_parse_result(file_name: str, result: ImportResult, error_log: ErrorLogBuffer) -> None:
    for warning in result.warnings:
        logger.warning(f"{file_name}: {warning}")
        error_log.add(file_name, "PARSE_WARNING", warning)
    for error in result.errors:
        logger.error(f"{file_name}: {error}")
        error_log.add(file_name, "PARSE_ERROR", error)


def _process_single_file(
    file_path: Path,
    config: ImportConfig,
    cursor: Any,
    error_log: ErrorLogBuffer,
    conflict_resolver: ConflictResolver | None,
) -> _FileOutcome:
    """Parse one workbook and, with a cursor, store it in its own transaction."""
    parsed = parse_file(file_path, config.parser)
    _record_parse_result(file_path.name, parsed, error_log)
    outcome = _FileOutcome(success=parsed.success, parse=parsed)
    if not parsed.success or parsed.order is None:
        return outcome
    order = parsed.order
    logger.info(
        f"{file_path.name}: so={order.so_number} tools={len(order.tools)} line_items={len(order.line_items)}"
    )
    if cursor is None:
        return outcome

    try:
        cursor.execute("BEGIN")
    except Exception as e:
        error_log.add(file_path.name, "TRANSACTION_BEGIN_ERROR", str(e))
        logger.error(f"{file_path.name}: failed to begin transaction: {e}")
        outcome.success = False
        return outcome

    try:
        if order_exists(cursor, order.so_number):
            # a re-imported order leaves the catalog untouched as well
            logger.info(f"{file_path.name}: order {order.so_number} already exists - skipped")
            committed = CommitResult(so_number=order.so_number, skipped=True)
        else:
            _sync_catalog(file_path.name, order.line_items, config, cursor, error_log, conflict_resolver)
            committed = commit_order(
                cursor,
                order,
                config.writer.batch_size,
                metrics_callback=lambda m: outcome.batch_stats.add_batch_time(m.elapsed_seconds),
            )
    except Exception as e:
        try:
            cursor.execute("ROLLBACK")
        except Exception as rollback_e:
            error_log.add(file_path.name, "TRANSACTION_ROLLBACK_ERROR", str(rollback_e))
        error_log.add(file_path.name, "COMMIT_ERROR", str(e))
        logger.error(f"{file_path.name}: import failed - rolled back: {e}")
        outcome.success = False
        return outcome

    outcome.committed_rows = committed.line_items.inserted_rows
    outcome.failed_batches = committed.line_items.failed_batches
    for message in committed.line_items.errors:
        error_log.add(file_path.name, "BATCH_WRITE_ERROR", message)
        logger.error(f"{file_path.name}: {message}")

    try:
        cursor.execute("COMMIT")
    except Exception as e:
        try:
            cursor.execute("ROLLBACK")
        except Exception:
            pass
        error_log.add(file_path.name, "TRANSACTION_COMMIT_ERROR", str(e))
        logger.error(f"{file_path.name}: commit failed: {e}")
        outcome.success = False
        outcome.committed_rows = 0
        return outcome

    if committed.line_items.failed_batches:
        # successful batches stay committed; the file still counts as failed
        outcome.success = False
    return outcome


def _sync_catalog(
    file_name: str,
    line_items: list[ImportedLineItem],
    config: ImportConfig,
    cursor: Any,
    error_log: ErrorLogBuffer,
    conflict_resolver: ConflictResolver | None,
) -> None:
    if not (config.catalog.reconcile or config.catalog.save_new_parts):
        return
    catalog = fetch_catalog(cursor)

    if config.catalog.reconcile:
        conflicts = find_conflicts(line_items, catalog)
        if conflicts:
            if conflict_resolver is not None:
                conflict_resolver(conflicts)
            updated = resolve_conflicts(conflicts, catalog)
            apply_conflict_resolutions(cursor, conflicts)
            kept = len(conflicts) - len(updated)
            if kept:
                message = f"{kept} catalog conflict(s) kept saved values"
                logger.warning(f"{file_name}: {message}")
                error_log.add(file_name, "CATALOG_CONFLICT", message, sheet=FILE_LEVEL)

    if config.catalog.save_new_parts:
        new_parts = select_new_parts(line_items, catalog)
        saved = save_new_parts(cursor, new_parts, config.writer.batch_size)
        for message in saved.errors:
            error_log.add(file_name, "CATALOG_ERROR", message)
