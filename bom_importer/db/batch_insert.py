from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from psycopg2.extras import execute_values

"""Batched INSERTs with psycopg2.extras.execute_values.

``batch_insert`` issues one statement (optionally with RETURNING) and raises on
failure. ``write_batches`` splits rows into fixed-size batches, each guarded by
a SAVEPOINT: a failed batch is rolled back to its savepoint, recorded, and the
remaining batches still run inside the caller's transaction.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "BatchWriteResult",
    "batch_insert",
    "write_batches",
]

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single execute_values call."""
    batch_size: int  # Number of rows in this batch
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


@dataclass
class BatchWriteResult:
    inserted_rows: int = 0
    total_batches: int = 0
    failed_batches: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed_batches == 0


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: Sequence[str] | None = None,
    on_conflict: str | None = None,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform one batched INSERT.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (trusted identifier)
    columns: insert columns
    rows: row tuples in ``columns`` order
    returning: columns to return (RETURNING clause); None = no RETURNING
    on_conflict: conflict target + action, e.g. "(part_number) DO NOTHING";
        skipped rows are left out of ``inserted_rows``
    page_size: execute_values page size
    metrics_callback: receives BatchMetrics after the statement ran (not invoked
        for an empty ``rows``)

    Raises
    ------
    BatchInsertError: the statement or the RETURNING fetch failed
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"
    if on_conflict:
        sql += f" ON CONFLICT {on_conflict}"
    if returning:
        sql += " RETURNING " + ",".join(f'"{c}"' for c in returning)

    start_time = time.time()
    try:
        returned = execute_values(
            cursor, sql, rows_list, page_size=page_size, fetch=bool(returning)
        )
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    inserted_rows = len(rows_list)
    if returning:
        inserted_rows = len(returned)
    elif on_conflict and len(rows_list) <= page_size and cursor.rowcount >= 0:
        # rows skipped by ON CONFLICT are not inserted; rowcount covers the last page only
        inserted_rows = cursor.rowcount

    return InsertResult(
        inserted_rows=inserted_rows,
        returned_values=[tuple(r) for r in returned] if returning else None,
    )


def write_batches(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    batch_size: int = DEFAULT_BATCH_SIZE,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
    on_conflict: str | None = None,
) -> BatchWriteResult:
    """Insert ``rows`` in batches of ``batch_size``; failed batches do not stop the rest.

    Example usage for batch timing statistics:
        accumulator = BatchStatsAccumulator()
        result = write_batches(cur, "line_items", cols, rows,
                               metrics_callback=lambda m: accumulator.add_batch_time(m.elapsed_seconds))
        total, avg, p95 = accumulator.get_stats()
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    rows_list = list(rows)
    result = BatchWriteResult()

    for offset in range(0, len(rows_list), batch_size):
        batch = rows_list[offset:offset + batch_size]
        batch_no = offset // batch_size + 1
        savepoint = f"batch_{batch_no}"
        result.total_batches += 1
        cursor.execute(f"SAVEPOINT {savepoint}")
        try:
            inserted = batch_insert(
                cursor,
                table,
                columns,
                batch,
                on_conflict=on_conflict,
                page_size=batch_size,
                metrics_callback=metrics_callback,
            )
        except BatchInsertError as e:
            cursor.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
            result.failed_batches += 1
            result.errors.append(f"batch {batch_no} ({len(batch)} rows): {e}")
            logger.debug("batch failed table=%s batch=%d err=%s", table, batch_no, e)
            continue
        cursor.execute(f"RELEASE SAVEPOINT {savepoint}")
        result.inserted_rows += inserted.inserted_rows

    return result
