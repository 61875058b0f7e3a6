from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..models.catalog import CatalogPart, ConflictAction, PartConflict
from ..models.order import ImportedOrder
from .batch_insert import (
    BatchMetrics,
    BatchWriteResult,
    batch_insert,
    write_batches,
)

"""Order and parts catalog persistence.

Tables (PostgreSQL):
- orders(id, so_number UNIQUE, po_number, customer_name, order_date, due_date, status)
- tools(id, order_id, tool_number, tool_model, serial_number, status)
- line_items(id, order_id, part_number, description, location, qty_per_unit,
  total_qty_needed, tool_ids, assembly_group)
- parts_catalog(part_number PRIMARY KEY, description, default_location, updated_at)

Every function runs on the caller's cursor; transaction boundaries belong to the
orchestrator.
"""

__all__ = [
    "ORDER_COLUMNS",
    "TOOL_COLUMNS",
    "LINE_ITEM_COLUMNS",
    "CommitResult",
    "fetch_catalog",
    "order_exists",
    "commit_order",
    "apply_conflict_resolutions",
    "save_new_parts",
]

logger = logging.getLogger(__name__)

ORDER_COLUMNS = ("so_number", "po_number", "customer_name", "order_date", "due_date", "status")
TOOL_COLUMNS = ("order_id", "tool_number", "tool_model", "serial_number", "status")
LINE_ITEM_COLUMNS = (
    "order_id",
    "part_number",
    "description",
    "location",
    "qty_per_unit",
    "total_qty_needed",
    "tool_ids",
    "assembly_group",
)
CATALOG_COLUMNS = ("part_number", "description", "default_location")


@dataclass
class CommitResult:
    so_number: str
    order_id: Any = None
    skipped: bool = False  # the SO number already exists
    tools: int = 0
    line_items: BatchWriteResult = field(default_factory=BatchWriteResult)


def fetch_catalog(cursor: Any) -> dict[str, CatalogPart]:
    """Load the whole parts catalog keyed by part number."""
    cursor.execute(
        "SELECT part_number, description, default_location, updated_at FROM parts_catalog"
    )
    return {
        row[0]: CatalogPart(
            part_number=row[0], description=row[1], default_location=row[2], updated_at=row[3]
        )
        for row in cursor.fetchall()
    }


def order_exists(cursor: Any, so_number: str) -> bool:
    cursor.execute("SELECT 1 FROM orders WHERE so_number = %s", (so_number,))
    return cursor.fetchone() is not None


def commit_order(
    cursor: Any,
    order: ImportedOrder,
    batch_size: int = 50,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> CommitResult:
    """Insert one order with its tools and line items.

    An SO number already present in ``orders`` is skipped, not updated.
    ``tool_ids`` on line items hold tool numbers; they are mapped to the ids
    of the inserted tools (unknown numbers dropped, empty -> NULL = all tools).
    """
    result = CommitResult(so_number=order.so_number)
    if order_exists(cursor, order.so_number):
        logger.info(f"order {order.so_number} already exists - skipped")
        result.skipped = True
        return result

    inserted = batch_insert(
        cursor,
        "orders",
        ORDER_COLUMNS,
        [(
            order.so_number,
            order.po_number,
            order.customer_name,
            order.order_date,
            order.due_date,
            "active",
        )],
        returning=("id",),
    )
    order_id = inserted.returned_values[0][0]
    result.order_id = order_id

    tool_rows = [
        (order_id, t.tool_number, t.tool_model, t.serial_number, "pending") for t in order.tools
    ]
    tools = batch_insert(cursor, "tools", TOOL_COLUMNS, tool_rows, returning=("id", "tool_number"))
    tool_id_map = {number: tool_id for tool_id, number in tools.returned_values or []}
    result.tools = tools.inserted_rows

    item_rows = []
    for item in order.line_items:
        tool_ids = None
        if item.tool_ids:
            tool_ids = [tool_id_map[n] for n in item.tool_ids if n in tool_id_map] or None
        item_rows.append((
            order_id,
            item.part_number,
            item.description,
            item.location,
            item.qty_per_unit,
            item.total_qty_needed,
            tool_ids,
            item.assembly_group,
        ))
    result.line_items = write_batches(
        cursor, "line_items", LINE_ITEM_COLUMNS, item_rows, batch_size, metrics_callback
    )
    return result


def apply_conflict_resolutions(
    cursor: Any, conflicts: Iterable[PartConflict], now: datetime | None = None
) -> int:
    """Write ``update`` resolutions to parts_catalog; returns the number of parts updated."""
    stamp = now or datetime.now(UTC)
    updated = 0
    for conflict in conflicts:
        if conflict.effective_action is not ConflictAction.UPDATE:
            continue
        cursor.execute(
            "UPDATE parts_catalog SET description = %s, default_location = %s, updated_at = %s "
            "WHERE part_number = %s",
            (conflict.import_description, conflict.import_location, stamp, conflict.part_number),
        )
        updated += 1
    return updated


def save_new_parts(
    cursor: Any, parts: Sequence[CatalogPart], batch_size: int = 50
) -> BatchWriteResult:
    """Insert catalog entries; part numbers already present are left untouched."""
    rows = [(p.part_number, p.description, p.default_location) for p in parts]
    if not rows:
        return BatchWriteResult()
    return write_batches(
        cursor,
        "parts_catalog",
        CATALOG_COLUMNS,
        rows,
        batch_size,
        on_conflict="(part_number) DO NOTHING",
    )
