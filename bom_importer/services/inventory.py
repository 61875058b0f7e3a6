from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from ..excel.quantities import parse_qty
from ..excel.reader import ImportStructureError, cell_text, load_file
from ..models.catalog import InventoryRecord
from ..models.grid import Grid

"""Inventory export reader.

Reads a stock export (first sheet, header on row 0) and keeps, per part, the
record of the newest lot. Lot ids start with a timestamp, so plain string
comparison orders them by age.
"""

__all__ = [
    "SKIP_LOCATIONS",
    "InventoryParseResult",
    "parse_inventory",
    "parse_inventory_file",
]

SKIP_LOCATIONS = ("awaiting inspection", "receiving", "qa", "quarantine")


@dataclass
class InventoryParseResult:
    success: bool
    inventory: dict[str, InventoryRecord] = field(default_factory=dict)
    total_records: int = 0
    unique_parts: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "total_records": self.total_records,
            "unique_parts": self.unique_parts,
            "errors": self.errors,
            "inventory": {part: asdict(record) for part, record in sorted(self.inventory.items())},
        }


@dataclass
class _InventoryColumns:
    product_id: int | None = None
    lot_id: int | None = None
    location: int | None = None
    qty_available: int | None = None


def _detect_columns(header: list[Any]) -> _InventoryColumns:
    cols = _InventoryColumns()
    for idx, value in enumerate(header):
        text = cell_text(value).lower()
        if ("product" in text and "id" in text) or text in {"productid", "part number", "part_number"}:
            cols.product_id = idx
        if ("lot" in text and "id" in text) or text == "lotid":
            cols.lot_id = idx
        if text in {"location", "loc", "bin"}:
            cols.location = idx
        if ("qty" in text and "available" in text) or text in {"qtyavailable", "available"}:
            cols.qty_available = idx
    return cols


def _value(row: list[Any], col: int | None) -> Any:
    if col is None or col >= len(row):
        return ""
    return row[col]


def parse_inventory(grid: Grid) -> InventoryParseResult:
    """Build the newest-lot inventory map from one sheet."""
    if grid.row_count < 2:
        return InventoryParseResult(success=False, errors=["Sheet has no data rows"])
    cols = _detect_columns(grid.row(0))
    if cols.product_id is None:
        return InventoryParseResult(
            success=False, errors=["Could not find Product Id column in inventory file"]
        )

    inventory: dict[str, InventoryRecord] = {}
    total = 0
    for idx in range(1, grid.row_count):
        row = grid.row(idx)
        part_number = cell_text(_value(row, cols.product_id))
        if not part_number:
            continue
        location = cell_text(_value(row, cols.location))
        lowered = location.lower()
        if not location or any(skip in lowered for skip in SKIP_LOCATIONS):
            continue
        record = InventoryRecord(
            part_number=part_number,
            location=location,
            qty_available=parse_qty(_value(row, cols.qty_available)),
            lot_id=cell_text(_value(row, cols.lot_id)),
        )
        total += 1
        existing = inventory.get(part_number)
        if existing is None or record.lot_id > existing.lot_id:
            inventory[part_number] = record

    return InventoryParseResult(
        success=True,
        inventory=inventory,
        total_records=total,
        unique_parts=len(inventory),
    )


def parse_inventory_file(path: Path) -> InventoryParseResult:
    try:
        grids = load_file(path)
    except (OSError, ImportStructureError) as e:
        return InventoryParseResult(success=False, errors=[f"Failed to parse inventory file: {e}"])
    return parse_inventory(grids[0])
