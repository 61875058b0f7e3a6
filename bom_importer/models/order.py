from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

"""Import payload models: tools, line items, the order and the ImportResult.

These are the plain data structures handed back to the caller. Nothing here
talks to the store; ``bom_importer.db.store`` turns them into rows.
"""

__all__ = [
    "ImportedTool",
    "ImportedLineItem",
    "ImportedOrder",
    "ImportResult",
]


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class ImportedTool:
    """One physical tool to be created (tool_number unique within an order)."""
    tool_number: str
    tool_model: str | None = None
    serial_number: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class ImportedLineItem:
    """One part requirement; both quantities are >= 1 once emitted."""
    part_number: str
    description: str | None = None
    location: str | None = None
    qty_per_unit: int = 1
    total_qty_needed: int = 1
    tool_ids: list[str] | None = None  # tool numbers the part applies to (None = all tools)
    assembly_group: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class ImportedOrder:
    so_number: str
    tools: list[ImportedTool]
    line_items: list[ImportedLineItem]
    po_number: str | None = None
    customer_name: str | None = None
    order_date: str | None = None  # ISO date (YYYY-MM-DD)
    due_date: str | None = None
    # part_number -> tool numbers, filled only by the multi tool-type format
    tool_assignments: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "so_number": self.so_number,
            "po_number": self.po_number,
            "customer_name": self.customer_name,
            "order_date": self.order_date,
            "due_date": self.due_date,
        }
        data = _drop_none(data)
        data["tools"] = [t.to_dict() for t in self.tools]
        data["line_items"] = [li.to_dict() for li in self.line_items]
        return data


@dataclass
class ImportResult:
    """Outcome of one parse. ``order`` is set only when ``success`` is True."""
    success: bool
    order: ImportedOrder | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def failure(cls, message: str, warnings: list[str] | None = None) -> ImportResult:
        return cls(success=False, order=None, errors=[message], warnings=list(warnings or []))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.order is not None:
            data["order"] = self.order.to_dict()
        data["errors"] = list(self.errors)
        data["warnings"] = list(self.warnings)
        return data
