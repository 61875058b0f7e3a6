from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Grid and ColumnMapping models.

A Grid is one decoded sheet: rows of cell values plus (where the source format
carries styling) the solid fill color of individual cells. Every downstream
component reads cells through ``Grid.cell`` so that ragged rows behave as if
they were padded with empty strings.
"""

__all__ = [
    "Grid",
    "ColumnMapping",
]


@dataclass(frozen=True)
class Grid:
    """One decoded sheet (read-only after loading)."""
    name: str
    rows: list[list[Any]]
    fills: dict[tuple[int, int], str] = field(default_factory=dict)  # (row, col) -> RRGGBB

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def width(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    def row(self, index: int) -> list[Any]:
        if 0 <= index < len(self.rows):
            return self.rows[index]
        return []

    def cell(self, row: int, col: int) -> Any:
        values = self.row(row)
        if 0 <= col < len(values):
            value = values[col]
            return "" if value is None else value
        return ""

    def fill(self, row: int, col: int) -> str | None:
        return self.fills.get((row, col))


@dataclass(frozen=True)
class ColumnMapping:
    """Detected semantic layout of one header row.

    Scalar roles hold a zero-based column index or None when the role was not
    found. ``tool_columns`` maps a normalized tool id to its column index in
    left-to-right scan order.
    """
    part_number: int | None = None
    description: int | None = None
    location: int | None = None
    qty_per_unit: int | None = None
    total_qty: int | None = None
    level: int | None = None
    tool_columns: dict[str, int] = field(default_factory=dict)

    @property
    def has_tool_columns(self) -> bool:
        return bool(self.tool_columns)
