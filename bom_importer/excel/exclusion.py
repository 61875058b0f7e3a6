from __future__ import annotations

from ..models.config_models import DEFAULT_INACTIVE_FILL
from ..models.grid import Grid

"""Inactive (grey) row detection.

Authors mark rows that must not be picked by filling the first cell with a
reserved grey. There is no textual "active" flag; the fill is the only signal.
"""

__all__ = [
    "find_excluded_rows",
]


def _normalize_color(color: str) -> str:
    return color.strip().lstrip("#").upper()[-6:]


def find_excluded_rows(
    grid: Grid, color: str = DEFAULT_INACTIVE_FILL, column: int = 0
) -> set[int]:
    """Return zero-based indices of rows whose marker cell carries ``color``."""
    target = _normalize_color(color)
    return {
        row
        for (row, col), rgb in grid.fills.items()
        if col == column and _normalize_color(rgb) == target
    }
