from __future__ import annotations

import re
from collections.abc import Callable, Collection, Sequence
from enum import Enum
from typing import Any

from ..models.grid import ColumnMapping, Grid
from .reader import ImportStructureError, cell_text

"""Header row detection and column role classification.

Header wording is not standardized across BOM authors, so each header cell is
classified by an ordered rule table. Within one cell the LAST matching rule
decides the role ("Total Qty Needed" is a total, not a per-unit qty). Across a
row, each scalar role is claimed by the FIRST column that carries it; every
tool-id column is kept.
"""

__all__ = [
    "HeaderRole",
    "HeaderNotFoundError",
    "HEADER_RULES",
    "TOOL_ID_PATTERN",
    "classify_header",
    "normalize_tool_id",
    "classify_header_row",
    "detect_columns",
    "header_signals_quantity",
]

DEFAULT_HEADER_SEARCH_ROWS = 10


class HeaderNotFoundError(ImportStructureError):
    """Raised when no row in the search window has a part-number column."""

    def __init__(self, message: str = "Could not find header row with Part Number column") -> None:
        super().__init__(message)


class HeaderRole(Enum):
    PART_NUMBER = "part_number"
    DESCRIPTION = "description"
    LOCATION = "location"
    QTY_PER_UNIT = "qty_per_unit"
    TOTAL_QTY = "total_qty"
    LEVEL = "level"
    TOOL = "tool"


# "3137-1" | "Tool 1" | "Unit 1" | "SN1" | "NG1" / "PT12"
TOOL_ID_PATTERN = re.compile(
    r"^(\d+-\d+)$|^tool\s*(\d+)$|^unit\s*(\d+)$|^sn(\d+)$|^([a-z]{1,3})(\d+)$",
    re.IGNORECASE,
)


def _contains(*words: str) -> Callable[[str], bool]:
    return lambda text: all(w in text for w in words)


def _exact(*values: str) -> Callable[[str], bool]:
    options = frozenset(values)
    return lambda text: text in options


# Evaluated top to bottom; the last rule that matches a cell wins.
HEADER_RULES: list[tuple[Callable[[str], bool], HeaderRole]] = [
    # part number
    (lambda t: "part" in t and ("num" in t or "#" in t or "no" in t), HeaderRole.PART_NUMBER),
    (_exact("part", "part#", "pn", "ref_pn"), HeaderRole.PART_NUMBER),
    # description
    (_contains("desc"), HeaderRole.DESCRIPTION),
    (_exact("description", "name"), HeaderRole.DESCRIPTION),
    # location
    (_contains("loc"), HeaderRole.LOCATION),
    (_exact("location", "bin"), HeaderRole.LOCATION),
    (_contains("stock"), HeaderRole.LOCATION),
    # per-unit quantity
    (lambda t: "qty" in t and ("per" in t or "unit" in t), HeaderRole.QTY_PER_UNIT),
    (_exact("qty", "qty.", "quantity"), HeaderRole.QTY_PER_UNIT),
    (_contains("qty", "ea"), HeaderRole.QTY_PER_UNIT),  # "QTY. EA"
    (lambda t: "qty" in t and "need" in t and "tool" not in t, HeaderRole.QTY_PER_UNIT),
    # total quantity
    (_contains("total", "qty"), HeaderRole.TOTAL_QTY),
    (_exact("total"), HeaderRole.TOTAL_QTY),
    (_contains("ext", "qty"), HeaderRole.TOTAL_QTY),
    (_contains("tool", "qty", "need"), HeaderRole.TOTAL_QTY),  # "Tool Qty Need"
    # nesting level of multi-level BOMs
    (_exact("level", "lvl", "bom level"), HeaderRole.LEVEL),
    # per-tool quantity columns
    (lambda t: TOOL_ID_PATTERN.match(t) is not None, HeaderRole.TOOL),
]


def classify_header(text: str) -> HeaderRole | None:
    """Classify one header cell (already lower-cased and trimmed)."""
    role: HeaderRole | None = None
    for predicate, candidate in HEADER_RULES:
        if predicate(text):
            role = candidate
    return role


def normalize_tool_id(text: str) -> str | None:
    """Map a tool column header to its canonical tool id, None if not a tool column."""
    m = TOOL_ID_PATTERN.match(text.strip())
    if m is None:
        return None
    if m.group(1):
        return m.group(1)
    if m.group(2):
        return f"Tool-{m.group(2)}"
    if m.group(3):
        return f"Unit-{m.group(3)}"
    if m.group(4):
        return f"SN{m.group(4)}"
    return f"{m.group(5).upper()}{m.group(6)}"


def classify_header_row(row: Sequence[Any], ignore_columns: Collection[int] = ()) -> ColumnMapping:
    """Build a ColumnMapping from one candidate header row."""
    claimed: dict[HeaderRole, int] = {}
    tool_columns: dict[str, int] = {}
    for col, value in enumerate(row):
        if col in ignore_columns:
            continue
        text = cell_text(value).lower()
        if not text:
            continue
        role = classify_header(text)
        if role is None:
            continue
        if role is HeaderRole.TOOL:
            tool_id = normalize_tool_id(text)
            if tool_id is not None:
                tool_columns.setdefault(tool_id, col)
            continue
        claimed.setdefault(role, col)
    return ColumnMapping(
        part_number=claimed.get(HeaderRole.PART_NUMBER),
        description=claimed.get(HeaderRole.DESCRIPTION),
        location=claimed.get(HeaderRole.LOCATION),
        qty_per_unit=claimed.get(HeaderRole.QTY_PER_UNIT),
        total_qty=claimed.get(HeaderRole.TOTAL_QTY),
        level=claimed.get(HeaderRole.LEVEL),
        tool_columns=tool_columns,
    )


def detect_columns(
    grid: Grid,
    excluded: Collection[int] = frozenset(),
    search_rows: int = DEFAULT_HEADER_SEARCH_ROWS,
) -> tuple[int, ColumnMapping]:
    """Find the header row and its mapping.

    The first non-excluded row within ``search_rows`` that yields a part-number
    column is authoritative; later rows are never scored against it.

    Raises
    ------
    HeaderNotFoundError: no such row in the window
    """
    for idx in range(min(search_rows, grid.row_count)):
        if idx in excluded:
            continue
        mapping = classify_header_row(grid.row(idx))
        if mapping.part_number is not None:
            return idx, mapping
    raise HeaderNotFoundError()


def header_signals_quantity(value: Any) -> bool:
    text = cell_text(value).lower()
    return "qty" in text or "quantity" in text
