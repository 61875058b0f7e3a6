from __future__ import annotations

import re

from ..models.grid import ColumnMapping
from ..models.order import ImportedTool

__all__ = [
    "tool_sort_key",
    "extract_tools",
    "synthesize_tools",
]

_NON_DIGIT = re.compile(r"\D")


def tool_sort_key(tool_number: str) -> int:
    """Numeric sort key: all digits of the id joined (no digits -> 0)."""
    digits = _NON_DIGIT.sub("", tool_number)
    return int(digits) if digits else 0


def extract_tools(mapping: ColumnMapping) -> list[ImportedTool]:
    """One tool per detected tool column, ordered by the digits in the id."""
    tools = [ImportedTool(tool_number=tool_id) for tool_id in mapping.tool_columns]
    # sorted() is stable: ids with equal keys keep their column order
    return sorted(tools, key=lambda t: tool_sort_key(t.tool_number))


def synthesize_tools(
    so_number: str, count: int, model: str | None = None, start: int = 1
) -> list[ImportedTool]:
    """Generate ``{so}-{n}`` tool numbers for orders without tool columns."""
    return [
        ImportedTool(tool_number=f"{so_number}-{n}", tool_model=model)
        for n in range(start, start + max(count, 1))
    ]
