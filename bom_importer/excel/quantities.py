from __future__ import annotations

import math
import re
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ..models.grid import ColumnMapping
from .reader import cell_text

"""Quantity parsing and derivation for one BOM row.

Source files carry quantities in inconsistent places: per-tool columns, a
per-unit column, a total column, or some mix. Tool columns win over any generic
"qty" column because generic columns are ambiguous between per-unit and total
in real files. The first tool column stands in for the per-unit quantity; a
per-tool-per-part quantity is not modelled.
"""

__all__ = [
    "parse_qty",
    "parse_amount",
    "is_skippable_part",
    "read_part_number",
    "resolve_quantities",
    "resolve_flat_quantities",
]

_NON_NUMERIC = re.compile(r"[^\d.\-]")
# leading float literal, tolerant of trailing junk ("12.5.3" -> 12.5)
_FLOAT_PREFIX = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)")


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_qty(value: Any) -> int:
    """Parse a cell as a non-negative integer quantity.

    Numbers are rounded to the nearest integer and floored at zero. Text is
    stripped of everything except digits, '.' and '-' before parsing; anything
    non-numeric yields 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return max(0, _round_half_up(value))
    if isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value)
        m = _FLOAT_PREFIX.match(cleaned)
        if m is None:
            return 0
        return max(0, _round_half_up(float(m.group(0))))
    return 0


def parse_amount(value: Any) -> float | None:
    """Parse a cell as a raw (possibly fractional) amount; None when blank or non-numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        m = _FLOAT_PREFIX.match(_NON_NUMERIC.sub("", value))
        return float(m.group(0)) if m else None
    return None


def is_skippable_part(part_number: str) -> bool:
    """Empty part numbers and repeated header rows are row-level noise."""
    if not part_number:
        return True
    lowered = part_number.lower()
    return "part" in lowered and "number" in lowered


def _cell(row: Sequence[Any], col: int | None) -> Any:
    if col is None or col < 0 or col >= len(row):
        return ""
    value = row[col]
    return "" if value is None else value


def read_part_number(row: Sequence[Any], mapping: ColumnMapping) -> str | None:
    part_number = cell_text(_cell(row, mapping.part_number))
    if is_skippable_part(part_number):
        return None
    return part_number


def resolve_quantities(
    row: Sequence[Any],
    mapping: ColumnMapping,
    tool_count: int,
    default_per_unit: int = 0,
) -> tuple[int, int] | None:
    """Resolve (qty_per_unit, total_qty_needed) for one row.

    Priority:
    1. tool columns: per-unit = first tool column, total = sum of all tool columns
    2. otherwise the dedicated per-unit / total columns, read independently
       (``default_per_unit`` stands in when there is no per-unit column)
    3. missing total -> per-unit x tool count
    4. missing per-unit -> ceil(total / tool count)

    Returns None when neither quantity is positive.
    """
    tools = max(tool_count, 1)
    per_unit = 0
    total = 0

    if mapping.tool_columns:
        columns = list(mapping.tool_columns.values())
        per_unit = parse_qty(_cell(row, columns[0]))
        total = sum(parse_qty(_cell(row, c)) for c in columns)
    else:
        if mapping.qty_per_unit is not None:
            per_unit = parse_qty(_cell(row, mapping.qty_per_unit))
        else:
            per_unit = default_per_unit
        if mapping.total_qty is not None:
            total = parse_qty(_cell(row, mapping.total_qty))

    if total == 0 and per_unit > 0:
        total = per_unit * tools
    if per_unit == 0 and total > 0:
        per_unit = math.ceil(total / tools)

    if per_unit <= 0 and total <= 0:
        return None
    return (per_unit or 1, total or per_unit)


def resolve_flat_quantities(
    row: Sequence[Any], mapping: ColumnMapping, tool_count: int
) -> tuple[int, int] | None:
    """Quantity model shared by every tool of an order (Order Info + Parts format).

    Per-unit comes from the per-unit column (1 when there is none); the total is
    always per-unit x tool count.
    """
    if mapping.qty_per_unit is not None:
        per_unit = parse_qty(_cell(row, mapping.qty_per_unit))
    else:
        per_unit = 1
    if per_unit <= 0:
        return None
    return (per_unit, per_unit * max(tool_count, 1))
