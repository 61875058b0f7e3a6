from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

from ..models.grid import Grid
from .quantities import parse_qty
from .reader import cell_text

"""Order Info sheet reader.

The Order Info sheet is a label/value list (label in column A, value in column B).
Labels are matched against an ordered alias table; the first rule that matches a
label decides which order field the value feeds.
"""

__all__ = [
    "OrderInfo",
    "ORDER_INFO_RULES",
    "match_order_label",
    "read_order_info",
    "to_iso_date",
    "so_number_from_filename",
]

DEFAULT_SCAN_ROWS = 20
EXCEL_EPOCH = datetime(1899, 12, 30)
_MAX_EXCEL_SERIAL = 2958465  # 9999-12-31
_SO_PREFIX = re.compile(r"^SO[- ]?", re.IGNORECASE)
_SO_IN_FILENAME = re.compile(r"SO[- ]?(\d+)", re.IGNORECASE)
_WORKBOOK_SUFFIX = re.compile(r"\.(xlsx|xlsm|xls|csv)$", re.IGNORECASE)


@dataclass
class OrderInfo:
    so_number: str | None = None
    po_number: str | None = None
    customer_name: str | None = None
    order_date: str | None = None
    due_date: str | None = None
    tool_qty: int | None = None
    tool_model: str | None = None
    warnings: list[str] = field(default_factory=list)


def _has_number_marker(label: str) -> bool:
    return "number" in label or "#" in label or "no" in label


# (predicate, field); evaluated top to bottom, first match wins
ORDER_INFO_RULES: list[tuple[Callable[[str], bool], str]] = [
    (lambda l: "so" in l and _has_number_marker(l), "so_number"),
    (lambda l: l in {"so number", "so#", "so"}, "so_number"),
    (lambda l: "po" in l and _has_number_marker(l), "po_number"),
    (lambda l: l in {"po number", "po#", "po"}, "po_number"),
    (lambda l: "customer" in l or "client" in l, "customer_name"),
    (lambda l: "tool" in l and "qty" in l, "tool_qty"),
    (lambda l: "tool" in l and "model" in l, "tool_model"),
    (lambda l: "order" in l and "date" in l, "order_date"),
    (lambda l: "due" in l and "date" in l, "due_date"),
]


def match_order_label(label: str) -> str | None:
    text = label.lower().strip()
    for predicate, field_name in ORDER_INFO_RULES:
        if predicate(text):
            return field_name
    return None


def to_iso_date(value: Any) -> str | None:
    """Best-effort ISO (YYYY-MM-DD) rendering of a date cell."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if 0 < value <= _MAX_EXCEL_SERIAL:
            return (EXCEL_EPOCH + timedelta(days=float(value))).date().isoformat()
        return None
    text = cell_text(value)
    if not text:
        return None
    if text.isdigit():
        return to_iso_date(int(text))
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date().isoformat()


def read_order_info(grid: Grid, scan_rows: int = DEFAULT_SCAN_ROWS) -> OrderInfo:
    """Scan the first ``scan_rows`` rows for label/value pairs."""
    info = OrderInfo()
    for idx in range(min(scan_rows, grid.row_count)):
        label = cell_text(grid.cell(idx, 0)).lower()
        raw_value = grid.cell(idx, 1)
        value = cell_text(raw_value)
        if not label or not value:
            continue
        field_name = match_order_label(label)
        if field_name is None:
            continue
        if field_name == "so_number":
            info.so_number = _SO_PREFIX.sub("", value) or None
        elif field_name == "tool_qty":
            info.tool_qty = parse_qty(raw_value)
        elif field_name in ("order_date", "due_date"):
            iso = to_iso_date(raw_value)
            if iso is None:
                info.warnings.append(f"Could not parse {field_name.replace('_', ' ')} '{value}' - ignored")
            setattr(info, field_name, iso)
        else:
            setattr(info, field_name, value)
    return info


def so_number_from_filename(file_name: str) -> tuple[str, bool]:
    """Return (so_number, matched). Falls back to the name without extension."""
    m = _SO_IN_FILENAME.search(file_name)
    if m:
        return m.group(1), True
    return _WORKBOOK_SUFFIX.sub("", file_name).strip(), False
