from __future__ import annotations

from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font

"""Blank import templates for BOM authors.

``single``: Order Info + one Parts sheet shared by every tool of the order.
``multi``: Order Info + one sheet per tool type ("230Q", "450Q"); the first
column of the first data row holds the number of tools of that type.
Both carry an Instructions sheet, which the importer ignores.
"""

__all__ = [
    "TEMPLATE_FORMATS",
    "write_import_template",
]

TEMPLATE_FORMATS = ("single", "multi")

_PARTS_HEADER = ["Part Number", "Description", "Location", "Qty/Unit"]
_TOOL_TYPE_HEADER = ["Qty", *_PARTS_HEADER]

_SINGLE_ORDER_INFO = [
    ["Order Information", ""],
    ["", ""],
    ["SO Number", "3137"],
    ["PO Number", "PO-12345"],
    ["Customer", "ACME Corporation"],
    ["Tool Qty", 5],
    ["Tool Model", "230Q"],
    ["Order Date", "2024-01-15"],
    ["Due Date", "2024-02-15"],
]

_MULTI_ORDER_INFO = [
    ["Order Information", ""],
    ["", ""],
    ["SO Number", "3137"],
    ["PO Number", "PO-12345"],
    ["Customer", "ACME Corporation"],
    ["Order Date", "2024-01-15"],
    ["Due Date", "2024-02-15"],
    ["", ""],
    ["Note: Each additional sheet represents a tool type with its own BOM", ""],
]

_SINGLE_PARTS = [
    ["ABC-123", "Widget Assembly", "A-01", 2],
    ["DEF-456", "Spring Kit", "B-02", 1],
    ["GHI-789", "Gasket Set", "C-03", 4],
    ["JKL-012", "Bearing Pack", "A-05", 2],
    ["MNO-345", "Seal Ring", "D-01", 3],
]

_TOOL_TYPES: dict[str, list[list[Any]]] = {
    "230Q": [
        [2, "ABC-123", "Widget Assembly", "A-01", 2],
        ["", "DEF-456", "230Q Spring Kit", "B-02", 1],
        ["", "GHI-789", "230Q Gasket Set", "C-03", 4],
        ["", "QRS-230", "230Q Specific Part", "E-01", 1],
    ],
    "450Q": [
        [1, "ABC-123", "Widget Assembly", "A-01", 2],
        ["", "TUV-450", "450Q Spring Kit", "B-05", 1],
        ["", "WXY-450", "450Q Gasket Set", "C-08", 4],
        ["", "ZAB-450", "450Q Specific Part", "F-01", 2],
    ],
}

_INSTRUCTIONS = [
    "Import Template Instructions",
    "",
    "SINGLE TOOL TYPE FORMAT",
    "Use this format when all tools in the order have the same parts list.",
    "- Order Info: SO Number (required), PO Number, Customer, Tool Qty (default 1),",
    "  Tool Model, Order Date and Due Date (YYYY-MM-DD)",
    "- Parts: Part Number (required), Description, Location, Qty/Unit",
    "",
    "MULTIPLE TOOL TYPES FORMAT",
    "Use this format when tools in the order have different parts lists.",
    "- Order Info: same as single format, without Tool Qty or Tool Model",
    '- One sheet per tool type (e.g. "230Q"); the sheet name becomes the tool model',
    '- First column "Qty" in the first data row = number of tools of this type',
    'Example: "230Q" with Qty=2 creates tools 3137-1 and 3137-2,',
    '         "450Q" with Qty=1 creates tool 3137-3',
    "",
    "LEGACY FORMAT",
    "- Single sheet with Part Number, Description, Location columns",
    '- Tool columns like "3137-1", "3137-2" hold per-tool quantities',
    "",
    "TIPS",
    "- Parts with the same part number are combined",
    "- Rows whose first cell is filled grey are skipped",
]


def _append_sheet(wb: Workbook, title: str, rows: list[list[Any]], widths: list[int]) -> None:
    ws = wb.create_sheet(title=title)
    for row in rows:
        ws.append(row)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for idx, width in enumerate(widths):
        ws.column_dimensions[chr(ord("A") + idx)].width = width


def write_import_template(path: Path, fmt: str = "single") -> Path:
    """Write an example import workbook to ``path`` and return it.

    Raises
    ------
    ValueError: unknown ``fmt``
    """
    if fmt not in TEMPLATE_FORMATS:
        raise ValueError(f"Unknown template format: {fmt} (expected one of {', '.join(TEMPLATE_FORMATS)})")
    wb = Workbook()
    wb.remove(wb.active)

    if fmt == "single":
        _append_sheet(wb, "Order Info", _SINGLE_ORDER_INFO, [20, 24])
        _append_sheet(wb, "Parts", [_PARTS_HEADER, *_SINGLE_PARTS], [15, 30, 12, 10])
    else:
        _append_sheet(wb, "Order Info", _MULTI_ORDER_INFO, [20, 24])
        for sheet_name, rows in _TOOL_TYPES.items():
            _append_sheet(wb, sheet_name, [_TOOL_TYPE_HEADER, *rows], [6, 15, 30, 12, 10])
    _append_sheet(wb, "Instructions", [[line] for line in _INSTRUCTIONS], [70])

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return path
