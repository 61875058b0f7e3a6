from __future__ import annotations

import logging
from collections.abc import Collection, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..excel.columns import (
    HeaderNotFoundError,
    classify_header_row,
    detect_columns,
    header_signals_quantity,
)
from ..excel.exclusion import find_excluded_rows
from ..excel.hierarchy import resolve_hierarchy_leaves
from ..excel.order_info import OrderInfo, read_order_info, so_number_from_filename
from ..excel.quantities import (
    parse_amount,
    parse_qty,
    read_part_number,
    resolve_flat_quantities,
    resolve_quantities,
)
from ..excel.reader import (
    ImportStructureError,
    NoSheetsError,
    cell_text,
    kind_from_name,
    load_workbook,
)
from ..excel.tools import extract_tools, synthesize_tools
from ..models.config_models import ParserSettings
from ..models.grid import ColumnMapping, Grid
from ..models.hierarchy import HierarchyRow
from ..models.order import ImportedLineItem, ImportedOrder, ImportedTool, ImportResult

"""Workbook format dispatch: the parse entry points of the engine.

Supported shapes:
1. Legacy single sheet (no "Order Info" sheet): parts list, optionally with
   per-tool quantity columns ("3137-1", "Tool 1", "NG1", ...)
2. "Order Info" + "Parts": one parts list shared by every tool of the order
3. "Order Info" + one sheet per tool type (e.g. "230Q", "450Q"): tools are
   numbered across sheets and same-part rows are merged

``parse_workbook`` / ``parse_bytes`` / ``parse_file`` never raise for expected
failures; they return an ImportResult with ``success=False`` and errors.
"""

__all__ = [
    "NO_LINE_ITEMS_ERROR",
    "collect_line_items",
    "parse_workbook",
    "parse_bytes",
    "parse_file",
]

logger = logging.getLogger(__name__)

NO_LINE_ITEMS_ERROR = "No valid line items found in the file"


@dataclass
class _ToolTypeSheet:
    sheet_name: str
    tool_qty: int
    line_items: list[ImportedLineItem]


def _is_order_info(name: str) -> bool:
    lowered = name.lower()
    return "order" in lowered and "info" in lowered


def _is_parts(name: str) -> bool:
    lowered = name.lower()
    return lowered == "parts" or ("part" in lowered and "order" not in lowered)


def _is_ignored(name: str, settings: ParserSettings) -> bool:
    lowered = name.lower()
    return any(keyword.lower() in lowered for keyword in settings.ignored_sheet_keywords)


def _iter_data_rows(
    grid: Grid, header_row: int, excluded: Collection[int]
) -> Iterator[tuple[int, list[Any]]]:
    for idx in range(header_row + 1, grid.row_count):
        if idx in excluded:
            continue
        yield idx, grid.row(idx)


def _text_at(row: Sequence[Any], col: int | None) -> str | None:
    if col is None or col >= len(row):
        return None
    return cell_text(row[col]) or None


def _merge_row(
    merged: dict[str, ImportedLineItem], item: ImportedLineItem
) -> None:
    """Same part twice in one sheet: the unit needs both rows, so both quantities add up."""
    existing = merged.get(item.part_number)
    if existing is None:
        merged[item.part_number] = item
        return
    existing.qty_per_unit += item.qty_per_unit
    existing.total_qty_needed += item.total_qty_needed
    existing.description = existing.description or item.description
    existing.location = existing.location or item.location


def _collect_hierarchy_items(
    grid: Grid,
    header_row: int,
    mapping: ColumnMapping,
    excluded: Collection[int],
    tool_count: int,
) -> list[ImportedLineItem]:
    rows: list[HierarchyRow] = []
    locations: dict[str, str] = {}
    for _, row in _iter_data_rows(grid, header_row, excluded):
        part_number = read_part_number(row, mapping)
        if part_number is None:
            continue
        level = parse_amount(_text_at(row, mapping.level) or "")
        if level is None:
            continue
        qty = None
        for col in (mapping.qty_per_unit, mapping.total_qty):
            if col is not None and col < len(row):
                qty = parse_amount(row[col])
                if qty is not None:
                    break
        rows.append(
            HierarchyRow(
                level=int(level),
                part_number=part_number,
                qty=1.0 if qty is None else qty,
                description=_text_at(row, mapping.description) or "",
            )
        )
        location = _text_at(row, mapping.location)
        if location:
            locations.setdefault(part_number, location)

    merged: dict[str, ImportedLineItem] = {}
    for leaf in resolve_hierarchy_leaves(rows):
        _merge_row(
            merged,
            ImportedLineItem(
                part_number=leaf.part_number,
                description=leaf.description or None,
                location=locations.get(leaf.part_number),
                qty_per_unit=leaf.effective_qty,
                total_qty_needed=leaf.effective_qty * max(tool_count, 1),
                assembly_group=leaf.assembly_group or None,
            ),
        )
    return list(merged.values())


def collect_line_items(
    grid: Grid,
    header_row: int,
    mapping: ColumnMapping,
    excluded: Collection[int],
    tool_count: int,
    *,
    default_per_unit: int = 0,
    flat: bool = False,
) -> list[ImportedLineItem]:
    """Turn the data rows below ``header_row`` into merged line items.

    Parameters
    ----------
    tool_count: number of tools sharing the BOM (drives total/per-unit derivation)
    default_per_unit: per-unit quantity assumed when there is no per-unit column
    flat: use the shared-BOM model (total = per-unit x tool count)
    """
    if mapping.level is not None:
        return _collect_hierarchy_items(grid, header_row, mapping, excluded, tool_count)

    merged: dict[str, ImportedLineItem] = {}
    for _, row in _iter_data_rows(grid, header_row, excluded):
        part_number = read_part_number(row, mapping)
        if part_number is None:
            continue
        if flat:
            quantities = resolve_flat_quantities(row, mapping, tool_count)
        else:
            quantities = resolve_quantities(row, mapping, tool_count, default_per_unit)
        if quantities is None:
            continue
        qty_per_unit, total_qty = quantities
        _merge_row(
            merged,
            ImportedLineItem(
                part_number=part_number,
                description=_text_at(row, mapping.description),
                location=_text_at(row, mapping.location),
                qty_per_unit=qty_per_unit,
                total_qty_needed=total_qty,
            ),
        )
    return list(merged.values())


def _finish(
    so_number: str,
    tools: list[ImportedTool],
    line_items: list[ImportedLineItem],
    warnings: list[str],
    info: OrderInfo | None = None,
    tool_assignments: dict[str, list[str]] | None = None,
) -> ImportResult:
    if not line_items:
        return ImportResult.failure(NO_LINE_ITEMS_ERROR, warnings)
    if not tools:
        tools = synthesize_tools(so_number, 1)
    order = ImportedOrder(
        so_number=so_number,
        tools=tools,
        line_items=line_items,
        tool_assignments=tool_assignments or {},
    )
    if info is not None:
        order.po_number = info.po_number
        order.customer_name = info.customer_name
        order.order_date = info.order_date
        order.due_date = info.due_date
    logger.debug(
        "so=%s tools=%d line_items=%d warnings=%d", so_number, len(tools), len(line_items), len(warnings)
    )
    return ImportResult(success=True, order=order, errors=[], warnings=warnings)


def _parse_legacy(
    grid: Grid, file_name: str, settings: ParserSettings, warnings: list[str]
) -> ImportResult:
    so_number, matched = so_number_from_filename(file_name)
    if not matched:
        warnings.append(f"Could not determine SO number from file name; using '{so_number}'")
    excluded = find_excluded_rows(grid, settings.inactive_fill_color)
    header_row, mapping = detect_columns(grid, excluded, settings.header_search_rows)
    logger.debug(
        "sheet=%s header_row=%d tool_columns=%s excluded_rows=%d",
        grid.name,
        header_row,
        list(mapping.tool_columns),
        len(excluded),
    )
    tools = extract_tools(mapping)
    line_items = collect_line_items(grid, header_row, mapping, excluded, tool_count=len(tools))
    return _finish(so_number, tools, line_items, warnings)


def _parse_parts_format(
    parts: Grid,
    so_number: str,
    info: OrderInfo,
    settings: ParserSettings,
    warnings: list[str],
) -> ImportResult:
    excluded = find_excluded_rows(parts, settings.inactive_fill_color)
    try:
        header_row, mapping = detect_columns(parts, excluded, settings.header_search_rows)
    except HeaderNotFoundError as e:
        raise HeaderNotFoundError(f"Could not find header row in {parts.name} sheet") from e
    tool_qty = info.tool_qty or 1
    tools = synthesize_tools(so_number, tool_qty, info.tool_model)
    line_items = collect_line_items(parts, header_row, mapping, excluded, tool_qty, flat=True)
    return _finish(so_number, tools, line_items, warnings, info)


def _parse_tool_type_sheet(grid: Grid, settings: ParserSettings) -> _ToolTypeSheet | None:
    if grid.row_count < 2:
        return None
    excluded = find_excluded_rows(grid, settings.inactive_fill_color)
    try:
        header_row, mapping = detect_columns(grid, excluded, settings.header_search_rows)
    except HeaderNotFoundError:
        return None

    tool_qty = 1
    if header_signals_quantity(grid.cell(header_row, 0)):
        # column A holds the number of tools of this type, not a per-unit qty
        without_count = classify_header_row(grid.row(header_row), ignore_columns={0})
        if without_count.part_number is not None:
            mapping = without_count
            first_data = next(_iter_data_rows(grid, header_row, excluded), None)
            if first_data is not None:
                tool_qty = parse_qty(grid.cell(first_data[0], 0)) or 1

    line_items = collect_line_items(
        grid, header_row, mapping, excluded, tool_qty, default_per_unit=1
    )
    if not line_items:
        return None
    return _ToolTypeSheet(sheet_name=grid.name, tool_qty=tool_qty, line_items=line_items)


def _parse_tool_type_format(
    sheets: list[Grid],
    so_number: str,
    info: OrderInfo,
    settings: ParserSettings,
    warnings: list[str],
) -> ImportResult:
    tools: list[ImportedTool] = []
    merged: dict[str, ImportedLineItem] = {}
    assignments: dict[str, list[str]] = {}
    counter = 1

    for grid in sheets:
        sheet = _parse_tool_type_sheet(grid, settings)
        if sheet is None:
            warnings.append(f'Could not parse sheet "{grid.name}" - skipping')
            continue
        sheet_tools = synthesize_tools(so_number, sheet.tool_qty, model=sheet.sheet_name, start=counter)
        counter += len(sheet_tools)
        tools.extend(sheet_tools)
        tool_numbers = [t.tool_number for t in sheet_tools]

        for item in sheet.line_items:
            existing = merged.get(item.part_number)
            if existing is None:
                merged[item.part_number] = item
            else:
                # per-unit is not re-derived when merging across tool types
                existing.total_qty_needed += item.total_qty_needed
            assignments.setdefault(item.part_number, []).extend(tool_numbers)
        logger.debug(
            "tool-type sheet=%s tool_qty=%d line_items=%d", grid.name, sheet.tool_qty, len(sheet.line_items)
        )

    for part_number, item in merged.items():
        item.tool_ids = list(assignments[part_number])
    return _finish(so_number, tools, list(merged.values()), warnings, info, assignments)


def _dispatch(grids: list[Grid], file_name: str, settings: ParserSettings) -> ImportResult:
    if not grids:
        raise NoSheetsError("No sheets found in workbook")
    warnings: list[str] = []

    order_info = next((g for g in grids if _is_order_info(g.name)), None)
    if order_info is None:
        return _parse_legacy(grids[0], file_name, settings, warnings)

    info = read_order_info(order_info, settings.order_info_scan_rows)
    warnings.extend(info.warnings)
    if info.so_number:
        so_number = info.so_number
    else:
        so_number, _ = so_number_from_filename(file_name)
        warnings.append(f"SO number not found in {order_info.name} sheet; using '{so_number}' from file name")

    parts = next((g for g in grids if g is not order_info and _is_parts(g.name)), None)
    others = [
        g for g in grids
        if g is not order_info and g is not parts and not _is_ignored(g.name, settings)
    ]

    if parts is not None and not others:
        return _parse_parts_format(parts, so_number, info, settings, warnings)
    if others:
        if parts is not None:
            warnings.append(f'Sheet "{parts.name}" ignored: workbook uses tool-type sheets')
        return _parse_tool_type_format(others, so_number, info, settings, warnings)

    logger.debug("order info sheet without parts sheets, falling back to legacy parsing")
    warnings.append(f'No parts sheet next to "{order_info.name}"; parsing "{grids[0].name}" as a parts list')
    return _parse_legacy(grids[0], file_name, settings, warnings)


def parse_workbook(
    grids: list[Grid], file_name: str, settings: ParserSettings | None = None
) -> ImportResult:
    """Parse decoded sheets into an ImportResult (never raises)."""
    settings = settings or ParserSettings()
    try:
        return _dispatch(grids, file_name, settings)
    except ImportStructureError as e:
        return ImportResult.failure(str(e))
    except Exception as e:
        logger.debug("unexpected parse failure file=%s", file_name, exc_info=True)
        label = kind_from_name(file_name).label
        return ImportResult.failure(f"Failed to parse {label} file: {e}")


def parse_bytes(
    data: bytes, file_name: str, settings: ParserSettings | None = None
) -> ImportResult:
    """Decode and parse raw file content; the kind comes from the file name."""
    kind = kind_from_name(file_name)
    try:
        grids = load_workbook(data, kind, name=Path(file_name).stem or "Sheet1")
    except NoSheetsError as e:
        return ImportResult.failure(str(e))
    except ImportStructureError as e:
        return ImportResult.failure(f"Failed to parse {kind.label} file: {e}")
    return parse_workbook(grids, file_name, settings)


def parse_file(path: Path, settings: ParserSettings | None = None) -> ImportResult:
    try:
        data = path.read_bytes()
    except OSError as e:
        return ImportResult.failure(f"Failed to read file: {e}")
    return parse_bytes(data, path.name, settings)
