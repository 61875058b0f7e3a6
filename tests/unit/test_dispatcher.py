from __future__ import annotations

from pathlib import Path

import openpyxl
import pytest
from openpyxl.styles import Color, PatternFill

import bom_importer.services.dispatcher as dispatcher
from bom_importer.models.config_models import ParserSettings
from bom_importer.services.dispatcher import (
    NO_LINE_ITEMS_ERROR,
    parse_bytes,
    parse_file,
    parse_workbook,
)
from conftest import build_workbook, make_grid

ORDER_INFO = [
    ["SO Number", "3137"],
    ["Customer", "ACME"],
    ["Tool Qty", 3],
    ["Tool Model", "230Q"],
    ["Order Date", "2024-01-15"],
]


def _items(result):
    assert result.success, result.errors
    return {li.part_number: li for li in result.order.line_items}


# --- legacy single sheet -----------------------------------------------------

def test_legacy_tool_columns():
    grid = make_grid(
        [
            ["Part Number", "Description", "Location", "3137-2", "3137-1"],
            ["P-1", "Bolt", "A1", 2, 3],
            ["P-2", "Nut", "A2", "", 1],
        ]
    )
    result = parse_workbook([grid], "SO3137.xlsx")
    items = _items(result)
    assert result.order.so_number == "3137"
    assert [t.tool_number for t in result.order.tools] == ["3137-1", "3137-2"]
    assert (items["P-1"].qty_per_unit, items["P-1"].total_qty_needed) == (2, 5)
    assert (items["P-2"].qty_per_unit, items["P-2"].total_qty_needed) == (1, 1)
    assert items["P-1"].description == "Bolt"
    assert items["P-1"].location == "A1"
    assert result.warnings == []


def test_legacy_without_tool_columns_synthesizes_one_tool():
    grid = make_grid([["Part Number", "Qty"], ["P-1", 3]])
    result = parse_workbook([grid], "SO55.xlsx")
    assert [t.tool_number for t in result.order.tools] == ["55-1"]
    item = _items(result)["P-1"]
    assert (item.qty_per_unit, item.total_qty_needed) == (3, 3)


def test_legacy_so_number_falls_back_to_file_name():
    grid = make_grid([["Part Number", "Qty"], ["P-1", 1]])
    result = parse_workbook([grid], "customer bom.xlsx")
    assert result.order.so_number == "customer bom"
    assert len(result.warnings) == 1
    assert "customer bom" in result.warnings[0]


def test_excluded_rows_never_become_line_items():
    grid = make_grid(
        [
            ["Part Number", "Qty"],
            ["P-1", 1],
            ["P-OLD", 4],
            ["P-2", 2],
        ],
        grey_rows=[2],
    )
    items = _items(parse_workbook([grid], "SO1.xlsx"))
    assert set(items) == {"P-1", "P-2"}


def test_noise_rows_are_skipped():
    grid = make_grid(
        [
            ["Part Number", "Qty"],
            ["", 1],
            ["Part Number", "Qty"],
            ["P-1", 0],
            ["P-2", "two"],
            ["P-3", 1],
        ]
    )
    assert set(_items(parse_workbook([grid], "SO1.xlsx"))) == {"P-3"}


def test_duplicate_rows_merge_by_summing():
    grid = make_grid(
        [
            ["Part Number", "Description", "Location", "Qty"],
            ["P-1", "", "", 2],
            ["P-1", "Bolt", "B4", 3],
        ]
    )
    item = _items(parse_workbook([grid], "SO1.xlsx"))["P-1"]
    assert (item.qty_per_unit, item.total_qty_needed) == (5, 5)
    assert (item.description, item.location) == ("Bolt", "B4")


def test_hierarchy_sheet_flattens_to_leaves():
    grid = make_grid(
        [
            ["Level", "Part Number", "Description", "Qty"],
            [0, "A", "Top", 1],
            [1, "B", "Sub", 2],
            [2, "C", "Screw", 3],
            ["", "D", "no level", 1],
        ]
    )
    items = _items(parse_workbook([grid], "SO8.xlsx"))
    assert list(items) == ["C"]
    c = items["C"]
    assert (c.qty_per_unit, c.total_qty_needed, c.assembly_group) == (6, 6, "B")
    assert c.description == "Screw"


def test_header_only_workbook_fails_without_raising():
    grid = make_grid([["Part Number", "Description", "Qty"]])
    result = parse_workbook([grid], "SO1.xlsx")
    assert result.success is False
    assert result.order is None
    assert result.errors == [NO_LINE_ITEMS_ERROR]


def test_missing_header_fails():
    result = parse_workbook([make_grid([["a", "b"], [1, 2]])], "SO1.xlsx")
    assert result.success is False
    assert result.errors == ["Could not find header row with Part Number column"]


def test_no_sheets():
    result = parse_workbook([], "SO1.xlsx")
    assert result.errors == ["No sheets found in workbook"]


def test_header_search_window_is_configurable():
    rows = [["title"]] * 3 + [["Part Number", "Qty"], ["P-1", 1]]
    assert parse_workbook([make_grid(rows)], "SO1.xlsx", ParserSettings(header_search_rows=3)).success is False
    assert parse_workbook([make_grid(rows)], "SO1.xlsx", ParserSettings(header_search_rows=4)).success


# --- order info + parts ------------------------------------------------------

def test_order_info_with_parts_sheet():
    grids = [
        make_grid(ORDER_INFO, name="Order Info"),
        make_grid(
            [
                ["Part Number", "Description", "Location", "Qty/Unit"],
                ["P-1", "Bolt", "A1", 2],
                ["P-2", "Nut", "A2", 0],
                ["P-3", "Washer", "A3", 4],
            ],
            name="Parts",
        ),
    ]
    result = parse_workbook(grids, "whatever.xlsx")
    items = _items(result)
    order = result.order
    assert order.so_number == "3137"
    assert order.customer_name == "ACME"
    assert order.order_date == "2024-01-15"
    assert [(t.tool_number, t.tool_model) for t in order.tools] == [
        ("3137-1", "230Q"),
        ("3137-2", "230Q"),
        ("3137-3", "230Q"),
    ]
    assert set(items) == {"P-1", "P-3"}
    assert (items["P-1"].qty_per_unit, items["P-1"].total_qty_needed) == (2, 6)
    assert (items["P-3"].qty_per_unit, items["P-3"].total_qty_needed) == (4, 12)


def test_parts_sheet_without_qty_column_defaults_to_one():
    grids = [
        make_grid(ORDER_INFO, name="Order Info"),
        make_grid([["Part Number", "Description"], ["P-1", "Bolt"]], name="Parts List"),
    ]
    item = _items(parse_workbook(grids, "x.xlsx"))["P-1"]
    assert (item.qty_per_unit, item.total_qty_needed) == (1, 3)


def test_parts_sheet_without_header():
    grids = [
        make_grid(ORDER_INFO, name="Order Info"),
        make_grid([["nothing", "here"]], name="Parts"),
    ]
    result = parse_workbook(grids, "x.xlsx")
    assert result.success is False
    assert result.errors == ["Could not find header row in Parts sheet"]


def test_order_info_without_so_uses_file_name():
    grids = [
        make_grid([["Customer", "ACME"]], name="Order Info"),
        make_grid([["Part Number", "Qty"], ["P-1", 1]], name="Parts"),
    ]
    result = parse_workbook(grids, "SO900.xlsx")
    assert result.order.so_number == "900"
    assert any("SO number not found" in w for w in result.warnings)


def test_order_info_only_falls_back_to_legacy():
    grids = [make_grid(ORDER_INFO, name="Order Info")]
    result = parse_workbook(grids, "SO1.xlsx")
    assert result.success is False
    assert result.errors == ["Could not find header row with Part Number column"]


def test_order_info_only_fallback_keeps_earlier_warnings():
    grid = make_grid(
        [["Order Date", "someday"], ["", ""], ["Part Number", "Qty"], ["P-1", 2]],
        name="Order Info",
    )
    result = parse_workbook([grid], "bom.xlsx")
    assert list(_items(result)) == ["P-1"]
    assert result.warnings[:3] == [
        "Could not parse order date 'someday' - ignored",
        "SO number not found in Order Info sheet; using 'bom' from file name",
        'No parts sheet next to "Order Info"; parsing "Order Info" as a parts list',
    ]


# --- order info + tool-type sheets --------------------------------------------

def _tool_type_sheet(name, tool_qty, rows):
    body = [[tool_qty if i == 0 else "", *row] for i, row in enumerate(rows)]
    return make_grid([["Qty", "Part Number", "Description", "Location", "Qty/Unit"], *body], name=name)


def test_tool_type_sheets_merge_totals():
    grids = [
        make_grid([["SO Number", "3137"]], name="Order Info"),
        _tool_type_sheet("230Q", 2, [["X", "Widget", "A-01", 2], ["Y", "Spring", "B-02", 1]]),
        _tool_type_sheet("450Q", 3, [["X", "Widget", "A-01", 2], ["Z", "Gasket", "C-03", 4]]),
    ]
    result = parse_workbook(grids, "x.xlsx")
    items = _items(result)
    order = result.order

    assert [(t.tool_number, t.tool_model) for t in order.tools] == [
        ("3137-1", "230Q"),
        ("3137-2", "230Q"),
        ("3137-3", "450Q"),
        ("3137-4", "450Q"),
        ("3137-5", "450Q"),
    ]
    assert items["X"].total_qty_needed == 4 + 6
    assert items["X"].qty_per_unit == 2
    assert items["Y"].total_qty_needed == 2
    assert items["Z"].total_qty_needed == 12
    assert items["X"].tool_ids == ["3137-1", "3137-2", "3137-3", "3137-4", "3137-5"]
    assert items["Z"].tool_ids == ["3137-3", "3137-4", "3137-5"]
    assert order.tool_assignments["Y"] == ["3137-1", "3137-2"]


def test_tool_type_sheet_without_count_column():
    grids = [
        make_grid([["SO Number", "5"]], name="Order Info"),
        make_grid([["Part Number", "Qty/Unit"], ["X", 3]], name="230Q"),
    ]
    result = parse_workbook(grids, "x.xlsx")
    assert [t.tool_number for t in result.order.tools] == ["5-1"]
    assert _items(result)["X"].total_qty_needed == 3


def test_unparseable_tool_type_sheet_is_skipped_with_warning():
    grids = [
        make_grid([["SO Number", "5"]], name="Order Info"),
        make_grid([["just a note"]], name="Notes"),
        _tool_type_sheet("230Q", 1, [["X", "Widget", "A-01", 2]]),
    ]
    result = parse_workbook(grids, "x.xlsx")
    assert result.success
    assert 'Could not parse sheet "Notes" - skipping' in result.warnings
    assert [t.tool_model for t in result.order.tools] == ["230Q"]


def test_instruction_sheets_are_ignored():
    grids = [
        make_grid(ORDER_INFO, name="Order Info"),
        make_grid([["Part Number", "Qty/Unit"], ["P-1", 1]], name="Parts"),
        make_grid([["Import Template Instructions"], ["read me"]], name="Instructions"),
    ]
    result = parse_workbook(grids, "x.xlsx")
    assert result.success
    assert result.warnings == []
    assert len(result.order.tools) == 3


def test_parts_sheet_next_to_tool_type_sheets_is_ignored():
    grids = [
        make_grid([["SO Number", "5"]], name="Order Info"),
        make_grid([["Part Number", "Qty"], ["P-1", 1]], name="Parts"),
        _tool_type_sheet("230Q", 1, [["X", "Widget", "A-01", 2]]),
    ]
    result = parse_workbook(grids, "x.xlsx")
    assert set(_items(result)) == {"X"}
    assert any('"Parts" ignored' in w for w in result.warnings)


def test_excluded_rows_in_tool_type_sheet():
    sheet = _tool_type_sheet("230Q", 2, [["X", "Widget", "A-01", 2], ["OLD", "Gone", "Z-9", 5]])
    sheet.fills[(2, 0)] = "7F7F7F"
    grids = [make_grid([["SO Number", "5"]], name="Order Info"), sheet]
    assert set(_items(parse_workbook(grids, "x.xlsx"))) == {"X"}


# --- entry points ---------------------------------------------------------------

def test_unexpected_error_becomes_failure(monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(dispatcher, "_dispatch", boom)
    grid = make_grid([["Part Number"], ["P"]])
    assert parse_workbook([grid], "a.xlsx").errors == ["Failed to parse Excel file: boom"]
    assert parse_workbook([grid], "a.csv").errors == ["Failed to parse CSV file: boom"]


def test_parse_bytes_csv():
    data = b"Part Number,Description,Qty\nP-1,Bolt,2\nP-2,Nut,1\n"
    result = parse_bytes(data, "SO42.csv")
    assert result.order.so_number == "42"
    assert set(_items(result)) == {"P-1", "P-2"}


def test_parse_bytes_garbage():
    result = parse_bytes(b"\x00\x01garbage", "SO1.xlsx")
    assert result.success is False
    assert result.errors[0].startswith("Failed to parse Excel file: ")


def test_parse_file_missing(tmp_path: Path):
    result = parse_file(tmp_path / "nope.xlsx")
    assert result.success is False
    assert result.errors[0].startswith("Failed to read file: ")


def test_parse_file_xlsx_with_grey_rows(tmp_path: Path):
    path = build_workbook(
        tmp_path / "SO3137.xlsx",
        {"BOM": [["Part Number", "3137-1", "3137-2"], ["P-1", 1, 1], ["P-2", 5, 5], ["P-3", 2, 0]]},
        grey_rows={"BOM": [3]},
    )
    result = parse_file(path)
    items = _items(result)
    assert set(items) == {"P-1", "P-3"}
    assert (items["P-3"].qty_per_unit, items["P-3"].total_qty_needed) == (2, 2)


def test_parse_file_skips_theme_tinted_grey_rows(tmp_path: Path):
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "BOM"
    for row in [["Part Number", "Qty"], ["A-1", 2], ["B-2", 3]]:
        ws.append(row)
    # "White, Background 1, Darker 50%" from the standard palette
    ws["A3"].fill = PatternFill(fill_type="solid", fgColor=Color(theme=0, tint=-0.49998))
    path = tmp_path / "SO5.xlsx"
    wb.save(path)

    assert list(_items(parse_file(path))) == ["A-1"]


def test_to_dict_payload():
    grid = make_grid([["Part Number", "Qty"], ["P-1", 1]])
    payload = parse_workbook([grid], "SO7.xlsx").to_dict()
    assert payload["success"] is True
    assert payload["order"]["so_number"] == "7"
    assert "po_number" not in payload["order"]
    assert payload["order"]["tools"] == [{"tool_number": "7-1"}]
    assert payload["order"]["line_items"] == [
        {"part_number": "P-1", "qty_per_unit": 1, "total_qty_needed": 1}
    ]
    assert payload["errors"] == [] and payload["warnings"] == []


@pytest.mark.parametrize("name", ["Order Info", "ORDER INFORMATION", "order_info"])
def test_order_info_sheet_detection_is_case_insensitive(name):
    grids = [
        make_grid([["SO Number", "11"]], name=name),
        make_grid([["Part Number", "Qty"], ["P-1", 1]], name="parts"),
    ]
    assert parse_workbook(grids, "x.xlsx").order.so_number == "11"
