from __future__ import annotations

from datetime import date, datetime

import pytest

from bom_importer.excel.order_info import (
    match_order_label,
    read_order_info,
    so_number_from_filename,
    to_iso_date,
)
from conftest import make_grid


@pytest.mark.parametrize(
    "label,field",
    [
        ("so number", "so_number"),
        ("so#", "so_number"),
        ("po number", "po_number"),
        ("customer", "customer_name"),
        ("client", "customer_name"),
        ("tool qty", "tool_qty"),
        ("tool model", "tool_model"),
        ("order date", "order_date"),
        ("due date", "due_date"),
        ("order information", None),
    ],
)
def test_match_order_label(label, field):
    assert match_order_label(label) == field


@pytest.mark.parametrize(
    "value,expected",
    [
        (datetime(2024, 1, 15, 8, 30), "2024-01-15"),
        (date(2024, 2, 15), "2024-02-15"),
        (45306, "2024-01-15"),
        ("45306", "2024-01-15"),
        ("2024-01-15", "2024-01-15"),
        ("", None),
        ("not a date", None),
    ],
)
def test_to_iso_date(value, expected):
    assert to_iso_date(value) == expected


def test_read_order_info():
    grid = make_grid(
        [
            ["Order Information", ""],
            ["", ""],
            ["SO Number", "SO-3137"],
            ["PO Number", "PO-12345"],
            ["Customer", "ACME Corporation"],
            ["Tool Qty", 3],
            ["Tool Model", "230Q"],
            ["Order Date", "2024-01-15"],
            ["Due Date", datetime(2024, 2, 15)],
        ],
        name="Order Info",
    )
    info = read_order_info(grid)
    assert info.so_number == "3137"
    assert info.po_number == "PO-12345"
    assert info.customer_name == "ACME Corporation"
    assert info.tool_qty == 3
    assert info.tool_model == "230Q"
    assert info.order_date == "2024-01-15"
    assert info.due_date == "2024-02-15"
    assert info.warnings == []


def test_unparseable_date_is_dropped_with_warning():
    grid = make_grid([["SO Number", "42"], ["Due Date", "next week"]])
    info = read_order_info(grid)
    assert info.due_date is None
    assert info.warnings == ["Could not parse due date 'next week' - ignored"]


def test_scan_window():
    rows = [["filler", "x"]] * 3 + [["SO Number", "77"]]
    assert read_order_info(make_grid(rows), scan_rows=3).so_number is None
    assert read_order_info(make_grid(rows), scan_rows=4).so_number == "77"


@pytest.mark.parametrize(
    "name,expected",
    [
        ("SO3137.xlsx", ("3137", True)),
        ("Order SO-3138 rev2.xlsx", ("3138", True)),
        ("so 12.csv", ("12", True)),
        ("bom.xlsx", ("bom", False)),
        ("parts list.CSV", ("parts list", False)),
    ],
)
def test_so_number_from_filename(name, expected):
    assert so_number_from_filename(name) == expected
