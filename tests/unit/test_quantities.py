from __future__ import annotations

import math

import pytest

from bom_importer.excel.quantities import (
    is_skippable_part,
    parse_amount,
    parse_qty,
    read_part_number,
    resolve_flat_quantities,
    resolve_quantities,
)
from bom_importer.models.grid import ColumnMapping


@pytest.mark.parametrize(
    "value,expected",
    [
        (3, 3),
        (2.5, 3),
        (2.4, 2),
        (-4, 0),
        ("12 pcs", 12),
        ("1,234", 1234),
        ("abc", 0),
        ("", 0),
        (None, 0),
        (True, 0),
        (math.nan, 0),
    ],
)
def test_parse_qty(value, expected):
    assert parse_qty(value) == expected


def test_parse_amount_keeps_fractions():
    assert parse_amount("0.5") == 0.5
    assert parse_amount(2) == 2.0
    assert parse_amount("") is None
    assert parse_amount("n/a") is None


def test_is_skippable_part():
    assert is_skippable_part("")
    assert is_skippable_part("Part Number")
    assert not is_skippable_part("P-100")


def test_read_part_number_skips_repeated_header():
    mapping = ColumnMapping(part_number=0)
    assert read_part_number(["PART NUMBER"], mapping) is None
    assert read_part_number([12345.0], mapping) == "12345"
    assert read_part_number([], mapping) is None


def test_tool_columns_first_is_per_unit_sum_is_total():
    mapping = ColumnMapping(part_number=0, tool_columns={"3137-1": 1, "3137-2": 2, "3137-3": 3})
    assert resolve_quantities(["P", 2, 3, 0], mapping, tool_count=3) == (2, 5)


def test_tool_columns_missing_first_value_derives_per_unit():
    mapping = ColumnMapping(part_number=0, tool_columns={"3137-1": 1, "3137-2": 2})
    assert resolve_quantities(["P", "", 4], mapping, tool_count=2) == (2, 4)


def test_tool_columns_win_over_generic_qty():
    mapping = ColumnMapping(part_number=0, qty_per_unit=1, tool_columns={"Tool-1": 2})
    assert resolve_quantities(["P", 9, 1], mapping, tool_count=1) == (1, 1)


@pytest.mark.parametrize("per_unit,tools", [(1, 1), (3, 4), (2, 7)])
def test_per_unit_without_total_multiplies_by_tools(per_unit, tools):
    mapping = ColumnMapping(part_number=0, qty_per_unit=1)
    assert resolve_quantities(["P", per_unit], mapping, tool_count=tools) == (per_unit, per_unit * tools)


def test_total_without_per_unit_divides_rounding_up():
    mapping = ColumnMapping(part_number=0, total_qty=1)
    assert resolve_quantities(["P", 10], mapping, tool_count=4) == (3, 10)


def test_per_unit_and_total_read_independently():
    mapping = ColumnMapping(part_number=0, qty_per_unit=1, total_qty=2)
    assert resolve_quantities(["P", 2, 7], mapping, tool_count=3) == (2, 7)


def test_default_per_unit_applies_without_per_unit_column():
    mapping = ColumnMapping(part_number=0)
    assert resolve_quantities(["P"], mapping, tool_count=2, default_per_unit=1) == (1, 2)
    assert resolve_quantities(["P"], mapping, tool_count=2) is None


def test_zero_quantities_yield_none():
    mapping = ColumnMapping(part_number=0, qty_per_unit=1, total_qty=2)
    assert resolve_quantities(["P", 0, ""], mapping, tool_count=1) is None


def test_flat_quantities():
    assert resolve_flat_quantities(["P"], ColumnMapping(part_number=0), tool_count=3) == (1, 3)
    mapping = ColumnMapping(part_number=0, qty_per_unit=1)
    assert resolve_flat_quantities(["P", 2], mapping, tool_count=5) == (2, 10)
    assert resolve_flat_quantities(["P", 0], mapping, tool_count=5) is None
