"""
test_aggregate.py - Category aggregation checks.

Usage: pytest test_aggregate.py
"""

from __future__ import annotations

import datetime as dt
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from aggregate import aggregate, aggregate_sheet_rows, hadyai_quantity
from categories import get_profile
from locations import DEFAULT_REGISTRY
from models import Category, Layout, TotalSource
from scanner import locate

HEADER = ["หาดใหญ่", "ภูเก็ต", "เชียงใหม่", "ขอนแก่น", "ชลบุรี", "คลังมหาชัย"]


def _aggregate(rows, category=Category.ORANGE):
    grid = [HEADER, *rows]
    layout = locate(grid, DEFAULT_REGISTRY)
    assert layout is not None
    return aggregate(grid, layout, get_profile(category), DEFAULT_REGISTRY)


def test_variant_rows_sum_into_one_location():
    result = _aggregate([["", "หาดใหญ่", "10"], ["", "HDY", "5"], ["", "ภูเก็ต", "2"]])

    assert result.location_totals["cdc_hadyai"] == 15
    assert result.location_totals["cdc_phuket"] == 2
    assert result.grand_total == 17
    assert result.total_source == TotalSource.LOCATION_SUM
    assert result.matched_rows == 3
    assert hadyai_quantity(result) == 15


def test_every_location_present_and_only_positive_values_count():
    result = _aggregate([["", "หาดใหญ่", "-4"], ["", "ภูเก็ต", "0"], ["", "เชียงใหม่", "abc"]])

    assert set(result.location_totals) == set(DEFAULT_REGISTRY.keys())
    assert set(result.location_totals.values()) == {0}
    assert result.grand_total == 0


def test_depot_is_read_from_secondary_column_only():
    result = _aggregate(
        [
            ["คลังมหาชัย", "หาดใหญ่", "7"],
            ["", "คลังมหาชัย", "100"],
        ]
    )
    # Row 1 counts for both its depot and its DC; row 2 names the depot in
    # the DC column, which is not where depots are read from.
    assert result.location_totals["cdc_mahachai"] == 7
    assert result.location_totals["cdc_hadyai"] == 7


def test_total_row_overrides_location_sum_last_positive_wins():
    result = _aggregate(
        [
            ["", "หาดใหญ่", "10"],
            ["รวม", "", "50"],
            ["", "ยอดรวม", "60"],
            ["รวม", "", "0"],
        ]
    )
    assert result.grand_total == 60
    assert result.total_source == TotalSource.TOTAL_ROW
    assert result.location_totals["cdc_hadyai"] == 10


def test_value_column_follows_category():
    rows = [["", "หาดใหญ่", "10", "3"]]
    assert _aggregate(rows, Category.ORANGE).location_totals["cdc_hadyai"] == 10
    assert _aggregate(rows, Category.YUZU).location_totals["cdc_hadyai"] == 3


def test_orange_cross_border_fields_last_match_wins():
    result = _aggregate(
        [
            ["", "ขอนแก่น", "20"],
            ["ลาว", "ขอนแก่น", "4"],
            ["ส่งลาว", "ขอนแก่น", "6"],
            ["กัมพูชา", "ขอนแก่น", "3"],
        ]
    )
    assert result.aux_fields == {"khon_kaen_laos": 6, "khon_kaen_cambodia": 3}
    assert result.location_totals["cdc_khonkaen"] == 33


def test_yuzu_has_no_aux_fields():
    assert _aggregate([["ลาว", "ขอนแก่น", "1", "2"]], Category.YUZU).aux_fields == {}


def test_sheet_rows_use_layout_columns():
    grid = [
        ["รายงานประจำวัน"],
        ["วันที่", "หาดใหญ่", "ภูเก็ต", "เชียงใหม่", "ขอนแก่น", "ชลบุรี", "รวม"],
        [dt.datetime(2025, 10, 1), 10, 2, 3, 0, 1, 20],
        ["02/10/2025", 0, 4, 0, 0, 0, ""],
        ["หมายเหตุ", 5, 5, 5, 5, 5, 25],
        ["", "", "", "", "", "", ""],
    ]
    layout = locate(grid, DEFAULT_REGISTRY)
    rows = aggregate_sheet_rows(grid, layout, DEFAULT_REGISTRY)

    assert [row.date for row in rows] == ["01/10/2025", "02/10/2025"]
    first, second = rows
    assert first.aggregation.location_totals["cdc_hadyai"] == 10
    assert first.aggregation.grand_total == 20
    assert first.aggregation.total_source == TotalSource.TOTAL_COLUMN
    assert second.aggregation.grand_total == 4
    assert second.aggregation.total_source == TotalSource.LOCATION_SUM


def test_sheet_rows_without_date_column_look_in_first_columns():
    layout = Layout(header_row=0, location_columns={2: "cdc_hadyai"})
    grid = [["", "", "หาดใหญ่"], ["ยอด", "2025-10-05", "8"]]
    rows = aggregate_sheet_rows(grid, layout, DEFAULT_REGISTRY)
    assert rows[0].date == "05/10/2025"
    assert rows[0].aggregation.location_totals["cdc_hadyai"] == 8
