"""
test_scanner.py - Header row locator checks.

Usage: pytest test_scanner.py
"""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from locations import DEFAULT_REGISTRY
from scanner import is_date_label, is_total_label, locate

FIVE = ["หาดใหญ่", "ภูเก็ต", "เชียงใหม่", "ขอนแก่น", "ชลบุรี"]


def test_four_locations_do_not_make_a_header():
    grid = [["title"], FIVE[:4], ["x"]]
    assert locate(grid, DEFAULT_REGISTRY) is None


def test_five_locations_make_a_header():
    grid = [["title"], FIVE, ["x"]]
    layout = locate(grid, DEFAULT_REGISTRY)

    assert layout is not None
    assert layout.header_row == 1
    assert layout.location_columns == {
        0: "cdc_hadyai",
        1: "cdc_phuket",
        2: "cdc_chiangmai",
        3: "cdc_khonkaen",
        4: "cdc_chonburi",
    }
    assert layout.date_column is None
    assert layout.total_column is None


def test_repeated_location_counts_once():
    grid = [["หาดใหญ่", "HDY", "ภูเก็ต", "เชียงใหม่", "ขอนแก่น"]]
    assert locate(grid, DEFAULT_REGISTRY) is None


def test_date_and_total_columns_from_header_row():
    grid = [["วันที่", *FIVE, "รวม CDC", "ยอดรวม"]]
    layout = locate(grid, DEFAULT_REGISTRY)

    assert layout.date_column == 0
    assert layout.total_column == 7
    assert layout.locations_found == {"cdc_hadyai", "cdc_phuket", "cdc_chiangmai", "cdc_khonkaen", "cdc_chonburi"}


def test_first_qualifying_row_wins():
    grid = [FIVE, ["หมายเหตุ"], list(reversed(FIVE))]
    assert locate(grid, DEFAULT_REGISTRY).header_row == 0


def test_scan_is_bounded():
    grid = [["x"]] * 3 + [FIVE]
    assert locate(grid, DEFAULT_REGISTRY, max_rows=3) is None
    assert locate(grid, DEFAULT_REGISTRY, max_rows=4).header_row == 3


def test_empty_grid():
    assert locate([], DEFAULT_REGISTRY) is None


def test_labels():
    assert is_date_label("วันที่")
    assert is_date_label("Date")
    assert not is_date_label("")
    assert is_total_label("รวม")
    assert is_total_label("Grand TOTAL")
    assert not is_total_label("รวม CDC")
    assert not is_total_label(None)


def test_latin_keywords_match_whole_words_only():
    assert is_total_label("Sum")
    assert is_total_label("total:")
    assert not is_total_label("Summary")
    assert not is_total_label("Daily sales summary 18/10/2025")
    assert not is_total_label("subtotal CDC")
    assert not is_date_label("Updated")
    assert is_date_label("Report date")
    assert is_total_label("ยอดรวมทั้งหมด")
    assert not is_total_label("รวมCDC")
