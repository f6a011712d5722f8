"""
test_normalize.py - Date and quantity parser checks.

Covers parse_date, find_date_in_text, parse_quantity and the date
conversion helpers.

Usage: pytest test_normalize.py
"""

from __future__ import annotations

import datetime as dt
import os
import sys

import pandas as pd
import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from normalize import (
    find_date_in_text,
    parse_date,
    parse_quantity,
    to_date,
    to_display_date,
    to_iso_date,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("18/10/2025", "18/10/2025"),
        ("2025-10-18", "18/10/2025"),
        ("1/2/2025", "01/02/2025"),
        (" 5/9/2024 ", "05/09/2024"),
        (45948, "18/10/2025"),
        (45948.75, "18/10/2025"),
        (dt.date(2025, 10, 18), "18/10/2025"),
        (dt.datetime(2025, 10, 18, 14, 30), "18/10/2025"),
        (pd.Timestamp("2025-10-18"), "18/10/2025"),
    ],
)
def test_parse_date_accepted_shapes(value, expected):
    assert parse_date(value) == expected


@pytest.mark.parametrize(
    "value",
    ["not a date", "", None, "31/02/2025", "2025-13-01", "18-10-2025", "18/10/25", True, 0, -5, 60],
)
def test_parse_date_rejects(value):
    assert parse_date(value) is None


def test_iso_and_display_dates_are_equivalent():
    assert parse_date("2025-10-18") == parse_date("18/10/2025")
    assert to_date("2025-10-18") == to_date("18/10/2025") == dt.date(2025, 10, 18)


def test_early_serials_follow_spreadsheet_calendar():
    assert parse_date(1) == "01/01/1900"
    assert parse_date(59) == "28/02/1900"
    assert parse_date(61) == "01/03/1900"


def test_find_date_in_text():
    assert find_date_in_text("วันที่ 18/10/2025") == "18/10/2025"
    assert find_date_in_text("รายงาน 2025-10-18 ยอดขาย") == "18/10/2025"
    assert find_date_in_text("ส่ง 31/02/2025 หรือ 01/03/2025") == "01/03/2025"
    assert find_date_in_text("ยอดรวม 1,234") is None
    assert find_date_in_text(None) is None


@pytest.mark.parametrize(
    "value, expected",
    [
        ("1,234", 1234),
        ("", 0),
        (None, 0),
        ("12.6", 13),
        ("12.5", 13),
        (12.5, 13),
        (12.4, 12),
        (7, 7),
        ("฿1,500 ขวด", 1500),
        (" 2 500 ", 2500),
        ("abc", 0),
        ("-", 0),
        (float("nan"), 0),
        (True, 0),
    ],
)
def test_parse_quantity(value, expected):
    assert parse_quantity(value) == expected


def test_parse_quantity_negative_passes_through():
    assert parse_quantity("-5") == -5
    assert parse_quantity("−3") == -3
    assert parse_quantity(-2.5) == -3


def test_date_conversions():
    assert to_iso_date("18/10/2025") == "2025-10-18"
    assert to_iso_date("garbage") is None
    assert to_display_date(dt.date(2025, 10, 18)) == "18/10/2025"
    assert to_display_date("2025-10-18") == "18/10/2025"
    assert to_date(None) is None
