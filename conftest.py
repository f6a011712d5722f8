"""
conftest.py - Shared pytest fixtures.

The canonical report grid used across the tests: six DC locations named in
the header row, one DC per data row in label column 1, the report date in a
merged first-column cell and orange quantities in column 2.
"""

from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from record_store import JsonRecordStore


REPORT_HEADER = ["หาดใหญ่", "ภูเก็ต", "เชียงใหม่", "ขอนแก่น", "ชลบุรี", "นครสวรรค์"]


def make_report_grid(quantities: list[int] | None = None, date_cell: str = "วันที่ 18/10/2025") -> list[list]:
    values = quantities if quantities is not None else [10, 0, 5, 0, 3, 0]
    grid = [list(REPORT_HEADER)]
    for index, name in enumerate(REPORT_HEADER):
        first = date_cell if index == 1 else ""
        grid.append([first, name, str(values[index])])
    return grid


@pytest.fixture
def report_grid() -> list[list]:
    return make_report_grid()


@pytest.fixture
def json_store(tmp_path) -> JsonRecordStore:
    return JsonRecordStore(str(tmp_path / "daily_records.json"))
