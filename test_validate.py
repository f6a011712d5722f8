"""
test_validate.py - Plausibility gates and record assembly.

Usage: pytest test_validate.py
"""

from __future__ import annotations

import datetime as dt
import os
import sys

import pytest
from pydantic import ValidationError

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from locations import DEFAULT_REGISTRY
from models import AggregationResult, Category, DailyRecord, Rejection, RejectionReason
from validate import build


def _aggregation(grand_total: int = 0, **totals: int) -> AggregationResult:
    location_totals = DEFAULT_REGISTRY.empty_totals()
    location_totals.update(totals)
    return AggregationResult(location_totals=location_totals, grand_total=grand_total)


def test_signal_gate_rejects_despite_nonzero_total():
    result = build("18/10/2025", Category.ORANGE, _aggregation(500, cdc_phuket=200, cdc_chonburi=300))

    assert isinstance(result, Rejection)
    assert result.reason == RejectionReason.SIGNAL_ZERO
    assert result.reason.value == "signal locations all zero"
    assert result.date == "18/10/2025"


def test_alternate_signal_location_passes():
    result = build("18/10/2025", Category.YUZU, _aggregation(40, cdc_suvarnabhumi=40))
    assert isinstance(result, DailyRecord)
    assert result.location_totals["cdc_suvarnabhumi"] == 40


def test_missing_date_is_checked_first():
    result = build(None, Category.ORANGE, _aggregation())
    assert isinstance(result, Rejection)
    assert result.reason == RejectionReason.NO_DATE
    assert result.date is None


def test_no_data_when_gate_disabled():
    result = build("18/10/2025", Category.POP, _aggregation(), apply_signal_gate=False)
    assert isinstance(result, Rejection)
    assert result.reason == RejectionReason.NO_DATA


def test_gate_disabled_accepts_day_without_signal():
    result = build("2025-10-18", Category.MIXED, _aggregation(9, cdc_phuket=9), apply_signal_gate=False)
    assert isinstance(result, DailyRecord)
    assert result.fc33_hadyai_sum == 0
    assert result.total_sum == 9


def test_record_fields():
    stamp = dt.datetime(2025, 10, 18, 9, 0, tzinfo=dt.timezone.utc)
    result = build("18/10/2025", Category.ORANGE, _aggregation(18, cdc_hadyai=10, cdc_chonburi=8), timestamp=stamp)

    assert isinstance(result, DailyRecord)
    assert result.date == dt.date(2025, 10, 18)
    assert result.display_date == "18/10/2025"
    assert result.key == (dt.date(2025, 10, 18), Category.ORANGE)
    assert set(result.location_totals) == set(DEFAULT_REGISTRY.keys())
    assert result.total_sum == 18
    assert result.fc33_hadyai_sum == 10
    assert result.khon_kaen_laos == 0
    assert result.khon_kaen_cambodia == 0
    assert result.timestamp == stamp


def test_aux_fields_only_for_orange():
    aggregation = AggregationResult(
        location_totals={**DEFAULT_REGISTRY.empty_totals(), "cdc_hadyai": 1},
        grand_total=1,
        aux_fields={"khon_kaen_laos": 5, "khon_kaen_cambodia": None},
    )
    orange = build("18/10/2025", Category.ORANGE, aggregation)
    yuzu = build("18/10/2025", Category.YUZU, aggregation)

    assert (orange.khon_kaen_laos, orange.khon_kaen_cambodia) == (5, 0)
    assert (yuzu.khon_kaen_laos, yuzu.khon_kaen_cambodia) == (None, None)


def test_record_is_frozen():
    record = build("18/10/2025", "orange", _aggregation(1, cdc_hadyai=1))
    with pytest.raises(ValidationError):
        record.total_sum = 2


def test_row_round_trip_keeps_natural_key():
    record = build("18/10/2025", Category.TOMATO, _aggregation(3, cdc_hadyai=3))
    row = record.to_row()
    assert row["date"] == "2025-10-18"
    assert row["category"] == "tomato"
    assert row["cdc_hadyai"] == 3

    restored = DailyRecord.from_row(row, DEFAULT_REGISTRY.keys())
    assert restored == record
