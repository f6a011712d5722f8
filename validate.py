"""
validate.py - Plausibility gates and record assembly.

Gates, checked in order:
    1. a date could be resolved                     -> else "no date found"
    2. a signal location has a positive quantity    -> else "signal locations all zero"
    3. something non-zero was extracted at all      -> else "no data"
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional, Union

from aggregate import hadyai_quantity
from categories import CategoryProfile, get_profile
from locations import DEFAULT_REGISTRY, LocationRegistry
from logging_config import get_logger
from models import AggregationResult, Category, DailyRecord, Rejection, RejectionReason
from normalize import parse_date, to_date

logger = get_logger(__name__)

BuildResult = Union[DailyRecord, Rejection]


def signal_present(aggregation: AggregationResult, profile: CategoryProfile) -> bool:
    """True when at least one signal location carries stock."""
    return any(aggregation.location_totals.get(key, 0) > 0 for key in profile.signal_locations)


def has_data(aggregation: AggregationResult) -> bool:
    return aggregation.grand_total != 0 or any(value != 0 for value in aggregation.location_totals.values())


def _reject(reason: RejectionReason, category: Category, date: Optional[str]) -> Rejection:
    logger.info(
        "record_rejected | category=%s | date=%s | reason=%r",
        category.value,
        date,
        reason.value,
    )
    return Rejection(reason=reason, category=category, date=date)


def build(
    date_candidate: Any,
    category: Category | str,
    aggregation: AggregationResult,
    *,
    profile: Optional[CategoryProfile] = None,
    registry: LocationRegistry = DEFAULT_REGISTRY,
    apply_signal_gate: bool = True,
    timestamp: Optional[dt.datetime] = None,
) -> BuildResult:
    """Validate an aggregation and assemble the DailyRecord.

    `apply_signal_gate=False` skips gate 2; the workbook import uses it for
    historical rows, where a day without Hat Yai stock is still a real day.

    Auxiliary fields of the category's profile (orange: Khon Kaen to Laos /
    Cambodia) are 0 when no marked row was found, not NULL; categories
    without such fields leave them None.
    """
    category = Category(category)
    profile = profile or get_profile(category)

    display_date = parse_date(date_candidate)
    if display_date is None:
        return _reject(RejectionReason.NO_DATE, category, None)

    if apply_signal_gate and not signal_present(aggregation, profile):
        return _reject(RejectionReason.SIGNAL_ZERO, category, display_date)

    if not has_data(aggregation):
        return _reject(RejectionReason.NO_DATA, category, display_date)

    totals = registry.empty_totals()
    for key, value in aggregation.location_totals.items():
        if key in totals:
            totals[key] = int(value)

    aux_values: dict[str, Optional[int]] = {}
    for rule in profile.aux_fields:
        value = aggregation.aux_fields.get(rule.name)
        aux_values[rule.name] = int(value) if value is not None else 0

    record = DailyRecord(
        date=to_date(display_date),
        category=category,
        location_totals=totals,
        total_sum=aggregation.grand_total,
        fc33_hadyai_sum=hadyai_quantity(aggregation),
        timestamp=timestamp or dt.datetime.now(dt.timezone.utc),
        **aux_values,
    )
    logger.info(
        "record_built | category=%s | date=%s | total_sum=%s | fc33_hadyai_sum=%s",
        category.value,
        display_date,
        record.total_sum,
        record.fc33_hadyai_sum,
    )
    return record
