"""
normalize.py - Date and quantity normalization.

Two core parsers:
    parse_date(value)       -> "DD/MM/YYYY" or None
    parse_quantity(value)   -> int (0 for anything unusable)

Helpers:
    find_date_in_text(text) -> first embedded date as "DD/MM/YYYY"
    to_date / to_iso_date / to_display_date

Design principles:
    - Pure transformations, no I/O
    - Never raise on bad input; degrade to None / 0
    - One canonical date text ("DD/MM/YYYY") for keying across sources
"""

from __future__ import annotations

import datetime as dt
import math
import numbers
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from grid import cell_text
from logging_config import get_logger

logger = get_logger(__name__)

# Spreadsheet (1900 date system) serials. Serial 60 is the phantom
# 29/02/1900; serials below it count from 31/12/1899.
SERIAL_EPOCH = dt.date(1899, 12, 30)
SERIAL_EPOCH_PRE_LEAP_BUG = dt.date(1899, 12, 31)
SERIAL_PHANTOM_LEAP_DAY = 60
SERIAL_MAX = 2958465  # 31/12/9999

DISPLAY_FORMAT = "%d/%m/%Y"

_DMY_FULL = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_YMD_FULL = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_DMY_SEARCH = re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)")
_YMD_SEARCH = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")

# Characters dropped from quantity text before parsing.
_QUANTITY_NOISE = re.compile(r"[,\s '฿$€£¥]")
_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


def _format(day: dt.date) -> str:
    return day.strftime(DISPLAY_FORMAT)


def _safe_date(year: int, month: int, day: int) -> Optional[dt.date]:
    try:
        return dt.date(year, month, day)
    except ValueError:
        return None


def _from_serial(serial: float) -> Optional[dt.date]:
    if not math.isfinite(serial):
        return None
    days = int(math.floor(serial))
    if days < 1 or days > SERIAL_MAX:
        return None
    if days == SERIAL_PHANTOM_LEAP_DAY:
        return None
    epoch = SERIAL_EPOCH_PRE_LEAP_BUG if days < SERIAL_PHANTOM_LEAP_DAY else SERIAL_EPOCH
    return epoch + dt.timedelta(days=days)


def parse_date(value: Any) -> Optional[str]:
    """Normalize a date cell to "DD/MM/YYYY".

    Accepts spreadsheet serial numbers, date/datetime objects,
    "D/M/YYYY" text and "YYYY-MM-DD" text. Anything else returns None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, dt.datetime):
        try:
            return _format(value.date())
        except ValueError:
            # pandas NaT is a datetime subclass that cannot be formatted.
            return None
    if isinstance(value, dt.date):
        return _format(value)

    if isinstance(value, numbers.Real):
        day = _from_serial(float(value))
        if day is None:
            logger.debug("parse_date | rejected_serial=%r", value)
            return None
        return _format(day)

    text = cell_text(value)
    if not text:
        return None

    match = _DMY_FULL.match(text)
    if match:
        day = _safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        return _format(day) if day else None

    match = _YMD_FULL.match(text)
    if match:
        day = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        return _format(day) if day else None

    return None


def find_date_in_text(text: Any) -> Optional[str]:
    """Return the first valid date embedded anywhere in `text`.

    "วันที่ 18/10/2025" -> "18/10/2025". Both accepted shapes are searched
    and the earliest valid occurrence wins.
    """
    source = cell_text(text)
    if not source:
        return None

    candidates: list[tuple[int, str]] = []
    for pattern in (_DMY_SEARCH, _YMD_SEARCH):
        for match in pattern.finditer(source):
            candidates.append((match.start(), match.group(0)))

    for _, token in sorted(candidates):
        parsed = parse_date(token)
        if parsed:
            return parsed
    return None


def to_date(display: Optional[str]) -> Optional[dt.date]:
    """Parse canonical "DD/MM/YYYY" (or ISO) text into a date."""
    if not display:
        return None
    normalized = parse_date(display)
    if normalized is None:
        return None
    return dt.datetime.strptime(normalized, DISPLAY_FORMAT).date()


def to_iso_date(display: Optional[str]) -> Optional[str]:
    day = to_date(display)
    return day.isoformat() if day else None


def to_display_date(value: Any) -> Optional[str]:
    """Render a stored date (date object or ISO text) as "DD/MM/YYYY"."""
    return parse_date(value)


def _round_half_up(value: Any) -> int:
    try:
        return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        return 0


def parse_quantity(value: Any) -> int:
    """Convert a report cell into an integer quantity.

    Empty, None and unparsable cells are 0. Thousands separators, currency
    symbols and spaces are ignored; the leading numeric part of the text
    is used ("1,234 ขวด" -> 1234). Rounding is half-up: 12.5 -> 13.
    Negative values are returned as-is.
    """
    if value is None or isinstance(value, bool):
        return 0

    if isinstance(value, numbers.Integral):
        result = int(value)
    elif isinstance(value, numbers.Real):
        number = float(value)
        if not math.isfinite(number):
            return 0
        result = _round_half_up(number)
    else:
        text = cell_text(value).replace("−", "-")
        cleaned = _QUANTITY_NOISE.sub("", text)
        if not cleaned:
            return 0
        match = _LEADING_NUMBER.match(cleaned)
        if not match:
            logger.debug("parse_quantity | parse_failed | raw=%r | fallback=0", value)
            return 0
        result = _round_half_up(match.group(0))

    if result < 0:
        logger.warning("parse_quantity | negative=%r | parsed=%s | passthrough=True", value, result)
    return result
