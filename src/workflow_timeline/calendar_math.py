from __future__ import annotations

import math
from datetime import MAXYEAR, MINYEAR, date, timedelta

from .timeline_models import DurationUnit

# date.weekday(): Monday=0 ... Saturday=5, Sunday=6
_WEEKEND = {5, 6}


def is_business_day(day: date) -> bool:
    return day.weekday() not in _WEEKEND


def add_business_days(start: date, days: int) -> date:
    """Step forward one calendar day at a time until `days` weekdays were counted."""

    _require_non_negative(days)
    result = start
    counted = 0
    while counted < days:
        result += timedelta(days=1)
        if is_business_day(result):
            counted += 1
    return result


def subtract_business_days(start: date, days: int) -> date:
    """Mirror of add_business_days walking backwards."""

    _require_non_negative(days)
    result = start
    counted = 0
    while counted < days:
        result -= timedelta(days=1)
        if is_business_day(result):
            counted += 1
    return result


def add_calendar_days(start: date, days: int) -> date:
    _require_non_negative(days)
    return start + timedelta(days=days)


def subtract_calendar_days(start: date, days: int) -> date:
    _require_non_negative(days)
    return start - timedelta(days=days)


def add_months(start: date, months: float) -> date:
    """
    Add a possibly fractional number of months.

    The whole part uses month rollover (a day past the end of the target month
    spills into the following month), the fractional part is approximated as
    30 days per month and rounded half up. Negative values move backwards.
    Results outside the supported date range raise OverflowError, like plain
    date arithmetic.
    """

    whole = math.floor(months)
    extra_days = _round_half_up((months - whole) * 30)

    month_index = start.month - 1 + whole
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    if not MINYEAR <= year <= MAXYEAR:
        raise OverflowError("date value out of range")
    first = date(year, month, 1)
    # Rollover: Jan 31 + 1 month lands on Mar 3 (or Mar 2 in a leap year).
    rolled = first + timedelta(days=start.day - 1)
    return rolled + timedelta(days=extra_days)


def advance(start: date, amount: int, unit: DurationUnit) -> date:
    if unit == "business_days":
        return add_business_days(start, amount)
    if unit == "calendar_days":
        return add_calendar_days(start, amount)
    raise ValueError(f"unknown duration unit '{unit}'")


def retreat(start: date, amount: int, unit: DurationUnit) -> date:
    if unit == "business_days":
        return subtract_business_days(start, amount)
    if unit == "calendar_days":
        return subtract_calendar_days(start, amount)
    raise ValueError(f"unknown duration unit '{unit}'")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _require_non_negative(days: int) -> None:
    if days < 0:
        raise ValueError(f"day count must be non-negative, got {days}")
