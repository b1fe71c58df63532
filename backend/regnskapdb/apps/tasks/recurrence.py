"""
Due-date arithmetic for recurring task templates.

`advance()` is pure and always moves strictly forward. Calendar-month steps
clamp to the last day of the target month (31 Jan + 1 month = 28/29 Feb)
instead of rolling over into the following month.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta
from typing import Callable, Dict, Union

from .frequency import Frequency, normalize


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def _days(n: int) -> Callable[[datetime], datetime]:
    return lambda value: value + timedelta(days=n)


def _months(n: int) -> Callable[[datetime], datetime]:
    return lambda value: add_months(value, n)


# One step per Frequency member; tests assert this table stays exhaustive.
# ONCE never recurs; its step only keeps advance() total and forward-only.
STEPS: Dict[Frequency, Callable[[datetime], datetime]] = {
    Frequency.DAILY: _days(1),
    Frequency.WEEKLY: _days(7),
    Frequency.MONTHLY: _months(1),
    Frequency.BI_MONTHLY: _months(2),
    Frequency.QUARTERLY: _months(3),
    Frequency.YEARLY: _months(12),
    Frequency.ONCE: _months(1),
}


def advance(value: datetime, frequency: Union[Frequency, str]) -> datetime:
    """Return the next occurrence after `value` for the given frequency."""
    step = STEPS[normalize(frequency)]
    return step(value)


def day_bounds(value: datetime) -> tuple[datetime, datetime]:
    """Start of the calendar day of `value` and start of the next day."""
    start = value.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)
