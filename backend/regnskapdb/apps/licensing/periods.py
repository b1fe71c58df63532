"""Billing period helpers. A period is a calendar month written "YYYY-MM" (UTC)."""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timezone
from typing import Optional, Tuple

from regnskapdb.utils.identifiers import short_ref

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")


class InvalidPeriod(ValueError):
    pass


def parse_period(period: str) -> Tuple[int, int]:
    match = _PERIOD_RE.match(str(period or "").strip())
    if not match:
        raise InvalidPeriod(f"Invalid billing period {period!r}; expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidPeriod(f"Invalid month in billing period {period!r}")
    return year, month


def format_period(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def current_period(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return format_period(now.year, now.month)


def period_dates(period: str) -> Tuple[datetime, datetime]:
    """First instant and last millisecond of the period, in UTC."""
    year, month = parse_period(period)
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(year, month, last_day, 23, 59, 59, 999000, tzinfo=timezone.utc)
    return start, end


def next_period(period: str) -> str:
    year, month = parse_period(period)
    if month == 12:
        return format_period(year + 1, 1)
    return format_period(year, month + 1)


def previous_period(period: str) -> str:
    year, month = parse_period(period)
    if month == 1:
        return format_period(year - 1, 12)
    return format_period(year, month - 1)


def generate_invoice_id(tenant_id: str, period: str) -> str:
    parse_period(period)
    return f"INV-{short_ref(tenant_id)}-{period}"
