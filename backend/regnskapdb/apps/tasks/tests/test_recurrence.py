from __future__ import annotations

from datetime import datetime, timezone

import pytest

from regnskapdb.apps.tasks.frequency import Frequency
from regnskapdb.apps.tasks.recurrence import STEPS, add_months, advance, day_bounds


def _dt(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def test_every_frequency_has_a_step():
    assert set(STEPS) == set(Frequency)


@pytest.mark.parametrize(
    "start, frequency, expected",
    [
        (_dt(2024, 1, 1), Frequency.DAILY, _dt(2024, 1, 2)),
        (_dt(2024, 12, 31), Frequency.DAILY, _dt(2025, 1, 1)),
        (_dt(2024, 1, 1), Frequency.WEEKLY, _dt(2024, 1, 8)),
        (_dt(2024, 1, 15), Frequency.MONTHLY, _dt(2024, 2, 15)),
        (_dt(2024, 11, 30), Frequency.BI_MONTHLY, _dt(2025, 1, 30)),
        (_dt(2024, 1, 1), Frequency.QUARTERLY, _dt(2024, 4, 1)),
        (_dt(2024, 11, 15), Frequency.QUARTERLY, _dt(2025, 2, 15)),
        (_dt(2023, 6, 30), Frequency.YEARLY, _dt(2024, 6, 30)),
    ],
)
def test_advance_steps(start, frequency, expected):
    assert advance(start, frequency) == expected


def test_month_end_clamps_instead_of_rolling_over():
    assert advance(_dt(2024, 1, 31), Frequency.MONTHLY) == _dt(2024, 2, 29)
    assert advance(_dt(2023, 1, 31), Frequency.MONTHLY) == _dt(2023, 2, 28)
    assert advance(_dt(2024, 3, 31), Frequency.MONTHLY) == _dt(2024, 4, 30)
    assert advance(_dt(2024, 12, 31), Frequency.BI_MONTHLY) == _dt(2025, 2, 28)
    assert advance(_dt(2024, 11, 30), Frequency.QUARTERLY) == _dt(2025, 2, 28)


def test_yearly_from_leap_day_clamps_to_feb_28():
    assert advance(_dt(2024, 2, 29), Frequency.YEARLY) == _dt(2025, 2, 28)


def test_clamped_dates_anchor_on_the_new_day():
    feb = advance(_dt(2024, 1, 31), Frequency.MONTHLY)
    assert advance(feb, Frequency.MONTHLY) == _dt(2024, 3, 29)


def test_advance_keeps_time_of_day_and_timezone():
    start = _dt(2024, 5, 10, 9, 30)
    result = advance(start, Frequency.MONTHLY)
    assert (result.hour, result.minute) == (9, 30)
    assert result.tzinfo == timezone.utc


def test_advance_accepts_free_text_frequencies():
    assert advance(_dt(2024, 1, 1), "kvartalsvis") == _dt(2024, 4, 1)
    assert advance(_dt(2024, 1, 1), "not a frequency") == _dt(2024, 2, 1)


@pytest.mark.parametrize("frequency", list(Frequency))
def test_advance_is_strictly_forward(frequency):
    samples = [
        _dt(2024, 1, 31),
        _dt(2024, 2, 29),
        _dt(2023, 12, 31, 23, 59),
        _dt(2025, 6, 15, 12),
    ]
    for value in samples:
        assert advance(value, frequency) > value


def test_add_months_handles_year_boundaries():
    assert add_months(_dt(2024, 12, 5), 1) == _dt(2025, 1, 5)
    assert add_months(_dt(2024, 10, 31), 4) == _dt(2025, 2, 28)


def test_day_bounds_cover_the_calendar_day():
    start, end = day_bounds(_dt(2024, 4, 1, 15, 45))
    assert start == _dt(2024, 4, 1)
    assert end == _dt(2024, 4, 2)
