from __future__ import annotations

import logging

import pytest

from regnskapdb.apps.tasks.frequency import (
    FALLBACK_FREQUENCY,
    Frequency,
    from_db_enum,
    normalize,
    to_db_enum,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Månedlig", Frequency.MONTHLY),
        ("månedlig", Frequency.MONTHLY),
        ("  MÅNEDLIG  ", Frequency.MONTHLY),
        ("kvartalsvis", Frequency.QUARTERLY),
        ("Kvartalsvis", Frequency.QUARTERLY),
        ("årlig", Frequency.YEARLY),
        ("daglig", Frequency.DAILY),
        ("løpende", Frequency.DAILY),
        ("ukentlig", Frequency.WEEKLY),
        ("2 vær mnd", Frequency.BI_MONTHLY),
        ("2 hver mnd", Frequency.BI_MONTHLY),
        ("annenhver måned", Frequency.BI_MONTHLY),
        ("engangs", Frequency.ONCE),
        ("spesifikk dato", Frequency.ONCE),
        ("monthly", Frequency.MONTHLY),
        ("quarterly", Frequency.QUARTERLY),
        ("annual", Frequency.YEARLY),
        ("bi-monthly", Frequency.BI_MONTHLY),
        ("BI_MONTHLY", Frequency.BI_MONTHLY),
        ("once", Frequency.ONCE),
    ],
)
def test_normalize_known_aliases(raw, expected):
    assert normalize(raw) is expected


def test_normalize_every_other_month_phrasing():
    assert normalize("hver 2. måned") is Frequency.BI_MONTHLY
    assert normalize("annenhver mnd (MVA)") is Frequency.BI_MONTHLY


def test_normalize_substring_stems_prefer_specific_matches():
    assert normalize("Kvartalsvis rapportering") is Frequency.QUARTERLY
    assert normalize("bi-monthly VAT") is Frequency.BI_MONTHLY
    assert normalize("month end close") is Frequency.MONTHLY


def test_normalize_passes_enum_members_through():
    for member in Frequency:
        assert normalize(member) is member
        assert normalize(member.value) is member


@pytest.mark.parametrize("raw", ["", None, "sometimes", "xyz"])
def test_unknown_input_falls_back_to_monthly_with_warning(raw, caplog):
    with caplog.at_level(logging.WARNING, logger="regnskapdb.apps.tasks.frequency"):
        assert normalize(raw) is FALLBACK_FREQUENCY
    assert FALLBACK_FREQUENCY is Frequency.MONTHLY
    assert any("falling back" in record.getMessage() for record in caplog.records)


def test_known_input_does_not_warn(caplog):
    with caplog.at_level(logging.WARNING, logger="regnskapdb.apps.tasks.frequency"):
        normalize("kvartalsvis")
    assert not caplog.records


def test_db_enum_round_trip_is_a_bijection():
    names = {to_db_enum(member) for member in Frequency}
    assert len(names) == len(Frequency)
    for member in Frequency:
        assert from_db_enum(to_db_enum(member)) is member
    assert to_db_enum(Frequency.BI_MONTHLY) == "BI_MONTHLY"
    assert to_db_enum("kvartalsvis") == "QUARTERLY"
    assert to_db_enum("QUARTERLY") == "QUARTERLY"


def test_from_db_enum_rejects_unknown_values():
    with pytest.raises(ValueError):
        from_db_enum("FORTNIGHTLY")
    with pytest.raises(ValueError):
        from_db_enum("monthly")


def test_once_is_the_only_non_recurring_frequency():
    assert [member for member in Frequency if not member.is_recurring] == [Frequency.ONCE]
