"""
Task frequency normalisation.

Frequencies arrive as free text from forms, spreadsheet imports and older
rows ("Månedlig", "kvartalsvis", "2 vær mnd", "annual", ...). Everything is
mapped onto the closed `Frequency` enum before it reaches the engine.

Policy: input that cannot be recognised falls back to MONTHLY and logs a
warning. The recurring task engine must never stop over one bad template.
"""

from __future__ import annotations

import enum
import logging
import re
from typing import Union

logger = logging.getLogger(__name__)


class Frequency(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    BI_MONTHLY = "bi-monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    ONCE = "once"

    @property
    def is_recurring(self) -> bool:
        return self is not Frequency.ONCE


FALLBACK_FREQUENCY = Frequency.MONTHLY

# Norwegian spellings, including historical typos found in imported data.
_NB_ALIASES = {
    "daglig": Frequency.DAILY,
    "løpende": Frequency.DAILY,
    "ukentlig": Frequency.WEEKLY,
    "månedlig": Frequency.MONTHLY,
    "maanedlig": Frequency.MONTHLY,
    "mnd": Frequency.MONTHLY,
    "annenhver måned": Frequency.BI_MONTHLY,
    "annenhver mnd": Frequency.BI_MONTHLY,
    "2 hver mnd": Frequency.BI_MONTHLY,
    "2 vær mnd": Frequency.BI_MONTHLY,
    "2 vær måned": Frequency.BI_MONTHLY,
    "kvartalsvis": Frequency.QUARTERLY,
    "årlig": Frequency.YEARLY,
    "aarlig": Frequency.YEARLY,
    "engangs": Frequency.ONCE,
    "engang": Frequency.ONCE,
    "spesifikk dato": Frequency.ONCE,
    "bestemt dato": Frequency.ONCE,
}

_EN_ALIASES = {
    "daily": Frequency.DAILY,
    "day": Frequency.DAILY,
    "weekly": Frequency.WEEKLY,
    "week": Frequency.WEEKLY,
    "monthly": Frequency.MONTHLY,
    "month": Frequency.MONTHLY,
    "bi-monthly": Frequency.BI_MONTHLY,
    "bimonthly": Frequency.BI_MONTHLY,
    "bi_monthly": Frequency.BI_MONTHLY,
    "quarterly": Frequency.QUARTERLY,
    "quarter": Frequency.QUARTERLY,
    "yearly": Frequency.YEARLY,
    "annual": Frequency.YEARLY,
    "annually": Frequency.YEARLY,
    "once": Frequency.ONCE,
    "specific_date": Frequency.ONCE,
}

_EVERY_OTHER_MONTH = re.compile(r"(2|annenhver).*(mån|mnd|maan)")

# Substring fallbacks, checked in order; longer/more specific stems first
# so "bi-monthly" is not read as "monthly".
_STEMS = (
    ("bi-month", Frequency.BI_MONTHLY),
    ("bimonth", Frequency.BI_MONTHLY),
    ("kvartal", Frequency.QUARTERLY),
    ("quarter", Frequency.QUARTERLY),
    ("årlig", Frequency.YEARLY),
    ("aarlig", Frequency.YEARLY),
    ("year", Frequency.YEARLY),
    ("annual", Frequency.YEARLY),
    ("måned", Frequency.MONTHLY),
    ("maaned", Frequency.MONTHLY),
    ("month", Frequency.MONTHLY),
    ("ukentlig", Frequency.WEEKLY),
    ("week", Frequency.WEEKLY),
    ("daglig", Frequency.DAILY),
    ("daily", Frequency.DAILY),
    ("engang", Frequency.ONCE),
    ("once", Frequency.ONCE),
)

# DB enum names are the Frequency member names (DAILY, BI_MONTHLY, ...).
_DB_NAMES = {member.name: member for member in Frequency}


def _clean(value: object) -> str:
    return " ".join(str(value or "").split()).lower()


def normalize(value: Union[str, Frequency, None]) -> Frequency:
    """
    Map free text onto a canonical Frequency. Never raises.

    Order: exact Norwegian alias, exact English alias, "every other month"
    heuristic, substring stems, then the MONTHLY fallback.
    """
    if isinstance(value, Frequency):
        return value

    key = _clean(value)
    if key in _NB_ALIASES:
        return _NB_ALIASES[key]
    if key in _EN_ALIASES:
        return _EN_ALIASES[key]
    if key.upper().replace("-", "_") in _DB_NAMES:
        return _DB_NAMES[key.upper().replace("-", "_")]
    if _EVERY_OTHER_MONTH.search(key):
        return Frequency.BI_MONTHLY
    for stem, frequency in _STEMS:
        if stem in key:
            return frequency

    logger.warning(
        "Unknown task frequency, falling back to monthly",
        extra={"frequency_input": value, "fallback": FALLBACK_FREQUENCY.value},
    )
    return FALLBACK_FREQUENCY


def to_db_enum(value: Union[str, Frequency]) -> str:
    """Return the DB enum name for a frequency (free text is normalised first)."""
    if isinstance(value, str) and not isinstance(value, Frequency) and value in _DB_NAMES:
        return value
    return normalize(value).name


def from_db_enum(value: str) -> Frequency:
    """Inverse of `to_db_enum` over the DB enum names."""
    try:
        return _DB_NAMES[value]
    except KeyError:
        raise ValueError(f"Unknown frequency DB value {value!r}") from None
