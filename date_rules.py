"""Calendar-date helpers for reminder evaluation.

All values here are plain ``datetime.date`` objects: year, month and day only.
Nothing in this module builds a timezone-aware instant, so a date never shifts
by a day when the host runs behind or ahead of UTC.
"""

import calendar
import re
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from exceptions import InvalidDateFormat

_ISO_DATE = re.compile(r'([0-9]{4})-([0-9]{2})-([0-9]{2})')


def _as_calendar_date(value) -> date:
    # datetime is a subclass of date; keep its own wall-clock components
    if isinstance(value, datetime):
        return date(value.year, value.month, value.day)
    return value


def is_same_calendar_day(a: date, b: date) -> bool:
    """True iff year, month and day-of-month are all equal."""
    a = _as_calendar_date(a)
    b = _as_calendar_date(b)
    return (a.year, a.month, a.day) == (b.year, b.month, b.day)


def shift_days(value: date, n: int) -> date:
    """Return the calendar date ``n`` days after (or before, if negative) ``value``."""
    return _as_calendar_date(value) + timedelta(days=n)


def parse_calendar_date(text: str) -> date:
    """Parse a ``YYYY-MM-DD`` string into a date.

    Raises:
        InvalidDateFormat: if the text is not well-formed or out of range
            (month 13, day 32, February 30, ...)
    """
    if not isinstance(text, str):
        raise InvalidDateFormat(text)

    match = _ISO_DATE.fullmatch(text)
    if not match:
        raise InvalidDateFormat(text)

    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        raise InvalidDateFormat(text) from None


def occurrence_in_year(anchor: date, year: int) -> date:
    """Move the month/day of ``anchor`` into ``year``.

    February 29 falls on February 28 in non-leap years.
    """
    if anchor.month == 2 and anchor.day == 29 and not calendar.isleap(year):
        return date(year, 2, 28)
    return date(year, anchor.month, anchor.day)


def current_local_date(tz_name: str = "UTC") -> date:
    """Today's calendar date in the given IANA timezone.

    This is the only clock read in the engine; it happens at the trigger boundary.
    """
    now = datetime.now(ZoneInfo(tz_name))
    return date(now.year, now.month, now.day)
