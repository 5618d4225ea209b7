"""Decides whether a reminder fires on a given calendar day.

Pure functions: no I/O and no clock reads. ``today`` is always passed in.
"""

import enum
from datetime import date

from date_rules import is_same_calendar_day, occurrence_in_year, parse_calendar_date, shift_days
from schemas import ReminderRecord


class FiringDecision(str, enum.Enum):
    """What a reminder does on a given day"""
    NONE = "none"
    ON_DATE = "on_date"
    ADVANCE_NOTICE = "advance_notice"


def effective_date(reminder: ReminderRecord, today: date) -> date:
    """The concrete occurrence to compare ``today`` against.

    Recurring reminders repeat on their month/day in ``today``'s year;
    one-off reminders use the full anchor date.

    Raises:
        InvalidDateFormat: if the reminder's anchor date is malformed
    """
    anchor = parse_calendar_date(reminder.anchor_date)
    if reminder.is_recurring:
        return occurrence_in_year(anchor, today.year)
    return anchor


def evaluate(reminder: ReminderRecord, today: date) -> FiringDecision:
    """Classify ``reminder`` for ``today``.

    Args:
        reminder: Reminder record
        today: Calendar date being evaluated

    Returns:
        FiringDecision: ON_DATE on the occurrence day, ADVANCE_NOTICE exactly
        ``advance_notice_days`` before it, NONE otherwise (and always for
        inactive reminders)

    Raises:
        InvalidDateFormat: if the reminder's anchor date is malformed
    """
    if not reminder.is_active:
        return FiringDecision.NONE

    occurrence = effective_date(reminder, today)

    if is_same_calendar_day(today, occurrence):
        return FiringDecision.ON_DATE

    advance_days = reminder.advance_notice_days or 0
    if advance_days > 0 and is_same_calendar_day(today, shift_days(occurrence, -advance_days)):
        return FiringDecision.ADVANCE_NOTICE

    return FiringDecision.NONE
