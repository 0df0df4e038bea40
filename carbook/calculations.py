"""Helper functions for due-date, due-odometer and urgency calculations."""

from datetime import date, datetime
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from .status import ReminderStatus


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Parse a stored date value into a date.

    Accepts plain dates ('2025-01-15'), full ISO timestamps
    ('2025-01-15T00:00:00.000Z') and date/datetime objects.
    Returns None for empty values; raises ValueError for garbage.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date_parser.isoparse(str(value)).date()


def calc_due_date(
    last_date: Optional[date], interval_months: Optional[float]
) -> Optional[date]:
    """Calculate next due date: last + interval months."""
    if interval_months is None or last_date is None:
        return None
    months = int(interval_months)
    days = int((interval_months - months) * 30)
    return last_date + relativedelta(months=months, days=days)


def calc_due_km(
    last_odometer: Optional[float], interval_km: Optional[float]
) -> Optional[float]:
    """Calculate next due odometer: last reading + interval."""
    if interval_km is None:
        return None
    return (last_odometer or 0) + interval_km


def days_until(due: date, today: date) -> int:
    """Whole calendar days from today until due (negative when past)."""
    return (due - today).days


def check_status(remaining: float, urgent: float, warning: float) -> ReminderStatus:
    """Classify what is left before a trigger fires into an urgency tier."""
    if remaining <= 0:
        return ReminderStatus.OVERDUE
    if remaining <= urgent:
        return ReminderStatus.URGENT
    if remaining <= warning:
        return ReminderStatus.WARNING
    return ReminderStatus.UPCOMING
