"""Date helpers.

Timestamps are stored as naive datetimes in the configured ``TIMEZONE``.
Aware inputs are converted to that zone first; naive inputs are taken as
already local.
"""
from datetime import date, datetime, time
from typing import Tuple, Union
from zoneinfo import ZoneInfo

from .config import settings
from .exceptions import InvalidDateFormat

DateInput = Union[str, date, datetime]


def local_zone() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def local_now() -> datetime:
    """Current wall-clock time in the scheduler's timezone, without tzinfo."""
    return datetime.now(local_zone()).replace(tzinfo=None)


def to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(local_zone()).replace(tzinfo=None)


def parse_datetime(value: DateInput, field: str = "date") -> datetime:
    """Parse an ISO-8601 timestamp into a naive local datetime.

    Raises InvalidDateFormat for anything that is not a datetime, a date or
    an ISO-8601 string.
    """
    if isinstance(value, datetime):
        return to_local_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str) or not value.strip():
        raise InvalidDateFormat(f"Invalid {field} format")

    raw = value.strip()
    # fromisoformat only accepts a trailing Z from Python 3.11 on
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise InvalidDateFormat(f"Invalid {field} format")
    return to_local_naive(parsed)


def parse_day(value: DateInput, field: str = "date") -> date:
    """Calendar day of a date or timestamp input."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return parse_datetime(value, field).date()


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """First and last representable instant of ``day``."""
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max)

