"""
Slot generation

Builds the fixed daily grid of candidate appointment times and filters it
against a doctor's existing bookings. Nothing here touches the database;
AppointmentService loads the bookings and passes their timestamps in.
"""
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List

from ..core.config import settings


def generate_day_slots(
    day: date,
    start_hour: int = None,
    end_hour: int = None,
    duration_minutes: int = None,
) -> List[datetime]:
    """
    Candidate slot start times for ``day``.

    Slots run every ``duration_minutes`` from ``start_hour`` up to, but not
    including, ``end_hour``. With the defaults (09:00-17:00, 30 minutes)
    that is 16 slots.
    """
    start_hour = settings.WORKDAY_START_HOUR if start_hour is None else start_hour
    end_hour = settings.WORKDAY_END_HOUR if end_hour is None else end_hour
    if duration_minutes is None:
        duration_minutes = settings.SLOT_DURATION_MINUTES
    if duration_minutes <= 0:
        raise ValueError(f"Slot duration must be positive, got {duration_minutes}")

    current = datetime.combine(day, time(hour=start_hour))
    day_end = datetime.combine(day, time(hour=end_hour))
    step = timedelta(minutes=duration_minutes)

    slots = []
    while current < day_end:
        slots.append(current)
        current += step
    return slots


def is_slot_occupied(
    slot: datetime,
    booked_times: Iterable[datetime],
    window_minutes: int = None,
) -> bool:
    """True when any booking starts within ``window_minutes`` of the slot, inclusive."""
    if window_minutes is None:
        window_minutes = settings.SLOT_CONFLICT_WINDOW_MINUTES
    window = timedelta(minutes=window_minutes)
    return any(abs(booked - slot) <= window for booked in booked_times)


def filter_available_slots(
    slots: Iterable[datetime],
    booked_times: Iterable[datetime],
    window_minutes: int = None,
) -> List[datetime]:
    booked = list(booked_times)
    return [
        slot for slot in slots
        if not is_slot_occupied(slot, booked, window_minutes)
    ]


def format_slot(slot: datetime, fmt: str = None) -> Dict[str, object]:
    return {
        "time": slot,
        "formatted": slot.strftime(fmt or settings.SLOT_DISPLAY_FORMAT),
    }
