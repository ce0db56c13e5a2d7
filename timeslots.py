"""Interval arithmetic shared by availability, pricing and booking.

Intervals are half-open ``[start, start + duration)`` with durations in
hours. All datetimes handled here are naive facility-local times.
"""

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterator


def interval_end(start: datetime, duration_hrs: float) -> datetime:
    return start + timedelta(hours=duration_hrs)


def overlaps(start_a: datetime, duration_a: float, start_b: datetime, duration_b: float) -> bool:
    """True iff the two half-open intervals share at least one instant.

    A zero-length interval never overlaps anything.
    """
    if duration_a <= 0 or duration_b <= 0:
        return False
    return start_a < interval_end(start_b, duration_b) and start_b < interval_end(start_a, duration_a)


def day_of_week(value: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return value.isoweekday() % 7


def is_weekend(value: date) -> bool:
    return day_of_week(value) in (0, 6)


def day_bounds(value: date) -> tuple[datetime, datetime]:
    start = datetime.combine(value, time.min)
    return start, start + timedelta(days=1)


def slot_start(value: date, hour: int) -> datetime:
    return datetime.combine(value, time(hour=hour))


def hour_starts(start: datetime, duration_hrs: int) -> Iterator[datetime]:
    """Start of every whole hour covered by ``[start, start + duration)``."""
    for offset in range(duration_hrs):
        yield start + timedelta(hours=offset)


def to_facility_local(value: datetime, tz: tzinfo) -> datetime:
    """Convert an instant to naive facility-local time.

    Naive values are assumed to already be facility-local.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(tz).replace(tzinfo=None)
