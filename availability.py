import logging
from datetime import date
from typing import List, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlmodel import select

from config import SLOT_DURATION_HRS, FacilityHours
from exceptions import DataAccessError
from models import Booking, BookingStatus, Coach, CoachAvailability, Court, Equipment
from schemas import CoachSlot, CourtSlot, EquipmentSlot, SlotAvailability
from timeslots import day_bounds, day_of_week, overlaps, slot_start

logger = logging.getLogger(__name__)


async def confirmed_bookings_on(session: AsyncSession, day: date) -> Sequence[Booking]:
    """All CONFIRMED bookings starting on ``day``, with their equipment lines."""
    start, end = day_bounds(day)
    statement = (
        select(Booking)
        .where(
            Booking.status == BookingStatus.CONFIRMED,
            Booking.start_time >= start,
            Booking.start_time < end,
        )
        .options(selectinload(Booking.equipment))
        .order_by(Booking.start_time, Booking.id)
    )
    result = await session.execute(statement)
    return result.scalars().all()


def window_covers(window: CoachAvailability, weekday: int, start_hour: int, duration_hrs: int) -> bool:
    """Does the weekly window hold ``[start_hour, start_hour + duration)`` on ``weekday``?"""
    return (
        window.day_of_week == weekday
        and window.start_hour <= start_hour
        and start_hour + duration_hrs <= window.end_hour
    )


def reserved_quantity(bookings: Sequence[Booking], equipment_id: int, start, duration_hrs: int) -> int:
    """Units of one equipment item held by bookings overlapping the interval."""
    used = 0
    for booking in bookings:
        if not overlaps(start, duration_hrs, booking.start_time, booking.duration_hrs):
            continue
        used += sum(line.quantity for line in booking.equipment if line.equipment_id == equipment_id)
    return used


async def compute_availability(
    session: AsyncSession, day: date, hours: FacilityHours = FacilityHours()
) -> List[SlotAvailability]:
    try:
        # Step 1: ALL bookings for this date in a single query
        bookings = await confirmed_bookings_on(session, day)

        courts = (
            await session.execute(
                select(Court).where(Court.is_active == True).order_by(Court.id)  # noqa: E712
            )
        ).scalars().all()
        coaches = (
            await session.execute(
                select(Coach)
                .where(Coach.is_active == True)  # noqa: E712
                .options(selectinload(Coach.availability))
                .order_by(Coach.id)
            )
        ).scalars().all()
        equipment = (
            await session.execute(
                select(Equipment).where(Equipment.is_active == True).order_by(Equipment.id)  # noqa: E712
            )
        ).scalars().all()
    except SQLAlchemyError as exc:
        logger.exception("Could not load availability for %s", day)
        raise DataAccessError("Failed to load availability") from exc

    weekday = day_of_week(day)
    slots: List[SlotAvailability] = []

    # Step 2: walk the operating hours
    for hour in hours.hours():
        start = slot_start(day, hour)

        def busy(resource_attr: str, resource_id: int) -> bool:
            return any(
                getattr(b, resource_attr) == resource_id
                and overlaps(start, SLOT_DURATION_HRS, b.start_time, b.duration_hrs)
                for b in bookings
            )

        available_courts = [
            CourtSlot(id=c.id, name=c.name, type=c.type, base_rate=c.base_rate)
            for c in courts
            if not busy("court_id", c.id)
        ]
        available_coaches = [
            CoachSlot(id=c.id, name=c.name)
            for c in coaches
            if any(window_covers(w, weekday, hour, SLOT_DURATION_HRS) for w in c.availability)
            and not busy("coach_id", c.id)
        ]
        equipment_availability = [
            EquipmentSlot(
                id=item.id,
                name=item.name,
                available=max(item.quantity - reserved_quantity(bookings, item.id, start, SLOT_DURATION_HRS), 0),
            )
            for item in equipment
        ]

        slots.append(
            SlotAvailability(
                start_time=start,
                available_courts=available_courts,
                available_coaches=available_coaches,
                equipment_availability=equipment_availability,
            )
        )

    logger.debug("Computed %d slots for %s from %d bookings", len(slots), day, len(bookings))
    return slots
