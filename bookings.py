"""
Booking transactions.

Availability shown to clients is advisory. The checks in ``create_booking``
run inside the same database transaction as the insert, on locked court,
coach and equipment rows (on SQLite, under the database write lock), and
are the only ones that count. The ``slot_claims`` unique constraint backs
them up at the storage layer.
"""

import logging
import secrets
import string
import time
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlmodel import select

from availability import confirmed_bookings_on, reserved_quantity, window_covers
from config import FacilityHours
from database import begin_write
from exceptions import BookingError, ConflictError, DataAccessError, NotFound, ValidationError
from models import (
    Booking,
    BookingEquipment,
    BookingStatus,
    ClaimKind,
    Coach,
    Court,
    Equipment,
    SlotClaim,
)
from pricing import load_equipment, load_rules, price_selection, validate_quote
from schemas import (
    BookingLine,
    BookingOut,
    BookingRequest,
    BookingResult,
    BookingSummary,
    EquipmentSelection,
)
from timeslots import day_of_week, hour_starts, overlaps

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "BLR"
_REFERENCE_ALPHABET = string.digits + string.ascii_uppercase

COURT_CONFLICT = "Court has a conflicting booking for that slot."
COURT_INACTIVE = "Court is not accepting bookings."
COACH_CONFLICT = "Coach is already booked for that slot."
COACH_INACTIVE = "Coach is not accepting bookings."
COACH_OFF_HOURS = "Coach is not available at that time."


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_REFERENCE_ALPHABET[rem])
    return "".join(reversed(digits)) or "0"


def generate_reference() -> str:
    """Human-shareable reference: millisecond timestamp plus a random suffix."""
    stamp = _base36(time.time_ns() // 1_000_000)
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(4))
    return f"{REFERENCE_PREFIX}-{stamp}-{suffix}"


def validate_booking(request: BookingRequest, hours: FacilityHours) -> List[EquipmentSelection]:
    selections = validate_quote(request)
    if not request.user_name or not request.user_name.strip():
        raise ValidationError("userName is required.")

    start = request.start_time
    if (start.minute, start.second, start.microsecond) != (0, 0, 0):
        raise ValidationError("Bookings must start on the hour.")
    if start.hour < hours.start_hour or start.hour + request.duration_hrs > hours.end_hour:
        raise ValidationError(
            f"Bookings must fall within facility hours "
            f"({hours.start_hour:02d}:00-{hours.end_hour:02d}:00)."
        )
    return selections


async def _lock(session: AsyncSession, model, ident: int, kind: str):
    statement = select(model).where(model.id == ident).with_for_update()
    if model is Coach:
        statement = statement.options(selectinload(Coach.availability))
    record = (await session.execute(statement)).scalar_one_or_none()
    if record is None:
        raise NotFound(kind, ident)
    return record


def _assert_court_free(court: Court, bookings: Sequence[Booking], start: datetime, duration: int) -> None:
    if not court.is_active:
        raise ConflictError("court", COURT_INACTIVE)
    for booking in bookings:
        if booking.court_id == court.id and overlaps(start, duration, booking.start_time, booking.duration_hrs):
            raise ConflictError("court", COURT_CONFLICT)


def _assert_coach_free(coach: Coach, bookings: Sequence[Booking], start: datetime, duration: int) -> None:
    if not coach.is_active:
        raise ConflictError("coach", COACH_INACTIVE)
    weekday = day_of_week(start)
    if not any(window_covers(w, weekday, start.hour, duration) for w in coach.availability):
        raise ConflictError("coach", COACH_OFF_HOURS)
    for booking in bookings:
        if booking.coach_id == coach.id and overlaps(start, duration, booking.start_time, booking.duration_hrs):
            raise ConflictError("coach", COACH_CONFLICT)


def _assert_equipment_available(
    equipment: Dict[int, Equipment],
    selections: Sequence[EquipmentSelection],
    bookings: Sequence[Booking],
    start: datetime,
    duration: int,
) -> None:
    for choice in selections:
        record = equipment[choice.id]
        capacity = record.quantity if record.is_active else 0
        used = reserved_quantity(bookings, record.id, start, duration)
        if used + choice.quantity > capacity:
            remaining = max(capacity - used, 0)
            raise ConflictError(
                "equipment",
                f"Only {remaining} of {record.name} left for that slot.",
                remaining=remaining,
            )


async def _claim(session: AsyncSession, booking: Booking, kind: ClaimKind, resource_id: int, message: str) -> None:
    session.add_all(
        SlotClaim(booking_id=booking.id, resource=kind, resource_id=resource_id, slot_start=hour)
        for hour in hour_starts(booking.start_time, booking.duration_hrs)
    )
    try:
        await session.flush()
    except IntegrityError as exc:
        # Another transaction committed the same hour first
        raise ConflictError(kind.value, message) from exc


async def _insert_booking(session: AsyncSession, booking: Booking) -> None:
    """Flush the booking row, drawing a new reference once if it is already taken."""
    for attempt in range(2):
        try:
            async with session.begin_nested():
                session.add(booking)
                await session.flush()
            return
        except IntegrityError:
            if attempt:
                raise
            logger.warning("Reference %s already taken, drawing a new one", booking.reference)
            booking.reference = generate_reference()


async def _persist_lines(session: AsyncSession, booking: Booking, selections: Sequence[EquipmentSelection]) -> None:
    session.add_all(
        BookingEquipment(booking_id=booking.id, equipment_id=choice.id, quantity=choice.quantity)
        for choice in selections
    )
    await session.flush()


async def create_booking(
    session: AsyncSession, request: BookingRequest, hours: FacilityHours = FacilityHours()
) -> BookingResult:
    """Check availability, price and persist a booking as one transaction."""
    selections = validate_booking(request, hours)
    start, duration = request.start_time, request.duration_hrs

    try:
        await begin_write(session)
        court = await _lock(session, Court, request.court_id, "court")
        coach = None
        if request.coach_id is not None:
            coach = await _lock(session, Coach, request.coach_id, "coach")
        equipment = await load_equipment(session, [e.id for e in selections], for_update=True)

        bookings = await confirmed_bookings_on(session, start.date())
        _assert_court_free(court, bookings, start, duration)
        if coach is not None:
            _assert_coach_free(coach, bookings, start, duration)
        _assert_equipment_available(equipment, selections, bookings, start, duration)

        pricing = price_selection(
            court, coach, equipment, selections, start, duration, await load_rules(session)
        )

        booking = Booking(
            reference=generate_reference(),
            user_name=request.user_name.strip(),
            contact=request.contact,
            court_id=court.id,
            coach_id=coach.id if coach is not None else None,
            start_time=start,
            duration_hrs=duration,
            total_price=pricing.total,
            status=BookingStatus.CONFIRMED,
            notes=request.notes,
        )
        await _insert_booking(session, booking)

        await _claim(session, booking, ClaimKind.COURT, court.id, COURT_CONFLICT)
        if coach is not None:
            await _claim(session, booking, ClaimKind.COACH, coach.id, COACH_CONFLICT)
        await _persist_lines(session, booking, selections)

        await session.commit()
    except ConflictError as exc:
        await session.rollback()
        logger.info("Booking rejected for court %s at %s: %s", request.court_id, start, exc.message)
        raise
    except BookingError:
        await session.rollback()
        raise
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Booking transaction failed for court %s at %s", request.court_id, start)
        raise DataAccessError("Booking failed") from exc

    logger.info(
        "Booking created: %s for %s on court %s at %s (%dh, total %.2f)",
        booking.reference, booking.user_name, booking.court_id, start, duration, booking.total_price,
    )
    return BookingResult(booking=BookingOut.model_validate(booking), pricing=pricing)


async def cancel_booking(session: AsyncSession, reference: str) -> BookingOut:
    """CONFIRMED -> CANCELLED. Releases the booking's court and coach hours."""
    try:
        await begin_write(session)
        statement = select(Booking).where(Booking.reference == reference).with_for_update()
        booking = (await session.execute(statement)).scalar_one_or_none()
        if booking is None:
            raise NotFound("booking", reference)
        if booking.status == BookingStatus.CANCELLED:
            raise ValidationError(f"Booking {reference} is already cancelled.")

        booking.status = BookingStatus.CANCELLED
        await session.execute(delete(SlotClaim).where(SlotClaim.booking_id == booking.id))
        await session.commit()
    except BookingError:
        await session.rollback()
        raise
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Could not cancel booking %s", reference)
        raise DataAccessError("Cancellation failed") from exc

    logger.info("Booking cancelled: %s", reference)
    return BookingOut.model_validate(booking)


def _with_names():
    return (
        selectinload(Booking.court),
        selectinload(Booking.coach),
        selectinload(Booking.equipment).selectinload(BookingEquipment.equipment),
    )


def to_summary(booking: Booking) -> BookingSummary:
    data = BookingOut.model_validate(booking).model_dump()
    return BookingSummary(
        **data,
        court_name=booking.court.name,
        coach_name=booking.coach.name if booking.coach is not None else None,
        equipment=[
            BookingLine(id=line.equipment_id, name=line.equipment.name, quantity=line.quantity)
            for line in booking.equipment
        ],
    )


async def get_booking(session: AsyncSession, reference: str) -> BookingSummary:
    try:
        statement = select(Booking).where(Booking.reference == reference).options(*_with_names())
        booking: Optional[Booking] = (await session.execute(statement)).scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.exception("Could not load booking %s", reference)
        raise DataAccessError("Could not fetch booking") from exc
    if booking is None:
        raise NotFound("booking", reference)
    return to_summary(booking)


async def recent_bookings(session: AsyncSession, limit: int) -> List[BookingSummary]:
    """Newest bookings first, with court, coach and equipment names."""
    if limit < 1:
        raise ValidationError("limit must be at least 1.")
    try:
        statement = (
            select(Booking)
            .options(*_with_names())
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .limit(limit)
        )
        bookings = (await session.execute(statement)).scalars().all()
    except SQLAlchemyError as exc:
        logger.exception("Could not fetch recent bookings")
        raise DataAccessError("Could not fetch bookings") from exc
    return [to_summary(b) for b in bookings]
