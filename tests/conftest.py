"""Shared test fixtures and helpers."""

from datetime import date, datetime, time
from typing import Dict, List, Optional, Tuple

import pytest
from httpx import ASGITransport, AsyncClient

from config import Settings
from database import Database
from main import create_app
from models import (
    AdjustmentKind,
    Booking,
    BookingEquipment,
    BookingStatus,
    Coach,
    CoachAvailability,
    Court,
    CourtType,
    Equipment,
    PricingRule,
    RuleType,
)

SATURDAY = date(2025, 3, 15)
SUNDAY = date(2025, 3, 16)
MONDAY = date(2025, 3, 17)


def at(day: date, hour: int) -> datetime:
    return datetime.combine(day, time(hour=hour))


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'courts.db'}"


@pytest.fixture
async def db(database_url):
    database = Database(database_url)
    await database.init()
    yield database
    await database.close()


@pytest.fixture
async def session(db):
    async with db.session() as s:
        yield s


@pytest.fixture
def settings(database_url) -> Settings:
    return Settings(database_url=database_url, timezone="Asia/Kolkata")


@pytest.fixture
async def client(settings, db):
    app = create_app(settings, database=db)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def _save(session, record):
    session.add(record)
    await session.commit()
    return record


async def add_court(session, name: str = "Indoor 1", type: CourtType = CourtType.INDOOR,
                    base_rate: float = 450, is_active: bool = True) -> Court:
    return await _save(
        session,
        Court(name=name, location="Bengaluru - Indiranagar", type=type, base_rate=base_rate, is_active=is_active),
    )


async def add_equipment(session, name: str = "Racket", quantity: int = 10,
                        base_fee: float = 120, is_active: bool = True) -> Equipment:
    return await _save(
        session, Equipment(name=name, quantity=quantity, base_fee=base_fee, is_active=is_active)
    )


async def add_coach(session, name: str = "Arjun Iyer", rate_per_hour: float = 1050,
                    windows: Optional[List[Tuple[int, int, int]]] = None,
                    is_active: bool = True) -> Coach:
    """Windows are (day_of_week, start_hour, end_hour) with 0 = Sunday."""
    coach = Coach(
        name=name,
        bio="Weekend specialist",
        city="Bengaluru",
        rate_per_hour=rate_per_hour,
        is_active=is_active,
        availability=[
            CoachAvailability(day_of_week=d, start_hour=s, end_hour=e)
            for d, s, e in (windows if windows is not None else [(6, 8, 14), (0, 8, 14)])
        ],
    )
    return await _save(session, coach)


async def add_rule(session, rule_type: RuleType, amount: float, name: Optional[str] = None,
                   start_hour: Optional[int] = None, end_hour: Optional[int] = None,
                   adjustment: AdjustmentKind = AdjustmentKind.FIXED,
                   is_active: bool = True) -> PricingRule:
    return await _save(
        session,
        PricingRule(
            name=name or rule_type.value.replace("_", " ").title(),
            rule_type=rule_type,
            adjustment=adjustment,
            amount=amount,
            start_hour=start_hour,
            end_hour=end_hour,
            is_active=is_active,
        ),
    )


async def add_booking(session, court: Court, start: datetime, duration_hrs: int = 1,
                      coach: Optional[Coach] = None, equipment: Optional[Dict[int, int]] = None,
                      status: BookingStatus = BookingStatus.CONFIRMED,
                      reference: Optional[str] = None) -> Booking:
    """Insert a booking row directly, bypassing the transaction manager."""
    booking = Booking(
        reference=reference or f"TEST-{court.id}-{start:%Y%m%d%H}-{status.value}",
        user_name="Existing Player",
        court_id=court.id,
        coach_id=coach.id if coach else None,
        start_time=start,
        duration_hrs=duration_hrs,
        total_price=0,
        status=status,
    )
    session.add(booking)
    await session.flush()
    for equipment_id, quantity in (equipment or {}).items():
        session.add(BookingEquipment(booking_id=booking.id, equipment_id=equipment_id, quantity=quantity))
    await session.commit()
    return booking
