from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import CheckConstraint, DateTime, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CourtType(str, Enum):
    INDOOR = "INDOOR"
    OUTDOOR = "OUTDOOR"


class RuleType(str, Enum):
    PEAK_HOUR = "PEAK_HOUR"
    WEEKEND = "WEEKEND"
    INDOOR_PREMIUM = "INDOOR_PREMIUM"


class AdjustmentKind(str, Enum):
    FIXED = "FIXED"
    PERCENT = "PERCENT"


class BookingStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class ClaimKind(str, Enum):
    COURT = "court"
    COACH = "coach"


class Court(SQLModel, table=True):
    __tablename__ = "courts"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    location: str
    type: CourtType = Field(default=CourtType.INDOOR)
    base_rate: float  # per hour
    is_active: bool = Field(default=True, index=True)


class Equipment(SQLModel, table=True):
    __tablename__ = "equipment"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="check_equipment_quantity"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    quantity: int  # units owned, shared by every concurrent booking
    base_fee: float  # per unit per hour
    is_active: bool = Field(default=True, index=True)


class Coach(SQLModel, table=True):
    __tablename__ = "coaches"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    bio: str = ""
    city: str = ""
    rate_per_hour: float
    is_active: bool = Field(default=True, index=True)

    availability: List["CoachAvailability"] = Relationship(
        back_populates="coach",
        sa_relationship_kwargs={
            "order_by": "CoachAvailability.id",
            "cascade": "all, delete-orphan",
        },
    )


class CoachAvailability(SQLModel, table=True):
    __tablename__ = "coach_availability"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="check_window_day"),
        CheckConstraint("start_hour < end_hour", name="check_window_hours"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    coach_id: int = Field(foreign_key="coaches.id", index=True)
    day_of_week: int  # 0 = Sunday ... 6 = Saturday
    start_hour: int
    end_hour: int  # exclusive

    coach: Optional[Coach] = Relationship(back_populates="availability")


class PricingRule(SQLModel, table=True):
    __tablename__ = "pricing_rules"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    rule_type: RuleType
    adjustment: AdjustmentKind = Field(default=AdjustmentKind.FIXED)
    amount: float
    start_hour: Optional[int] = None  # PEAK_HOUR only
    end_hour: Optional[int] = None
    is_active: bool = Field(default=True, index=True)


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("duration_hrs >= 1", name="check_booking_duration"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    reference: str = Field(index=True, unique=True)
    user_name: str
    contact: Optional[str] = None
    court_id: int = Field(foreign_key="courts.id", index=True)
    coach_id: Optional[int] = Field(default=None, foreign_key="coaches.id", index=True)
    start_time: datetime = Field(sa_type=DateTime(timezone=False), index=True)  # facility-local
    duration_hrs: int
    total_price: float  # snapshot at booking time
    status: BookingStatus = Field(default=BookingStatus.CONFIRMED, index=True)
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow, sa_type=DateTime(timezone=False), index=True)

    court: Optional[Court] = Relationship()
    coach: Optional[Coach] = Relationship()
    equipment: List["BookingEquipment"] = Relationship(
        back_populates="booking",
        sa_relationship_kwargs={"order_by": "BookingEquipment.id"},
    )


class BookingEquipment(SQLModel, table=True):
    __tablename__ = "booking_equipment"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="check_line_quantity"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    booking_id: int = Field(foreign_key="bookings.id", index=True)
    equipment_id: int = Field(foreign_key="equipment.id", index=True)
    quantity: int

    booking: Optional[Booking] = Relationship(back_populates="equipment")
    equipment: Optional[Equipment] = Relationship()


class SlotClaim(SQLModel, table=True):
    """One hour of a court or coach held by a confirmed booking."""

    __tablename__ = "slot_claims"
    __table_args__ = (
        # CRITICAL: Database-level protection against double booking
        UniqueConstraint("resource", "resource_id", "slot_start", name="unique_resource_slot"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    booking_id: int = Field(foreign_key="bookings.id", index=True)
    resource: ClaimKind
    resource_id: int
    slot_start: datetime = Field(sa_type=DateTime(timezone=False))
