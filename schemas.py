"""Request and response models. JSON on the wire is camelCase."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from models import AdjustmentKind, BookingStatus, CourtType, RuleType


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


# --- Requests ---

class EquipmentSelection(CamelModel):
    id: int
    quantity: int = 1


class QuoteRequest(CamelModel):
    court_id: int
    coach_id: Optional[int] = None
    equipment: List[EquipmentSelection] = Field(default_factory=list)
    start_time: datetime
    duration_hrs: int = 1


class BookingRequest(QuoteRequest):
    user_name: str
    contact: Optional[str] = None
    notes: Optional[str] = None


# --- Availability ---

class CourtSlot(CamelModel):
    id: int
    name: str
    type: CourtType
    base_rate: float


class CoachSlot(CamelModel):
    id: int
    name: str


class EquipmentSlot(CamelModel):
    id: int
    name: str
    available: int


class SlotAvailability(CamelModel):
    start_time: datetime
    available_courts: List[CourtSlot]
    available_coaches: List[CoachSlot]
    equipment_availability: List[EquipmentSlot]


# --- Pricing ---

class Adjustment(CamelModel):
    label: str
    amount: float


class PricingBreakdown(CamelModel):
    base_court: float
    adjustments: List[Adjustment]
    equipment_total: float
    coach_total: float
    total: float


# --- Bookings ---

class BookingOut(CamelModel):
    id: int
    reference: str
    user_name: str
    contact: Optional[str] = None
    court_id: int
    coach_id: Optional[int] = None
    start_time: datetime
    duration_hrs: int
    total_price: float
    status: BookingStatus
    notes: Optional[str] = None
    created_at: datetime


class BookingResult(CamelModel):
    booking: BookingOut
    pricing: PricingBreakdown


class BookingLine(CamelModel):
    id: int
    name: str
    quantity: int


class BookingSummary(BookingOut):
    court_name: str
    coach_name: Optional[str] = None
    equipment: List[BookingLine] = Field(default_factory=list)


# --- Admin ---

class CourtIn(CamelModel):
    name: str = Field(min_length=1)
    location: str = Field(min_length=1)
    type: CourtType
    base_rate: float = Field(gt=0)
    is_active: bool = True


class CourtUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    location: Optional[str] = Field(default=None, min_length=1)
    type: Optional[CourtType] = None
    base_rate: Optional[float] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


class CourtOut(CamelModel):
    id: int
    name: str
    location: str
    type: CourtType
    base_rate: float
    is_active: bool


class EquipmentIn(CamelModel):
    name: str = Field(min_length=1)
    quantity: int = Field(ge=0)
    base_fee: float = Field(ge=0)
    is_active: bool = True


class EquipmentUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    quantity: Optional[int] = Field(default=None, ge=0)
    base_fee: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class EquipmentOut(CamelModel):
    id: int
    name: str
    quantity: int
    base_fee: float
    is_active: bool


class AvailabilityWindow(CamelModel):
    day_of_week: int = Field(ge=0, le=6)
    start_hour: int = Field(ge=0, le=23)
    end_hour: int = Field(ge=1, le=24)

    @model_validator(mode="after")
    def _check_order(self):
        if self.start_hour >= self.end_hour:
            raise ValueError("startHour must be before endHour")
        return self


class CoachIn(CamelModel):
    name: str = Field(min_length=1)
    bio: str = ""
    city: str = ""
    rate_per_hour: float = Field(ge=0)
    is_active: bool = True
    availability: List[AvailabilityWindow] = Field(default_factory=list)


class CoachUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    bio: Optional[str] = None
    city: Optional[str] = None
    rate_per_hour: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    # None keeps the current windows, a list replaces them
    availability: Optional[List[AvailabilityWindow]] = None


class CoachOut(CamelModel):
    id: int
    name: str
    bio: str
    city: str
    rate_per_hour: float
    is_active: bool
    availability: List[AvailabilityWindow]


def check_peak_hours(rule_type, start_hour, end_hour) -> None:
    if rule_type != RuleType.PEAK_HOUR:
        return
    if start_hour is None or end_hour is None:
        raise ValueError("PEAK_HOUR rules need startHour and endHour")
    if not 0 <= start_hour < end_hour <= 24:
        raise ValueError("PEAK_HOUR hours must satisfy 0 <= startHour < endHour <= 24")


class PricingRuleIn(CamelModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    rule_type: RuleType
    adjustment: AdjustmentKind = AdjustmentKind.FIXED
    amount: float
    start_hour: Optional[int] = None
    end_hour: Optional[int] = None
    is_active: bool = True

    @model_validator(mode="after")
    def _check_hours(self):
        check_peak_hours(self.rule_type, self.start_hour, self.end_hour)
        return self


class PricingRuleUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    rule_type: Optional[RuleType] = None
    adjustment: Optional[AdjustmentKind] = None
    amount: Optional[float] = None
    start_hour: Optional[int] = None
    end_hour: Optional[int] = None
    is_active: Optional[bool] = None


class PricingRuleOut(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    rule_type: RuleType
    adjustment: AdjustmentKind
    amount: float
    start_hour: Optional[int] = None
    end_hour: Optional[int] = None
    is_active: bool
