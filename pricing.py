"""
Price quotes for a court selection.

Pricing rules are stored as flat rows; at quote time each active row is
turned into one of the rule variants below, and each variant decides for
itself whether it applies to the requested slot.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from exceptions import DataAccessError, NotFound, ValidationError
from models import AdjustmentKind, Coach, Court, CourtType, Equipment, PricingRule, RuleType
from schemas import Adjustment, EquipmentSelection, PricingBreakdown, QuoteRequest
from timeslots import is_weekend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Rule:
    name: str
    amount: float
    adjustment: AdjustmentKind

    def charge(self, duration_hrs: int) -> float:
        # PERCENT rules are charged as a flat per-hour amount, same as FIXED.
        return self.amount * duration_hrs


@dataclass(frozen=True)
class PeakHour(_Rule):
    start_hour: int
    end_hour: int

    def applies(self, start: datetime, court_type: CourtType) -> bool:
        return self.start_hour <= start.hour < self.end_hour


@dataclass(frozen=True)
class Weekend(_Rule):
    def applies(self, start: datetime, court_type: CourtType) -> bool:
        return is_weekend(start)


@dataclass(frozen=True)
class IndoorPremium(_Rule):
    def applies(self, start: datetime, court_type: CourtType) -> bool:
        return court_type == CourtType.INDOOR


RuleVariant = Union[PeakHour, Weekend, IndoorPremium]


def rule_from_row(row: PricingRule) -> Optional[RuleVariant]:
    """Build the variant for a stored rule, or None if the row is unusable."""
    if row.rule_type == RuleType.PEAK_HOUR:
        if row.start_hour is None or row.end_hour is None:
            logger.warning("Peak-hour rule %s (%s) has no hours; skipping", row.id, row.name)
            return None
        return PeakHour(row.name, row.amount, row.adjustment, row.start_hour, row.end_hour)
    if row.rule_type == RuleType.WEEKEND:
        return Weekend(row.name, row.amount, row.adjustment)
    if row.rule_type == RuleType.INDOOR_PREMIUM:
        return IndoorPremium(row.name, row.amount, row.adjustment)
    raise ValueError(f"Unknown rule type: {row.rule_type!r}")


def price_selection(
    court: Court,
    coach: Optional[Coach],
    equipment: Dict[int, Equipment],
    selections: Sequence[EquipmentSelection],
    start: datetime,
    duration_hrs: int,
    rules: Sequence[RuleVariant],
) -> PricingBreakdown:
    """Pure price computation over already-resolved entities."""
    base_court = court.base_rate * duration_hrs
    adjustments: List[Adjustment] = []

    for rule in rules:
        if not rule.applies(start, court.type):
            continue
        amount = rule.charge(duration_hrs)
        base_court += amount
        adjustments.append(Adjustment(label=rule.name, amount=amount))

    equipment_total = 0.0
    for choice in selections:
        record = equipment[choice.id]
        if not record.is_active:
            continue
        equipment_total += record.base_fee * choice.quantity * duration_hrs

    coach_total = coach.rate_per_hour * duration_hrs if coach is not None else 0.0

    return PricingBreakdown(
        base_court=base_court,
        adjustments=adjustments,
        equipment_total=equipment_total,
        coach_total=coach_total,
        total=base_court + equipment_total + coach_total,
    )


def validate_quote(request: QuoteRequest) -> List[EquipmentSelection]:
    """Check duration and quantities; return selections with duplicate ids merged."""
    if request.duration_hrs < 1:
        raise ValidationError("durationHrs must be at least 1 hour.")
    merged: Dict[int, int] = {}
    for choice in request.equipment:
        if choice.quantity < 1:
            raise ValidationError("Equipment quantity must be at least 1.")
        merged[choice.id] = merged.get(choice.id, 0) + choice.quantity
    return [EquipmentSelection(id=i, quantity=q) for i, q in merged.items()]


async def load_rules(session: AsyncSession) -> List[RuleVariant]:
    rows = (
        await session.execute(
            select(PricingRule).where(PricingRule.is_active == True).order_by(PricingRule.id)  # noqa: E712
        )
    ).scalars().all()
    return [rule for rule in map(rule_from_row, rows) if rule is not None]


async def load_equipment(session: AsyncSession, ids, for_update: bool = False) -> Dict[int, Equipment]:
    """Resolve every id or raise NotFound for the first missing one."""
    wanted = sorted(set(ids))
    if not wanted:
        return {}
    statement = select(Equipment).where(Equipment.id.in_(wanted)).order_by(Equipment.id)
    if for_update:
        statement = statement.with_for_update()
    records = {e.id: e for e in (await session.execute(statement)).scalars().all()}
    for equipment_id in wanted:
        if equipment_id not in records:
            raise NotFound("equipment", equipment_id)
    return records


async def calculate_pricing(session: AsyncSession, request: QuoteRequest) -> PricingBreakdown:
    selections = validate_quote(request)
    try:
        court = await session.get(Court, request.court_id)
        if court is None:
            raise NotFound("court", request.court_id)

        coach = None
        if request.coach_id is not None:
            coach = await session.get(Coach, request.coach_id)
            if coach is None:
                raise NotFound("coach", request.coach_id)

        equipment = await load_equipment(session, [e.id for e in selections])
        rules = await load_rules(session)
    except SQLAlchemyError as exc:
        logger.exception("Could not load pricing inputs for court %s", request.court_id)
        raise DataAccessError("Unable to compute pricing") from exc

    return price_selection(
        court, coach, equipment, selections, request.start_time, request.duration_hrs, rules
    )
