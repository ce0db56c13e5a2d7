import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlmodel import SQLModel, select

from database import get_session
from exceptions import DataAccessError, NotFound, ValidationError
from models import Coach, CoachAvailability, Court, Equipment, PricingRule
from schemas import (
    CoachIn,
    CoachOut,
    CoachUpdate,
    CourtIn,
    CourtOut,
    CourtUpdate,
    EquipmentIn,
    EquipmentOut,
    EquipmentUpdate,
    PricingRuleIn,
    PricingRuleOut,
    PricingRuleUpdate,
    check_peak_hours,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


async def _get(session: AsyncSession, model, ident: int, kind: str):
    try:
        record = await session.get(model, ident)
    except SQLAlchemyError as exc:
        logger.exception("Could not load %s %s", kind, ident)
        raise DataAccessError("Could not load records") from exc
    if record is None:
        raise NotFound(kind, ident)
    return record


async def _save(session: AsyncSession, record: SQLModel) -> None:
    try:
        session.add(record)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Could not save %s", type(record).__name__)
        raise DataAccessError("Could not save changes") from exc


async def _list(session: AsyncSession, model, *options):
    try:
        result = await session.execute(select(model).options(*options).order_by(model.id))
    except SQLAlchemyError as exc:
        logger.exception("Could not list %s", model.__tablename__)
        raise DataAccessError("Could not load records") from exc
    return result.scalars().all()


# --- Courts ---

@router.get("/courts", response_model=List[CourtOut])
async def list_courts(session: AsyncSession = Depends(get_session)):
    return await _list(session, Court)


@router.post("/courts", response_model=CourtOut, status_code=status.HTTP_201_CREATED)
async def create_court(payload: CourtIn, session: AsyncSession = Depends(get_session)):
    court = Court(**payload.model_dump())
    await _save(session, court)
    logger.info("Court created: %s (%s)", court.id, court.name)
    return court


@router.put("/courts/{court_id}", response_model=CourtOut)
async def update_court(court_id: int, payload: CourtUpdate, session: AsyncSession = Depends(get_session)):
    court = await _get(session, Court, court_id, "court")
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(court, field, value)
    await _save(session, court)
    return court


# --- Equipment ---

@router.get("/equipment", response_model=List[EquipmentOut])
async def list_equipment(session: AsyncSession = Depends(get_session)):
    return await _list(session, Equipment)


@router.post("/equipment", response_model=EquipmentOut, status_code=status.HTTP_201_CREATED)
async def create_equipment(payload: EquipmentIn, session: AsyncSession = Depends(get_session)):
    item = Equipment(**payload.model_dump())
    await _save(session, item)
    logger.info("Equipment created: %s (%s x%d)", item.id, item.name, item.quantity)
    return item


@router.put("/equipment/{equipment_id}", response_model=EquipmentOut)
async def update_equipment(
    equipment_id: int, payload: EquipmentUpdate, session: AsyncSession = Depends(get_session)
):
    item = await _get(session, Equipment, equipment_id, "equipment")
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(item, field, value)
    await _save(session, item)
    return item


# --- Coaches ---

async def _load_coach(session: AsyncSession, coach_id: int) -> Coach:
    statement = (
        select(Coach)
        .where(Coach.id == coach_id)
        .options(selectinload(Coach.availability))
        .execution_options(populate_existing=True)
    )
    try:
        coach = (await session.execute(statement)).scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.exception("Could not load coach %s", coach_id)
        raise DataAccessError("Could not load records") from exc
    if coach is None:
        raise NotFound("coach", coach_id)
    return coach


@router.get("/coaches", response_model=List[CoachOut])
async def list_coaches(session: AsyncSession = Depends(get_session)):
    return await _list(session, Coach, selectinload(Coach.availability))


@router.post("/coaches", response_model=CoachOut, status_code=status.HTTP_201_CREATED)
async def create_coach(payload: CoachIn, session: AsyncSession = Depends(get_session)):
    fields = payload.model_dump(exclude={"availability"})
    coach = Coach(
        **fields,
        availability=[CoachAvailability(**w.model_dump()) for w in payload.availability],
    )
    await _save(session, coach)
    logger.info("Coach created: %s (%s) with %d windows", coach.id, coach.name, len(payload.availability))
    return await _load_coach(session, coach.id)


@router.put("/coaches/{coach_id}", response_model=CoachOut)
async def update_coach(coach_id: int, payload: CoachUpdate, session: AsyncSession = Depends(get_session)):
    coach = await _load_coach(session, coach_id)
    updates = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"availability"})
    for field, value in updates.items():
        setattr(coach, field, value)
    if payload.availability is not None:
        coach.availability = [CoachAvailability(**w.model_dump()) for w in payload.availability]
    await _save(session, coach)
    return await _load_coach(session, coach_id)


# --- Pricing rules ---

@router.get("/pricing-rules", response_model=List[PricingRuleOut])
async def list_pricing_rules(session: AsyncSession = Depends(get_session)):
    return await _list(session, PricingRule)


@router.post("/pricing-rules", response_model=PricingRuleOut, status_code=status.HTTP_201_CREATED)
async def create_pricing_rule(payload: PricingRuleIn, session: AsyncSession = Depends(get_session)):
    rule = PricingRule(**payload.model_dump())
    await _save(session, rule)
    logger.info("Pricing rule created: %s (%s %s)", rule.id, rule.rule_type.value, rule.amount)
    return rule


@router.put("/pricing-rules/{rule_id}", response_model=PricingRuleOut)
async def update_pricing_rule(
    rule_id: int, payload: PricingRuleUpdate, session: AsyncSession = Depends(get_session)
):
    rule = await _get(session, PricingRule, rule_id, "pricing rule")
    updates = payload.model_dump(exclude_unset=True)
    # hours and description may be cleared; everything else is NOT NULL
    for field, value in updates.items():
        if value is None and field not in ("description", "start_hour", "end_hour"):
            continue
        setattr(rule, field, value)
    try:
        check_peak_hours(rule.rule_type, rule.start_hour, rule.end_hour)
    except ValueError as exc:
        await session.rollback()
        raise ValidationError(str(exc)) from exc
    await _save(session, rule)
    return rule
