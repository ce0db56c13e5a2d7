"""
Load demo courts, equipment, coaches and pricing rules.

Usage:
    python seed.py            # wipes and reseeds the DATABASE_URL database
"""

import asyncio
import logging

from sqlalchemy import delete

from config import configure_logging, load_settings
from database import Database
from models import (
    AdjustmentKind,
    Booking,
    BookingEquipment,
    Coach,
    CoachAvailability,
    Court,
    CourtType,
    Equipment,
    PricingRule,
    RuleType,
    SlotClaim,
)

logger = logging.getLogger(__name__)


def _courts():
    return [
        Court(name="Indiranagar Indoor 1", location="Bengaluru - Indiranagar", type=CourtType.INDOOR, base_rate=450),
        Court(name="Indiranagar Indoor 2", location="Bengaluru - Indiranagar", type=CourtType.INDOOR, base_rate=430),
        Court(name="Koramangala Outdoor 1", location="Bengaluru - Koramangala", type=CourtType.OUTDOOR, base_rate=320),
        Court(name="Koramangala Outdoor 2", location="Bengaluru - Koramangala", type=CourtType.OUTDOOR, base_rate=300),
    ]


def _equipment():
    return [
        Equipment(name="Yonex Voltric Racket", quantity=12, base_fee=120),
        Equipment(name="Non-marking Shoes", quantity=8, base_fee=90),
        Equipment(name="Feather Shuttle Tube", quantity=10, base_fee=70),
    ]


# (name, bio, rate, [(day_of_week, start_hour, end_hour), ...]), 0 = Sunday
COACHES = [
    ("Ayesha Khan", "Former Karnataka state player; focuses on footwork and defense.", 900,
     [(1, 18, 22), (3, 18, 22), (5, 16, 21)]),
    ("Rahul Menon", "Morning coach; emphasizes stamina and consistency drills.", 750,
     [(1, 6, 10), (2, 6, 10), (4, 6, 10)]),
    ("Arjun Iyer", "Weekend specialist with match-play strategy sessions.", 1050,
     [(6, 8, 14), (0, 8, 14)]),
    ("Vikram Singh", "National level player specializing in doubles tactics.", 1100,
     [(2, 17, 21), (4, 17, 21), (6, 10, 16)]),
    ("Anjali Gupta", "Certified fitness trainer and badminton coach for beginners.", 650,
     [(1, 9, 14), (3, 9, 14), (5, 9, 14)]),
]


def _pricing_rules():
    return [
        PricingRule(
            name="Peak hours (6-9 PM)",
            description="Early evening surge for office-goers",
            rule_type=RuleType.PEAK_HOUR,
            adjustment=AdjustmentKind.FIXED,
            amount=150,
            start_hour=18,
            end_hour=21,
        ),
        PricingRule(
            name="Weekend premium",
            description="Applies on Saturday and Sunday",
            rule_type=RuleType.WEEKEND,
            adjustment=AdjustmentKind.FIXED,
            amount=120,
        ),
        PricingRule(
            name="Indoor premium",
            description="Better lighting and wood floor maintenance",
            rule_type=RuleType.INDOOR_PREMIUM,
            adjustment=AdjustmentKind.FIXED,
            amount=80,
        ),
    ]


async def seed(db: Database) -> None:
    async with db.session() as session:
        for model in (SlotClaim, BookingEquipment, Booking, PricingRule, CoachAvailability, Coach, Equipment, Court):
            await session.execute(delete(model))

        courts, equipment, rules = _courts(), _equipment(), _pricing_rules()
        session.add_all(courts)
        session.add_all(equipment)
        for name, bio, rate, windows in COACHES:
            session.add(
                Coach(
                    name=name,
                    bio=bio,
                    city="Bengaluru",
                    rate_per_hour=rate,
                    availability=[
                        CoachAvailability(day_of_week=day, start_hour=start, end_hour=end)
                        for day, start, end in windows
                    ],
                )
            )
        session.add_all(rules)
        await session.commit()

    logger.info(
        "Seeded %d courts, %d equipment items, %d coaches, %d pricing rules",
        len(courts), len(equipment), len(COACHES), len(rules),
    )


async def main() -> None:
    settings = load_settings()
    configure_logging(settings)
    db = Database(settings.database_url)
    await db.init()
    try:
        await seed(db)
    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
