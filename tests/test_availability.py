"""Tests for the per-slot availability calculator."""

import pytest
from sqlalchemy.exc import OperationalError

from availability import compute_availability
from config import FacilityHours
from conftest import MONDAY, SATURDAY, add_booking, add_coach, add_court, add_equipment, at
from exceptions import DataAccessError
from models import BookingStatus


def _slot(slots, hour):
    return next(s for s in slots if s.start_time.hour == hour)


def _court_ids(slot):
    return [c.id for c in slot.available_courts]


def _coach_ids(slot):
    return [c.id for c in slot.available_coaches]


def _remaining(slot, equipment_id):
    return next(e.available for e in slot.equipment_availability if e.id == equipment_id)


class TestEmptyDay:
    async def test_enumerates_every_operating_hour(self, session):
        slots = await compute_availability(session, MONDAY)
        assert [s.start_time for s in slots] == [at(MONDAY, h) for h in range(6, 22)]

    async def test_everything_free(self, session):
        court_a = await add_court(session, name="A")
        court_b = await add_court(session, name="B")
        racket = await add_equipment(session, quantity=10)
        coach = await add_coach(session, windows=[(1, 6, 22)])

        slots = await compute_availability(session, MONDAY)
        for slot in slots:
            assert _court_ids(slot) == [court_a.id, court_b.id]
            assert _coach_ids(slot) == [coach.id]
            assert _remaining(slot, racket.id) == 10

    async def test_inactive_resources_are_hidden(self, session):
        await add_court(session, is_active=False)
        await add_equipment(session, is_active=False)
        await add_coach(session, windows=[(1, 6, 22)], is_active=False)

        slot = _slot(await compute_availability(session, MONDAY), 10)
        assert slot.available_courts == []
        assert slot.available_coaches == []
        assert slot.equipment_availability == []

    async def test_custom_hours(self, session):
        slots = await compute_availability(session, MONDAY, FacilityHours(start_hour=8, end_hour=10))
        assert [s.start_time.hour for s in slots] == [8, 9]


class TestCourts:
    async def test_two_hour_booking_blocks_two_slots(self, session):
        court_a = await add_court(session, name="A")
        court_b = await add_court(session, name="B")
        await add_booking(session, court_a, at(MONDAY, 18), duration_hrs=2)

        slots = await compute_availability(session, MONDAY)
        assert _court_ids(_slot(slots, 17)) == [court_a.id, court_b.id]
        assert _court_ids(_slot(slots, 18)) == [court_b.id]
        assert _court_ids(_slot(slots, 19)) == [court_b.id]
        assert _court_ids(_slot(slots, 20)) == [court_a.id, court_b.id]

    async def test_cancelled_bookings_do_not_block(self, session):
        court = await add_court(session)
        await add_booking(session, court, at(MONDAY, 18), status=BookingStatus.CANCELLED)

        slot = _slot(await compute_availability(session, MONDAY), 18)
        assert _court_ids(slot) == [court.id]

    async def test_other_days_do_not_block(self, session):
        court = await add_court(session)
        await add_booking(session, court, at(SATURDAY, 18))

        slot = _slot(await compute_availability(session, MONDAY), 18)
        assert _court_ids(slot) == [court.id]


class TestCoaches:
    async def test_window_is_half_open(self, session):
        coach = await add_coach(session, windows=[(6, 8, 14)])  # Saturday 08:00-14:00
        slots = await compute_availability(session, SATURDAY)

        assert coach.id not in _coach_ids(_slot(slots, 7))
        assert coach.id in _coach_ids(_slot(slots, 8))
        assert coach.id in _coach_ids(_slot(slots, 13))
        assert coach.id not in _coach_ids(_slot(slots, 14))

    async def test_window_ending_at_closing_time(self, session):
        coach = await add_coach(session, windows=[(1, 18, 22)])
        slots = await compute_availability(session, MONDAY)
        assert coach.id in _coach_ids(_slot(slots, 21))

    async def test_window_on_other_day(self, session):
        await add_coach(session, windows=[(6, 8, 14)])
        slots = await compute_availability(session, MONDAY)
        assert all(s.available_coaches == [] for s in slots)

    async def test_booked_coach_is_unavailable(self, session):
        court = await add_court(session)
        coach = await add_coach(session, windows=[(6, 8, 14)])
        await add_booking(session, court, at(SATURDAY, 9), duration_hrs=2, coach=coach)

        slots = await compute_availability(session, SATURDAY)
        assert coach.id in _coach_ids(_slot(slots, 8))
        assert coach.id not in _coach_ids(_slot(slots, 9))
        assert coach.id not in _coach_ids(_slot(slots, 10))
        assert coach.id in _coach_ids(_slot(slots, 11))


class TestEquipment:
    async def test_overlapping_reservations_are_summed(self, session):
        court_a = await add_court(session, name="A")
        court_b = await add_court(session, name="B")
        racket = await add_equipment(session, quantity=10)
        await add_booking(session, court_a, at(MONDAY, 18), duration_hrs=2, equipment={racket.id: 4})
        await add_booking(session, court_b, at(MONDAY, 19), equipment={racket.id: 5})

        slots = await compute_availability(session, MONDAY)
        assert _remaining(_slot(slots, 17), racket.id) == 10
        assert _remaining(_slot(slots, 18), racket.id) == 6
        assert _remaining(_slot(slots, 19), racket.id) == 1
        assert _remaining(_slot(slots, 20), racket.id) == 10

    async def test_never_negative(self, session):
        court = await add_court(session)
        racket = await add_equipment(session, quantity=10)
        await add_booking(session, court, at(MONDAY, 18), equipment={racket.id: 10})
        racket.quantity = 6  # admin shrank the stock after the booking
        await session.commit()

        slot = _slot(await compute_availability(session, MONDAY), 18)
        assert _remaining(slot, racket.id) == 0


class TestFailures:
    async def test_store_errors_become_data_access_errors(self, session, monkeypatch):
        async def broken(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        monkeypatch.setattr(session, "execute", broken)
        with pytest.raises(DataAccessError):
            await compute_availability(session, MONDAY)
