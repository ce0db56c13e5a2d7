"""HTTP contract tests: routes, camelCase payloads and error mapping."""

from conftest import MONDAY, SATURDAY, add_coach, add_court, add_equipment, add_rule, at
from logging_context import REQUEST_ID_HEADER
from models import RuleType


class TestAvailabilityRoute:
    async def test_lists_slots_in_camel_case(self, client, session):
        court = await add_court(session, name="Indoor 1")
        racket = await add_equipment(session, name="Racket", quantity=12)

        response = await client.get("/availability", params={"date": MONDAY.isoformat()})

        assert response.status_code == 200
        slots = response.json()
        assert len(slots) == 16
        assert slots[0]["startTime"] == "2025-03-17T06:00:00"
        assert slots[0]["availableCourts"] == [
            {"id": court.id, "name": "Indoor 1", "type": "INDOOR", "baseRate": 450.0}
        ]
        assert slots[0]["availableCoaches"] == []
        assert slots[0]["equipmentAvailability"] == [{"id": racket.id, "name": "Racket", "available": 12}]

    async def test_bad_date(self, client):
        response = await client.get("/availability", params={"date": "17/03/2025"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"

    async def test_request_id_is_echoed(self, client):
        response = await client.get(
            "/availability", params={"date": MONDAY.isoformat()}, headers={REQUEST_ID_HEADER: "req-123"}
        )
        assert response.headers[REQUEST_ID_HEADER] == "req-123"


class TestQuoteRoute:
    async def test_quote(self, client, session):
        court = await add_court(session, base_rate=450)
        racket = await add_equipment(session, base_fee=120)
        await add_rule(session, RuleType.PEAK_HOUR, 150, name="Peak hours (6-9 PM)", start_hour=18, end_hour=21)

        response = await client.post(
            "/quote",
            json={
                "courtId": court.id,
                "equipment": [{"id": racket.id, "quantity": 2}],
                "startTime": at(MONDAY, 18).isoformat(),
                "durationHrs": 1,
            },
        )

        assert response.status_code == 200
        assert response.json() == {
            "baseCourt": 600.0,
            "adjustments": [{"label": "Peak hours (6-9 PM)", "amount": 150.0}],
            "equipmentTotal": 240.0,
            "coachTotal": 0.0,
            "total": 840.0,
        }

    async def test_aware_start_time_uses_facility_clock(self, client, session):
        court = await add_court(session, base_rate=450)
        await add_rule(session, RuleType.PEAK_HOUR, 150, start_hour=18, end_hour=21)

        # 12:30 UTC is 18:00 in Bengaluru
        response = await client.post(
            "/quote", json={"courtId": court.id, "startTime": "2025-03-17T12:30:00Z"}
        )
        assert response.json()["total"] == 600.0

    async def test_unknown_court_is_404(self, client):
        response = await client.post("/quote", json={"courtId": 9, "startTime": "2025-03-17T10:00:00"})
        assert response.status_code == 404
        assert response.json() == {"error": "Court 9 not found."}

    async def test_missing_court_is_400(self, client):
        response = await client.post("/quote", json={"startTime": "2025-03-17T10:00:00"})
        assert response.status_code == 400


class TestBookRoute:
    async def test_book_then_conflict(self, client, session):
        court = await add_court(session, base_rate=450)
        await add_rule(session, RuleType.WEEKEND, 120)
        body = {
            "userName": "Priya",
            "contact": "98450 00000",
            "courtId": court.id,
            "startTime": at(SATURDAY, 10).isoformat(),
            "durationHrs": 2,
        }

        created = await client.post("/book", json=body)
        assert created.status_code == 201
        payload = created.json()
        assert payload["booking"]["reference"].startswith("BLR-")
        assert payload["booking"]["totalPrice"] == 1140.0
        assert payload["booking"]["startTime"] == "2025-03-15T10:00:00"
        assert payload["pricing"]["total"] == 1140.0

        clash = await client.post("/book", json={**body, "userName": "Ravi"})
        assert clash.status_code == 409
        assert clash.json() == {
            "error": "Court has a conflicting booking for that slot.",
            "resource": "court",
            "remaining": None,
        }

    async def test_equipment_conflict_reports_remaining(self, client, session):
        court = await add_court(session)
        racket = await add_equipment(session, name="Racket", quantity=3)

        response = await client.post(
            "/book",
            json={
                "userName": "Priya",
                "courtId": court.id,
                "equipment": [{"id": racket.id, "quantity": 4}],
                "startTime": at(MONDAY, 10).isoformat(),
            },
        )
        assert response.status_code == 409
        assert response.json()["error"] == "Only 3 of Racket left for that slot."
        assert response.json()["remaining"] == 3

    async def test_blank_user_name_is_400(self, client, session):
        court = await add_court(session)
        response = await client.post(
            "/book", json={"userName": " ", "courtId": court.id, "startTime": at(MONDAY, 10).isoformat()}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "userName is required."}

    async def test_missing_user_name_is_400(self, client, session):
        court = await add_court(session)
        response = await client.post("/book", json={"courtId": court.id, "startTime": at(MONDAY, 10).isoformat()})
        assert response.status_code == 400

    async def test_recent_lookup_and_cancel(self, client, session):
        court = await add_court(session, name="Koramangala Outdoor 1")
        coach = await add_coach(session, name="Ayesha Khan", windows=[(1, 18, 22)])
        created = await client.post(
            "/book",
            json={
                "userName": "Priya",
                "courtId": court.id,
                "coachId": coach.id,
                "startTime": at(MONDAY, 18).isoformat(),
            },
        )
        reference = created.json()["booking"]["reference"]

        recent = (await client.get("/bookings", params={"limit": 5})).json()
        assert [b["reference"] for b in recent] == [reference]
        assert recent[0]["courtName"] == "Koramangala Outdoor 1"
        assert recent[0]["coachName"] == "Ayesha Khan"

        detail = await client.get(f"/bookings/{reference}")
        assert detail.status_code == 200
        assert detail.json()["status"] == "CONFIRMED"

        cancelled = await client.post(f"/bookings/{reference}/cancel")
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "CANCELLED"

        again = await client.post(f"/bookings/{reference}/cancel")
        assert again.status_code == 400

    async def test_unknown_booking_is_404(self, client):
        response = await client.get("/bookings/BLR-NOPE-0000")
        assert response.status_code == 404
