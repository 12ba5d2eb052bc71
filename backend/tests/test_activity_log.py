"""
Tests for the booking activity log and its failure isolation.
"""

from datetime import date

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.main import app
from app.models.activity_log import ActivityLog
from app.models.enums import BookingStatus
from app.services.activity_service import ActivityRecorder, Actor
from tests.conftest import make_booking

STAY = {"check_in_date": "2024-01-10", "check_out_date": "2024-01-13"}


async def entries(db_session) -> list:
    result = await db_session.execute(select(ActivityLog).order_by(ActivityLog.id))
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_booking_writes_are_recorded(
    client: AsyncClient, db_session, test_user, admin_user, auth_headers, admin_headers, test_room
):
    response = await client.post(
        "/api/v1/bookings/",
        json={"room_id": test_room.id, **STAY, "number_of_guests": 2},
        headers={**auth_headers, "User-Agent": "pytest-agent", "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )
    booking_id = response.json()["data"]["id"]
    await client.put(f"/api/v1/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=admin_headers)
    await client.post(f"/api/v1/bookings/{booking_id}/check-in", headers=admin_headers)
    await client.post(f"/api/v1/bookings/{booking_id}/check-out", headers=admin_headers)

    logs = await entries(db_session)
    assert [log.action for log in logs] == ["create_booking", "update_booking_status", "check_in", "check_out"]
    assert all(log.resource == "booking" and log.resource_id == str(booking_id) for log in logs)
    assert all(log.status == "success" for log in logs)

    created = logs[0]
    assert created.actor_id == test_user.id
    assert created.actor_email == "guest@example.com"
    assert created.actor_role == "user"
    assert created.ip == "203.0.113.7"
    assert created.user_agent == "pytest-agent"
    assert created.details == {
        "room_id": test_room.id,
        "check_in_date": "2024-01-10",
        "check_out_date": "2024-01-13",
        "number_of_guests": 2,
    }

    assert logs[1].actor_id == admin_user.id
    assert logs[1].details["status"] == "confirmed"
    assert logs[2].details == {"late_check_in_fee": 50.0}
    assert set(logs[3].details) == {"late_check_out_fee", "extended_stay_charge", "balance_due"}


@pytest.mark.asyncio
async def test_cancellation_workflow_is_recorded(
    client: AsyncClient, db_session, test_user, admin_user, auth_headers, admin_headers, test_room
):
    booking = await make_booking(
        db_session, test_user, test_room, date(2024, 1, 10), date(2024, 1, 13), BookingStatus.CONFIRMED
    )
    await client.post(
        f"/api/v1/bookings/{booking.id}/request-cancel", json={"reason": "Change of plans"}, headers=auth_headers
    )
    await client.post(
        f"/api/v1/bookings/{booking.id}/decline-cancel", json={"admin_notes": "Non-refundable"}, headers=admin_headers
    )
    await client.post(f"/api/v1/bookings/{booking.id}/request-cancel", headers=auth_headers)
    await client.post(f"/api/v1/bookings/{booking.id}/approve-cancel", headers=admin_headers)

    logs = await entries(db_session)
    assert [(log.action, log.actor_id) for log in logs] == [
        ("request_cancellation", test_user.id),
        ("decline_cancellation", admin_user.id),
        ("request_cancellation", test_user.id),
        ("approve_cancellation", admin_user.id),
    ]
    assert logs[0].details == {"reason": "Change of plans"}
    assert logs[1].details == {"admin_notes": "Non-refundable"}
    assert logs[3].details is None


@pytest.mark.asyncio
async def test_rejected_write_is_not_recorded(client: AsyncClient, db_session, test_user, auth_headers, test_room):
    booking = await make_booking(
        db_session, test_user, test_room, date(2024, 1, 10), date(2024, 1, 13), BookingStatus.CHECKED_OUT
    )
    response = await client.post(f"/api/v1/bookings/{booking.id}/request-cancel", headers=auth_headers)
    assert response.status_code == 400
    assert await entries(db_session) == []


@pytest.mark.asyncio
async def test_failing_recorder_does_not_fail_the_request(
    client: AsyncClient, db_session, auth_headers, test_room
):
    def broken_session():
        raise RuntimeError("database unavailable")

    app.state.activity = ActivityRecorder(broken_session)
    response = await client.post(
        "/api/v1/bookings/", json={"room_id": test_room.id, **STAY, "number_of_guests": 1}, headers=auth_headers
    )
    assert response.status_code == 201
    assert await entries(db_session) == []


@pytest.mark.asyncio
async def test_recorder_without_request(db_session, activity):
    await activity.record(Actor.from_user(None), "create_booking", "booking", 7, details={"room_id": 1})
    [log] = await entries(db_session)
    assert log.actor_id is None
    assert log.resource_id == "7"
    assert log.ip is None
    assert log.user_agent is None
