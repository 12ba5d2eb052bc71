"""
Tests for room inventory, availability search and housekeeping endpoints.
"""

from datetime import date

import pytest
from httpx import AsyncClient

from app.models.enums import BookingStatus
from tests.conftest import make_booking, make_room

NEW_ROOM = {
    "room_number": "305",
    "room_type": "Deluxe",
    "price": "2500.00",
    "capacity": 3,
    "amenities": ["wifi", "tv", "minibar"],
    "description": "City view",
}


@pytest.mark.asyncio
async def test_list_rooms_hides_unavailable(client: AsyncClient, db_session, test_room):
    await make_room(db_session, "102", is_available=False)

    response = await client.get("/api/v1/rooms/")
    assert response.status_code == 200
    assert [r["room_number"] for r in response.json()["data"]] == ["101"]


@pytest.mark.asyncio
async def test_admin_list_includes_unavailable(client: AsyncClient, db_session, admin_headers, auth_headers, test_room):
    await make_room(db_session, "102", is_available=False)

    response = await client.get("/api/v1/rooms/admin/all", headers=admin_headers)
    assert [r["room_number"] for r in response.json()["data"]] == ["101", "102"]
    assert (await client.get("/api/v1/rooms/admin/all", headers=auth_headers)).status_code == 403


@pytest.mark.asyncio
async def test_get_room(client: AsyncClient, test_room):
    response = await client.get(f"/api/v1/rooms/{test_room.id}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["price"] == 100.0
    assert data["housekeeping_status"] == "clean"

    assert (await client.get("/api/v1/rooms/999")).status_code == 404


@pytest.mark.asyncio
async def test_create_room(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/rooms/", json=NEW_ROOM, headers=admin_headers)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["room_type"] == "Deluxe"
    assert data["price"] == 2500.0
    assert data["is_available"] is True
    assert data["amenities"] == ["wifi", "tv", "minibar"]


@pytest.mark.asyncio
async def test_create_room_requires_admin(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/rooms/", json=NEW_ROOM, headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_room_duplicate_number(client: AsyncClient, admin_headers, test_room):
    response = await client.post("/api/v1/rooms/", json={**NEW_ROOM, "room_number": "101"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Room number already exists"


@pytest.mark.asyncio
async def test_create_room_invalid_type(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/rooms/", json={**NEW_ROOM, "room_type": "Closet"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "room_type"


@pytest.mark.asyncio
async def test_update_room_partial(client: AsyncClient, admin_headers, test_room):
    response = await client.put(
        f"/api/v1/rooms/{test_room.id}", json={"price": "120", "is_available": False}, headers=admin_headers
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["price"] == 120.0
    assert data["is_available"] is False
    assert data["room_number"] == "101"


@pytest.mark.asyncio
async def test_update_room_number_clash(client: AsyncClient, db_session, admin_headers, test_room):
    await make_room(db_session, "102")
    response = await client.put(f"/api/v1/rooms/{test_room.id}", json={"room_number": "102"}, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_room(client: AsyncClient, admin_headers, test_room):
    response = await client.delete(f"/api/v1/rooms/{test_room.id}", headers=admin_headers)
    assert response.status_code == 200
    assert (await client.get(f"/api/v1/rooms/{test_room.id}")).status_code == 404


@pytest.mark.asyncio
async def test_delete_room_with_active_booking(client: AsyncClient, db_session, test_user, admin_headers, test_room):
    await make_booking(
        db_session, test_user, test_room, date(2024, 1, 10), date(2024, 1, 13), BookingStatus.CONFIRMED
    )
    response = await client.delete(f"/api/v1/rooms/{test_room.id}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"].startswith("Cannot delete room with active bookings")


@pytest.mark.asyncio
async def test_delete_room_with_history(client: AsyncClient, db_session, test_user, admin_headers, test_room):
    await make_booking(
        db_session, test_user, test_room, date(2024, 1, 10), date(2024, 1, 13), BookingStatus.CHECKED_OUT
    )
    response = await client.delete(f"/api/v1/rooms/{test_room.id}", headers=admin_headers)
    assert response.status_code == 400
    assert "booking history" in response.json()["message"]


@pytest.mark.asyncio
async def test_update_housekeeping(client: AsyncClient, admin_headers, auth_headers, test_room):
    response = await client.patch(
        f"/api/v1/rooms/{test_room.id}/housekeeping", json={"housekeeping_status": "in-progress"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["housekeeping_status"] == "in-progress"

    response = await client.patch(
        f"/api/v1/rooms/{test_room.id}/housekeeping", json={"housekeeping_status": "clean"}, headers=auth_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_availability_range(client: AsyncClient, db_session, test_user, test_room):
    other_room = await make_room(db_session, "102")
    await make_booking(
        db_session, test_user, test_room, date(2024, 1, 10), date(2024, 1, 13), BookingStatus.CONFIRMED
    )
    await make_booking(db_session, test_user, other_room, date(2024, 1, 10), date(2024, 1, 13))

    response = await client.get("/api/v1/rooms/availability?start_date=2024-01-12&end_date=2024-01-14")
    assert response.status_code == 200
    by_number = {entry["room"]["room_number"]: entry for entry in response.json()["data"]}
    assert by_number["101"]["is_available"] is False
    assert by_number["101"]["bookings"][0]["status"] == "confirmed"
    # Pending requests do not hold the room
    assert by_number["102"]["is_available"] is True


@pytest.mark.asyncio
async def test_availability_single_date(client: AsyncClient, db_session, test_user, test_room):
    await make_booking(
        db_session, test_user, test_room, date(2024, 1, 10), date(2024, 1, 13), BookingStatus.CHECKED_IN
    )
    on_checkout_day = await client.get("/api/v1/rooms/availability?date=2024-01-13")
    assert on_checkout_day.json()["data"][0]["is_available"] is False

    day_after = await client.get("/api/v1/rooms/availability?date=2024-01-14")
    assert day_after.json()["data"][0]["is_available"] is True

    mid_stay = await client.get("/api/v1/rooms/availability?date=2024-01-12")
    assert mid_stay.json()["data"][0]["is_available"] is False


@pytest.mark.asyncio
async def test_availability_bad_ranges(client: AsyncClient):
    response = await client.get("/api/v1/rooms/availability?start_date=2024-01-12")
    assert response.status_code == 400
    assert response.json()["message"].startswith("Start date and end date are required")

    response = await client.get("/api/v1/rooms/availability?start_date=2024-01-12&end_date=2024-01-12")
    assert response.status_code == 400
    assert response.json()["message"] == "End date must be after start date"


@pytest.mark.asyncio
async def test_month_calendar(client: AsyncClient, db_session, test_user, test_room):
    booking = await make_booking(
        db_session, test_user, test_room, date(2024, 2, 28), date(2024, 3, 2), BookingStatus.CONFIRMED
    )
    response = await client.get("/api/v1/rooms/calendar?year=2024&month=2")
    assert response.status_code == 200
    days = response.json()["data"]
    assert len(days) == 29
    assert days[26]["rooms"][0]["is_available"] is True
    assert days[27]["rooms"][0]["booking_id"] == booking.id
    assert days[28]["rooms"][0]["booking_status"] == "confirmed"

    response = await client.get("/api/v1/rooms/calendar?year=2024&month=13")
    assert response.status_code == 400
