"""
Tests for room reviews: the completed-stay gate, one review per guest and
the public listing.
"""

from datetime import date

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from app.models.enums import BookingStatus
from app.models.review import RoomReview
from tests.conftest import make_booking, make_room

REVIEW = {"rating": 4, "comment": "Quiet room, great view"}


async def checked_out_stay(db_session, user, room):
    return await make_booking(
        db_session, user, room, date(2024, 1, 10), date(2024, 1, 13), BookingStatus.CHECKED_OUT
    )


@pytest.mark.asyncio
async def test_review_requires_a_stay(client: AsyncClient, auth_headers, test_room):
    response = await client.post(f"/api/v1/rooms/{test_room.id}/reviews", json=REVIEW, headers=auth_headers)
    assert response.status_code == 403
    assert response.json() == {
        "message": "You can only review rooms after you have completed a stay (checked out)."
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN])
async def test_review_rejected_before_check_out(
    client: AsyncClient, db_session, test_user, auth_headers, test_room, status
):
    await make_booking(db_session, test_user, test_room, date(2024, 1, 10), date(2024, 1, 13), status)
    response = await client.post(f"/api/v1/rooms/{test_room.id}/reviews", json=REVIEW, headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_stay_in_another_room_does_not_count(
    client: AsyncClient, db_session, test_user, auth_headers, test_room
):
    suite = await make_room(db_session, "301", room_type="Suite")
    await checked_out_stay(db_session, test_user, suite)
    response = await client.post(f"/api/v1/rooms/{test_room.id}/reviews", json=REVIEW, headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_review_after_check_out(client: AsyncClient, db_session, test_user, auth_headers, test_room):
    await checked_out_stay(db_session, test_user, test_room)
    response = await client.post(
        f"/api/v1/rooms/{test_room.id}/reviews",
        json={"rating": 5, "comment": "  Spotless  "},
        headers=auth_headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Review submitted"
    assert body["data"]["rating"] == 5
    assert body["data"]["comment"] == "Spotless"
    assert body["data"]["user"]["username"] == "guest"


@pytest.mark.asyncio
async def test_second_review_replaces_the_first(
    client: AsyncClient, db_session, test_user, auth_headers, test_room
):
    await checked_out_stay(db_session, test_user, test_room)
    first = await client.post(f"/api/v1/rooms/{test_room.id}/reviews", json=REVIEW, headers=auth_headers)
    second = await client.post(
        f"/api/v1/rooms/{test_room.id}/reviews",
        json={"rating": 2, "comment": "Noisy at night"},
        headers=auth_headers,
    )
    assert second.status_code == 201
    assert second.json()["data"]["id"] == first.json()["data"]["id"]

    result = await db_session.execute(select(func.count(RoomReview.id)))
    assert result.scalar_one() == 1
    listing = await client.get(f"/api/v1/rooms/{test_room.id}/reviews")
    assert listing.json()["data"]["items"][0]["comment"] == "Noisy at night"


@pytest.mark.asyncio
async def test_review_unknown_room(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/rooms/999/reviews", json=REVIEW, headers=auth_headers)
    assert response.status_code == 404
    assert response.json() == {"message": "Room not found"}


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"rating": 6, "comment": "Too good"},
    {"rating": 0, "comment": "Awful"},
    {"rating": 3, "comment": "   "},
    {"comment": "No rating"},
])
async def test_review_validation(client: AsyncClient, db_session, test_user, auth_headers, test_room, payload):
    await checked_out_stay(db_session, test_user, test_room)
    response = await client.post(f"/api/v1/rooms/{test_room.id}/reviews", json=payload, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Validation failed"


@pytest.mark.asyncio
async def test_review_requires_login(client: AsyncClient, test_room):
    response = await client.post(f"/api/v1/rooms/{test_room.id}/reviews", json=REVIEW)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_list_reviews_with_average(
    client: AsyncClient, db_session, test_user, other_user, auth_headers, other_headers, test_room
):
    await checked_out_stay(db_session, test_user, test_room)
    await checked_out_stay(db_session, other_user, test_room)
    await client.post(
        f"/api/v1/rooms/{test_room.id}/reviews", json={"rating": 5, "comment": "Lovely"}, headers=auth_headers
    )
    await client.post(
        f"/api/v1/rooms/{test_room.id}/reviews", json={"rating": 2, "comment": "Cold shower"}, headers=other_headers
    )

    response = await client.get(f"/api/v1/rooms/{test_room.id}/reviews")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["count"] == 2
    assert data["average_rating"] == 3.5
    # Newest first
    assert [item["user"]["username"] for item in data["items"]] == ["other", "guest"]


@pytest.mark.asyncio
async def test_list_reviews_empty_room(client: AsyncClient, test_room):
    response = await client.get(f"/api/v1/rooms/{test_room.id}/reviews")
    assert response.json()["data"] == {"items": [], "average_rating": 0.0, "count": 0}

    missing = await client.get("/api/v1/rooms/999/reviews")
    assert missing.status_code == 404
