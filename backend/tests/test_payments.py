"""
Tests for gateway checkout, client confirmation and webhook reconciliation.
"""

import json
from datetime import date

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.infrastructure.payment_gateway import CHECKOUT_COMPLETED
from app.models.enums import BookingStatus, PaymentStatus
from app.models.notification import Notification
from tests.conftest import VALID_SIGNATURE, make_booking


async def confirmed_booking(db_session, user, room, **kwargs):
    return await make_booking(
        db_session, user, room, date(2024, 1, 10), date(2024, 1, 13), BookingStatus.CONFIRMED, **kwargs
    )


async def start_checkout(client, booking, headers) -> str:
    response = await client.post(
        "/api/v1/payments/create-checkout-session", json={"booking_id": booking.id}, headers=headers
    )
    assert response.status_code == 200
    return response.json()["data"]["id"]


def webhook_body(session_id: str, event_type: str = CHECKOUT_COMPLETED) -> bytes:
    return json.dumps({"type": event_type, "session_id": session_id}).encode()


async def paid_notifications(db_session, user_id: int) -> list:
    result = await db_session.execute(
        select(Notification).where(Notification.user_id == user_id, Notification.type == "success")
    )
    return result.scalars().all()


@pytest.mark.asyncio
async def test_create_checkout_session(client: AsyncClient, db_session, test_user, auth_headers, test_room, gateway):
    booking = await confirmed_booking(db_session, test_user, test_room)

    response = await client.post(
        "/api/v1/payments/create-checkout-session", json={"booking_id": booking.id}, headers=auth_headers
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["url"].startswith("https://checkout.test/")

    request = gateway.requests[0]
    assert request.booking_id == booking.id
    assert request.amount == booking.total_amount
    assert request.currency == "php"
    assert "Room 101" in request.product_name


@pytest.mark.asyncio
async def test_checkout_requires_confirmation(client: AsyncClient, db_session, test_user, auth_headers, test_room):
    booking = await make_booking(db_session, test_user, test_room, date(2024, 1, 10), date(2024, 1, 13))
    response = await client.post(
        "/api/v1/payments/create-checkout-session", json={"booking_id": booking.id}, headers=auth_headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Booking must be approved by admin before payment"


@pytest.mark.asyncio
async def test_checkout_rejects_paid_booking(client: AsyncClient, db_session, test_user, auth_headers, test_room):
    booking = await confirmed_booking(db_session, test_user, test_room, payment_status=PaymentStatus.PAID)
    response = await client.post(
        "/api/v1/payments/create-checkout-session", json={"booking_id": booking.id}, headers=auth_headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Booking is already paid"


@pytest.mark.asyncio
async def test_checkout_other_users_booking(client: AsyncClient, db_session, test_user, other_headers, test_room):
    booking = await confirmed_booking(db_session, test_user, test_room)
    response = await client.post(
        "/api/v1/payments/create-checkout-session", json={"booking_id": booking.id}, headers=other_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_checkout_gateway_failure(client: AsyncClient, db_session, test_user, auth_headers, test_room, gateway):
    booking = await confirmed_booking(db_session, test_user, test_room)
    gateway.fail = True
    response = await client.post(
        "/api/v1/payments/create-checkout-session", json={"booking_id": booking.id}, headers=auth_headers
    )
    assert response.status_code == 500
    assert response.json() == {"message": "Failed to create checkout session"}


@pytest.mark.asyncio
async def test_confirm_unpaid_session(client: AsyncClient, db_session, test_user, auth_headers, test_room):
    booking = await confirmed_booking(db_session, test_user, test_room)
    session_id = await start_checkout(client, booking, auth_headers)

    response = await client.get(f"/api/v1/payments/confirm?session_id={session_id}", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["message"] == "Session not paid yet"


@pytest.mark.asyncio
async def test_confirm_paid_session(
    client: AsyncClient, db_session, test_user, admin_user, auth_headers, test_room, gateway
):
    booking = await confirmed_booking(db_session, test_user, test_room)
    session_id = await start_checkout(client, booking, auth_headers)
    gateway.complete(session_id, payment_intent="pi_123")

    response = await client.get(f"/api/v1/payments/confirm?session_id={session_id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"] == {
        "booking_id": booking.id, "payment_status": "paid", "outcome": "applied",
    }

    await db_session.refresh(booking)
    assert booking.payment_status == "paid"
    assert booking.payment_method == "stripe"
    assert booking.payment_transaction_id == "pi_123"
    assert booking.payment_date is not None
    assert len(await paid_notifications(db_session, test_user.id)) == 1
    assert len(await paid_notifications(db_session, admin_user.id)) == 1


@pytest.mark.asyncio
async def test_webhook_applies_payment_once(
    client: AsyncClient, db_session, test_user, auth_headers, test_room, gateway, email_sender
):
    """Replayed webhooks and a late client confirm never double-notify."""
    booking = await confirmed_booking(db_session, test_user, test_room)
    session_id = await start_checkout(client, booking, auth_headers)
    gateway.complete(session_id)
    headers = {"stripe-signature": VALID_SIGNATURE}

    first = await client.post("/api/v1/payments/webhook", content=webhook_body(session_id), headers=headers)
    assert first.status_code == 200
    assert first.json() == {"received": True, "outcome": "applied"}
    mails_after_first = len(email_sender.to("guest@example.com"))

    replay = await client.post("/api/v1/payments/webhook", content=webhook_body(session_id), headers=headers)
    assert replay.json()["outcome"] == "duplicate"

    confirm = await client.get(f"/api/v1/payments/confirm?session_id={session_id}", headers=auth_headers)
    assert confirm.status_code == 200
    assert confirm.json()["data"]["outcome"] == "duplicate"

    assert len(await paid_notifications(db_session, test_user.id)) == 1
    assert len(email_sender.to("guest@example.com")) == mails_after_first


@pytest.mark.asyncio
async def test_webhook_bad_signature(client: AsyncClient, db_session, test_user, auth_headers, test_room, gateway):
    booking = await confirmed_booking(db_session, test_user, test_room)
    session_id = await start_checkout(client, booking, auth_headers)
    gateway.complete(session_id)

    response = await client.post(
        "/api/v1/payments/webhook", content=webhook_body(session_id), headers={"stripe-signature": "forged"}
    )
    assert response.status_code == 400
    assert response.json()["message"].startswith("Webhook Error:")

    await db_session.refresh(booking)
    assert booking.payment_status == "pending"


@pytest.mark.asyncio
async def test_webhook_ignores_other_events(client: AsyncClient, db_session, test_user, auth_headers, test_room):
    booking = await confirmed_booking(db_session, test_user, test_room)
    session_id = await start_checkout(client, booking, auth_headers)

    response = await client.post(
        "/api/v1/payments/webhook",
        content=webhook_body(session_id, "payment_intent.created"),
        headers={"stripe-signature": VALID_SIGNATURE},
    )
    assert response.status_code == 200
    assert response.json()["outcome"] == "ignored"


@pytest.mark.asyncio
async def test_webhook_ignores_unpaid_session(client: AsyncClient, db_session, test_user, auth_headers, test_room):
    booking = await confirmed_booking(db_session, test_user, test_room)
    session_id = await start_checkout(client, booking, auth_headers)

    response = await client.post(
        "/api/v1/payments/webhook", content=webhook_body(session_id), headers={"stripe-signature": VALID_SIGNATURE}
    )
    assert response.json()["outcome"] == "ignored"
    await db_session.refresh(booking)
    assert booking.payment_status == "pending"


@pytest.mark.asyncio
async def test_webhook_does_not_resurrect_refund(
    client: AsyncClient, db_session, test_user, auth_headers, test_room, gateway
):
    booking = await confirmed_booking(db_session, test_user, test_room)
    session_id = await start_checkout(client, booking, auth_headers)
    gateway.complete(session_id)
    booking.payment_status = PaymentStatus.REFUNDED.value
    await db_session.commit()

    response = await client.post(
        "/api/v1/payments/webhook", content=webhook_body(session_id), headers={"stripe-signature": VALID_SIGNATURE}
    )
    assert response.json()["outcome"] == "ignored"
    await db_session.refresh(booking)
    assert booking.payment_status == "refunded"
