"""
Gateway payment flow: checkout session creation and reconciliation.

Both the gateway webhook and the client-side confirm call funnel into
`apply_gateway_payment`. The paid marking is a conditional UPDATE on
`payment_status = 'pending'`, so when both arrive for the same session only
one of them applies the payment and fans out notifications; the other is
recorded as a duplicate.
"""

from typing import Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_payment_event
from app.infrastructure.payment_gateway import (
    CHECKOUT_COMPLETED,
    CheckoutRequest,
    CheckoutSession,
    PaymentGateway,
    PaymentGatewayError,
    WebhookVerificationError,
)
from app.models.booking import Booking
from app.models.enums import BookingStatus, PaymentStatus
from app.models.user import User
from app.services.booking_service import ensure_booking_access, get_booking_or_404, load_context, utcnow
from app.services.email_service import booking_reference
from app.services.notification_service import BookingSnapshot, NotificationDispatcher, Recipient

logger = get_logger(__name__)
settings = get_settings()

APPLIED = "applied"
DUPLICATE = "duplicate"
IGNORED = "ignored"


async def create_checkout_session(
    db: AsyncSession,
    gateway: PaymentGateway,
    booking_id: int,
    actor: User,
) -> CheckoutSession:
    booking = await get_booking_or_404(db, booking_id)
    ensure_booking_access(booking, actor)

    if booking.payment_status == PaymentStatus.PAID.value:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Booking is already paid")
    if booking.status != BookingStatus.CONFIRMED.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Booking must be approved by admin before payment",
        )

    room, _ = await load_context(db, booking)
    request = CheckoutRequest(
        booking_id=booking.id,
        user_id=booking.user_id,
        amount=booking.total_amount,
        currency=settings.CURRENCY,
        product_name=f"Room {room.room_number} - {room.room_type}",
        description=f"Booking {booking_reference(booking.id)}",
        success_url=f"{settings.CLIENT_ORIGIN}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{settings.CLIENT_ORIGIN}/checkout/cancel?bookingId={booking.id}",
    )
    try:
        session = await gateway.create_checkout_session(request)
    except PaymentGatewayError:
        record_payment_event("checkout", "error")
        logger.error("checkout_session_failed", booking_id=booking.id, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create checkout session",
        )

    record_payment_event("checkout", "created")
    logger.info("checkout_session_created", booking_id=booking.id, session_id=session.id)
    return session


async def apply_gateway_payment(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    session: CheckoutSession,
    source: str,
) -> Tuple[Optional[Booking], str]:
    """Mark the session's booking paid. Returns (booking, outcome)."""
    booking_id = session.booking_id
    if booking_id is None:
        record_payment_event(source, IGNORED)
        logger.warning("payment_session_without_booking", session_id=session.id, source=source)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing bookingId in session metadata",
        )

    booking = await get_booking_or_404(db, booking_id)
    if booking.payment_status != PaymentStatus.PENDING.value:
        outcome = DUPLICATE if booking.payment_status == PaymentStatus.PAID.value else IGNORED
        record_payment_event(source, outcome)
        logger.info(
            "payment_not_applied",
            booking_id=booking.id,
            payment_status=booking.payment_status,
            outcome=outcome,
            source=source,
        )
        return booking, outcome

    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.payment_status == PaymentStatus.PENDING.value)
        .values(
            payment_status=PaymentStatus.PAID.value,
            payment_method=settings.PAYMENT_METHOD_NAME,
            payment_date=utcnow(),
            payment_transaction_id=session.payment_intent or session.id,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(booking)

    if result.rowcount == 0:
        # Another confirmation won the race
        record_payment_event(source, DUPLICATE)
        return booking, DUPLICATE

    record_payment_event(source, APPLIED)
    logger.info(
        "payment_applied",
        booking_id=booking.id,
        transaction_id=booking.payment_transaction_id,
        source=source,
    )

    room, owner = await load_context(db, booking)
    await dispatcher.booking_paid(BookingSnapshot.capture(booking, room), Recipient.from_user(owner))
    return booking, APPLIED


async def confirm_session(
    db: AsyncSession,
    gateway: PaymentGateway,
    dispatcher: NotificationDispatcher,
    session_id: str,
) -> Tuple[Booking, str]:
    """Client pull after redirect from the gateway's success page."""
    try:
        session = await gateway.retrieve_session(session_id)
    except PaymentGatewayError:
        logger.error("payment_confirm_failed", session_id=session_id, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to confirm payment",
        )

    if not session.paid:
        record_payment_event("confirm", "unpaid")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Session not paid yet")

    return await apply_gateway_payment(db, dispatcher, session, source="confirm")


async def handle_webhook(
    db: AsyncSession,
    gateway: PaymentGateway,
    dispatcher: NotificationDispatcher,
    payload: bytes,
    signature: Optional[str],
) -> str:
    try:
        event = gateway.parse_webhook(payload, signature)
    except WebhookVerificationError as e:
        record_payment_event("webhook", "invalid")
        logger.warning("webhook_verification_failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Webhook Error: {e}")

    if event.type != CHECKOUT_COMPLETED or event.session is None:
        record_payment_event("webhook", IGNORED)
        logger.debug("webhook_ignored", event_type=event.type)
        return IGNORED

    if not event.session.paid:
        record_payment_event("webhook", "unpaid")
        logger.info("webhook_session_unpaid", session_id=event.session.id)
        return IGNORED

    _, outcome = await apply_gateway_payment(db, dispatcher, event.session, source="webhook")
    return outcome
