"""
Guest cancellation workflow: the owner asks, an admin approves or declines.
"""

from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.core.metrics import cancellation_requests, record_transition
from app.models.booking import Booking
from app.models.enums import BookingStatus
from app.models.user import User
from app.services.booking_service import bad_request, get_booking_or_404, load_context
from app.services.notification_service import BookingSnapshot, NotificationDispatcher, Recipient
from app.services.state_machine import InvalidTransitionError, ensure_cancellable, ensure_transition

logger = get_logger(__name__)


async def request_cancellation(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    booking_id: int,
    actor: User,
    reason: Optional[str] = None,
) -> Booking:
    booking = await get_booking_or_404(db, booking_id)
    if booking.user_id != actor.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to cancel this booking",
        )
    try:
        ensure_cancellable(booking.status)
    except InvalidTransitionError as e:
        raise bad_request(e)
    if booking.cancellation_requested:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cancellation already requested",
        )

    room, owner = await load_context(db, booking)
    booking.cancellation_requested = True
    booking.cancellation_reason = reason
    await db.flush()
    await db.commit()

    cancellation_requests.labels(action="requested").inc()
    logger.info("cancellation_requested", booking_id=booking.id, user_id=actor.id)

    await dispatcher.cancellation_requested(
        BookingSnapshot.capture(booking, room), Recipient.from_user(owner), reason
    )
    return booking


async def _pending_request(db: AsyncSession, booking_id: int, action: str) -> Booking:
    booking = await get_booking_or_404(db, booking_id)
    if not booking.cancellation_requested:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No cancellation request to {action}",
        )
    return booking


async def approve_cancellation(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    booking_id: int,
    actor: User,
) -> Booking:
    booking = await _pending_request(db, booking_id, "approve")
    try:
        ensure_transition(booking.status, BookingStatus.CANCELLED)
    except InvalidTransitionError as e:
        raise bad_request(e)

    room, owner = await load_context(db, booking)
    previous = booking.status
    booking.status = BookingStatus.CANCELLED.value
    booking.cancellation_requested = False
    await db.flush()
    await db.commit()

    cancellation_requests.labels(action="approved").inc()
    record_transition(previous, booking.status)
    logger.info("cancellation_approved", booking_id=booking.id, admin_id=actor.id)

    await dispatcher.cancellation_approved(BookingSnapshot.capture(booking, room), Recipient.from_user(owner))
    return booking


async def decline_cancellation(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    booking_id: int,
    actor: User,
    admin_notes: Optional[str] = None,
) -> Booking:
    """Clear the request and keep the booking's status."""
    booking = await _pending_request(db, booking_id, "decline")

    room, owner = await load_context(db, booking)
    booking.cancellation_requested = False
    if admin_notes:
        booking.admin_notes = admin_notes
    await db.flush()
    await db.commit()

    cancellation_requests.labels(action="declined").inc()
    logger.info("cancellation_declined", booking_id=booking.id, admin_id=actor.id)

    await dispatcher.cancellation_declined(
        BookingSnapshot.capture(booking, room), Recipient.from_user(owner), admin_notes
    )
    return booking
