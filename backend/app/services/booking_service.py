"""
Booking service with concurrency-safe room holds.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two admins confirm overlapping bookings for the same room at the same
  time. Both run the overlap check, both see no conflict, both commit.
  Result: a double-booked room.

Solution:
  Every write that can make a booking hold a room (creation, confirmation,
  check-in) takes the room's optimistic lock through its `version` column.

  1. Read the room's current version
  2. Run the overlap check against active bookings
  3. UPDATE rooms SET version = version + 1
     WHERE id = :room_id AND version = :read_version
  4. If rows_affected == 0, another writer touched the room -> re-read and retry

  The winning transaction keeps the row lock from step 3 until it commits,
  so the loser's conditional UPDATE fails and its retry sees the winner's
  committed booking. After MAX_RETRY_ATTEMPTS the request gets a 409.

Side effects (notifications, e-mails) run only after the primary commit and
never change the outcome of the request.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import (
    booking_latency,
    db_retries,
    record_booking_attempt,
    record_payment_event,
    record_transition,
)
from app.core.permissions import is_admin
from app.models.booking import Booking
from app.models.enums import BookingStatus, HousekeepingStatus, PaymentStatus
from app.models.room import Room
from app.models.user import User
from app.schemas.booking import BookingCreate
from app.services.availability_service import find_conflicts
from app.services.notification_service import BookingSnapshot, NotificationDispatcher, Recipient
from app.services.pricing import (
    CheckoutCharges,
    calculate_booking_pricing,
    count_nights,
    extended_stay_charge,
    late_check_in_fee,
    late_check_out_fee,
    summarize_charges,
)
from app.services.state_machine import (
    InvalidTransitionError,
    ensure_payment_transition,
    ensure_transition,
)

logger = get_logger(__name__)
settings = get_settings()

MAX_RETRY_ATTEMPTS = 3


@dataclass
class DeskResult:
    booking: Booking
    room: Room
    charges: CheckoutCharges


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def bad_request(error: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


async def get_room_or_404(db: AsyncSession, room_id: int) -> Room:
    room = await db.get(Room, room_id)
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


async def get_booking_or_404(db: AsyncSession, booking_id: int) -> Booking:
    booking = await db.get(Booking, booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return booking


async def load_context(db: AsyncSession, booking: Booking) -> Tuple[Room, User]:
    """Room and owner for a booking, needed for snapshots and responses."""
    room = await get_room_or_404(db, booking.room_id)
    owner = await db.get(User, booking.user_id)
    if not owner:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return room, owner


def ensure_booking_access(booking: Booking, actor: User) -> None:
    if booking.user_id != actor.id and not is_admin(actor.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to access this booking",
        )


async def _lock_room_for_stay(
    db: AsyncSession,
    room_id: int,
    start: date,
    end: date,
    exclude_booking_id: Optional[int] = None,
) -> Room:
    """
    Take the room's optimistic lock after verifying [start, end) is free.
    Raises 400 on overlap, 409 when retries are exhausted.
    """
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        # Step 1: Read current room state (fresh on every attempt)
        result = await db.execute(
            select(Room).where(Room.id == room_id).execution_options(populate_existing=True)
        )
        room = result.scalar_one_or_none()
        if not room:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

        # Step 2: Overlap check against bookings that hold the room
        conflicts = await find_conflicts(db, room_id, start, end, exclude_booking_id)
        if conflicts:
            logger.warning(
                "room_unavailable",
                room_id=room_id,
                check_in=start.isoformat(),
                check_out=end.isoformat(),
                conflicting_booking_ids=[b.id for b in conflicts],
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Room is not available for the selected dates",
            )

        # Step 3: Optimistic lock - bump version only if nobody else did
        current_version = room.version
        update_result = await db.execute(
            update(Room)
            .where(Room.id == room_id, Room.version == current_version)
            .values(version=Room.version + 1)
        )

        if update_result.rowcount == 1:
            return room

        db_retries.inc()
        logger.info("room_lock_retry", room_id=room_id, attempt=attempt, reason="version_conflict")

    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Booking failed due to high demand. Please try again.",
    )


async def create_booking(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    user: User,
    data: BookingCreate,
) -> Booking:
    """
    Create a pending booking. Price is computed server-side; the room lock
    orders this write against concurrent confirmations of the same room.
    """
    room = await get_room_or_404(db, data.room_id)
    if not room.is_available:
        record_booking_attempt("conflict")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Room is not available")

    with booking_latency.time():
        try:
            room = await _lock_room_for_stay(db, room.id, data.check_in_date, data.check_out_date)
        except HTTPException:
            record_booking_attempt("conflict")
            raise

        pricing = calculate_booking_pricing(
            room.price,
            room.capacity,
            data.check_in_date,
            data.check_out_date,
            data.number_of_guests,
            extra_person_fee=settings.EXTRA_PERSON_FEE,
        )

        booking = Booking(
            user_id=user.id,
            room_id=room.id,
            check_in_date=data.check_in_date,
            check_out_date=data.check_out_date,
            number_of_guests=data.number_of_guests,
            total_amount=pricing.total_amount,
            status=BookingStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            guest_name=data.guest_name or user.display_name,
            contact_number=data.contact_number,
            special_requests=data.special_requests,
            cancellation_requested=False,
        )
        db.add(booking)
        await db.flush()
        await db.refresh(booking)
        await db.commit()

    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user.id,
        room_id=room.id,
        nights=pricing.nights,
        extra_persons=pricing.extra_persons,
        total_amount=str(pricing.total_amount),
    )

    await dispatcher.booking_created(BookingSnapshot.capture(booking, room), Recipient.from_user(user))
    return booking


async def get_booking_for_user(db: AsyncSession, booking_id: int, actor: User) -> Booking:
    booking = await get_booking_or_404(db, booking_id)
    ensure_booking_access(booking, actor)
    return booking


async def get_user_bookings(db: AsyncSession, user_id: int) -> List[Tuple[Booking, Room]]:
    """All bookings of a user with their rooms, newest first."""
    result = await db.execute(
        select(Booking, Room)
        .join(Room, Booking.room_id == Room.id)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return [tuple(row) for row in result.all()]


async def list_bookings(
    db: AsyncSession,
    status_filter: Optional[BookingStatus] = None,
    cancellation_requested: Optional[bool] = None,
) -> List[Tuple[Booking, Room, User]]:
    """Admin view of every booking with its room and owner."""
    query = (
        select(Booking, Room, User)
        .join(Room, Booking.room_id == Room.id)
        .join(User, Booking.user_id == User.id)
    )
    if status_filter is not None:
        query = query.where(Booking.status == BookingStatus(status_filter).value)
    if cancellation_requested is not None:
        query = query.where(Booking.cancellation_requested.is_(cancellation_requested))
    result = await db.execute(query.order_by(Booking.created_at.desc(), Booking.id.desc()))
    return [tuple(row) for row in result.all()]


async def update_status(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    booking_id: int,
    target: BookingStatus,
    actor: User,
    admin_notes: Optional[str] = None,
) -> Booking:
    """
    Admin status change, validated against the transition table.

    A direct cancel is an admin override and also clears any pending
    cancellation request. Check-in and check-out go through the desk
    operations so their room effects and fees always apply.
    """
    booking = await get_booking_or_404(db, booking_id)
    try:
        target = ensure_transition(booking.status, target)
    except InvalidTransitionError as e:
        raise bad_request(e)

    if target == BookingStatus.CHECKED_IN:
        return (await check_in(db, dispatcher, booking_id, actor, notes=admin_notes)).booking
    if target == BookingStatus.CHECKED_OUT:
        return (await check_out(db, dispatcher, booking_id, actor, notes=admin_notes)).booking

    previous = booking.status
    room, owner = await load_context(db, booking)

    if target == BookingStatus.CONFIRMED:
        room = await _lock_room_for_stay(
            db, booking.room_id, booking.check_in_date, booking.check_out_date,
            exclude_booking_id=booking.id,
        )

    booking.status = target.value
    if admin_notes is not None:
        booking.admin_notes = admin_notes
    if target == BookingStatus.CANCELLED:
        booking.cancellation_requested = False
    await db.flush()
    await db.commit()

    record_transition(previous, target.value)
    logger.info(
        "booking_status_changed",
        booking_id=booking.id,
        from_status=previous,
        to_status=target.value,
        admin_id=actor.id,
    )

    snapshot = BookingSnapshot.capture(booking, room)
    if target == BookingStatus.CONFIRMED:
        await dispatcher.booking_confirmed(snapshot, Recipient.from_user(owner))
    elif target == BookingStatus.CANCELLED:
        await dispatcher.booking_cancelled(snapshot, Recipient.from_user(owner), admin_notes)
    return booking


async def check_in(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    booking_id: int,
    actor: User,
    additional_charges: Decimal = Decimal("0"),
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DeskResult:
    """Front desk check-in: confirmed -> checked-in, room becomes occupied."""
    now = now or utcnow()
    booking = await get_booking_or_404(db, booking_id)
    try:
        ensure_transition(booking.status, BookingStatus.CHECKED_IN)
    except InvalidTransitionError as e:
        raise bad_request(e)

    if settings.CHECK_IN_REQUIRES_PAYMENT and booking.payment_status != PaymentStatus.PAID.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Booking must be paid before check-in",
        )

    days_until_check_in = (booking.check_in_date - now.date()).days
    if days_until_check_in > settings.EARLY_CHECK_IN_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Check-in too early. Scheduled check-in is on {booking.check_in_date.isoformat()}; "
                f"early check-in is allowed up to {settings.EARLY_CHECK_IN_DAYS} day(s) before."
            ),
        )

    _, owner = await load_context(db, booking)
    room = await _lock_room_for_stay(
        db, booking.room_id, booking.check_in_date, booking.check_out_date,
        exclude_booking_id=booking.id,
    )
    if not room.is_available:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Room is not available for check-in",
        )
    if room.housekeeping_status != HousekeepingStatus.CLEAN.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Room must be clean before check-in. Housekeeping status: {room.housekeeping_status}",
        )

    late_fee = late_check_in_fee(
        booking.check_in_date,
        now,
        settings.STANDARD_CHECK_IN_HOUR,
        settings.LATE_CHECK_IN_HOURLY_FEE,
        settings.LATE_CHECK_IN_FEE_CAP,
    )

    previous = booking.status
    booking.status = BookingStatus.CHECKED_IN.value
    booking.actual_check_in_time = now
    booking.checked_in_by_id = actor.id
    booking.late_check_in_fee = late_fee
    booking.additional_charges = Decimal(booking.additional_charges or 0) + additional_charges
    if notes:
        booking.admin_notes = notes
    # Occupied until check-out
    room.is_available = False
    room.housekeeping_status = HousekeepingStatus.DIRTY.value
    await db.flush()
    await db.commit()

    record_transition(previous, booking.status)
    logger.info(
        "booking_checked_in",
        booking_id=booking.id,
        room_id=room.id,
        admin_id=actor.id,
        late_check_in_fee=str(late_fee),
    )

    charges = summarize_charges(
        booking.total_amount,
        booking.late_check_in_fee,
        0,
        0,
        booking.additional_charges,
        paid=booking.payment_status == PaymentStatus.PAID.value,
    )
    await dispatcher.checked_in(BookingSnapshot.capture(booking, room), Recipient.from_user(owner), now)
    return DeskResult(booking=booking, room=room, charges=charges)


async def check_out(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    booking_id: int,
    actor: User,
    additional_charges: Decimal = Decimal("0"),
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DeskResult:
    """Front desk check-out: checked-in -> checked-out with the final bill."""
    now = now or utcnow()
    booking = await get_booking_or_404(db, booking_id)
    try:
        ensure_transition(booking.status, BookingStatus.CHECKED_OUT)
    except InvalidTransitionError as e:
        raise bad_request(e)
    if booking.actual_check_in_time is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid check-in state: booking has no recorded check-in time",
        )

    room, owner = await load_context(db, booking)

    late_fee = late_check_out_fee(
        booking.check_out_date,
        now,
        settings.STANDARD_CHECK_OUT_HOUR,
        settings.LATE_CHECK_OUT_HOURLY_FEE,
        settings.LATE_CHECK_OUT_FEE_CAP,
    )
    checked_in_at = booking.actual_check_in_time
    if checked_in_at.tzinfo is None:
        # SQLite drops the offset
        checked_in_at = checked_in_at.replace(tzinfo=timezone.utc)
    extended = extended_stay_charge(
        count_nights(booking.check_in_date, booking.check_out_date),
        count_nights(checked_in_at, now),
        room.price,
    )

    previous = booking.status
    booking.status = BookingStatus.CHECKED_OUT.value
    booking.actual_check_out_time = now
    booking.checked_out_by_id = actor.id
    booking.late_check_out_fee = late_fee
    booking.additional_charges = Decimal(booking.additional_charges or 0) + additional_charges
    if notes:
        booking.checkout_notes = notes
    # Free for the next guest once housekeeping has cleaned it
    room.is_available = True
    room.housekeeping_status = HousekeepingStatus.DIRTY.value
    await db.flush()
    await db.commit()

    charges = summarize_charges(
        booking.total_amount,
        booking.late_check_in_fee,
        late_fee,
        extended,
        booking.additional_charges,
        paid=booking.payment_status == PaymentStatus.PAID.value,
    )

    record_transition(previous, booking.status)
    logger.info(
        "booking_checked_out",
        booking_id=booking.id,
        room_id=room.id,
        admin_id=actor.id,
        late_check_out_fee=str(late_fee),
        extended_stay_charge=str(extended),
        balance_due=str(charges.balance_due),
    )

    await dispatcher.checked_out(BookingSnapshot.capture(booking, room), Recipient.from_user(owner), charges)
    return DeskResult(booking=booking, room=room, charges=charges)


async def update_payment_status(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    booking_id: int,
    target: PaymentStatus,
    actor: User,
) -> Booking:
    """
    Manual payment marking. Owners may only mark their booking paid; admins
    may also refund. Payment never moves back to pending.
    """
    booking = await get_booking_or_404(db, booking_id)
    ensure_booking_access(booking, actor)
    admin = is_admin(actor.role)
    target = PaymentStatus(target)

    if not admin and target != PaymentStatus.PAID:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only mark bookings as paid",
        )
    try:
        ensure_payment_transition(booking.payment_status, target)
    except InvalidTransitionError as e:
        raise bad_request(e)

    room, owner = await load_context(db, booking)
    previous = booking.payment_status
    booking.payment_status = target.value
    if target == PaymentStatus.PAID:
        booking.payment_date = utcnow()
        booking.payment_method = booking.payment_method or "manual"
    await db.flush()
    await db.commit()

    record_payment_event("manual", target.value)
    logger.info(
        "payment_status_changed",
        booking_id=booking.id,
        from_status=previous,
        to_status=target.value,
        actor_id=actor.id,
        source="manual",
    )

    if target == PaymentStatus.PAID and admin:
        await dispatcher.booking_paid(
            BookingSnapshot.capture(booking, room), Recipient.from_user(owner), notify_admins=False
        )
    return booking
