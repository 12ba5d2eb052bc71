"""
In-app notifications and the booking side-effect dispatcher.

SIDE EFFECT STRATEGY
====================

Booking writes commit first, then the route hands a snapshot of the booking
to `NotificationDispatcher`. The dispatcher:

  - Opens its own session from the session factory, so a failing insert
    can never roll back or expire the request's primary objects
  - Works on plain snapshots (`BookingSnapshot`, `Recipient`), never on ORM
    instances bound to the request session
  - Wraps every channel (in-app row, e-mail) in its own try/except; failures
    are logged and counted, never raised

There is no outbox and no retry: a notification that fails is lost.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.core.metrics import record_side_effect_failure
from app.core.permissions import ADMIN_ROLES
from app.infrastructure.email_sender import EmailSender
from app.models.booking import Booking
from app.models.enums import NotificationType
from app.models.notification import Notification
from app.models.room import Room
from app.models.user import User
from app.services import email_service
from app.services.pricing import CheckoutCharges, count_nights

logger = get_logger(__name__)

MESSAGE_MAX_LENGTH = 500
HREF_MAX_LENGTH = 300
USER_BOOKINGS_HREF = "/user/bookings"
ADMIN_BOOKINGS_HREF = "/admin/bookings"


@dataclass(frozen=True)
class Recipient:
    id: int
    email: str
    name: str
    first_name: str
    email_notifications: bool

    @classmethod
    def from_user(cls, user: User) -> "Recipient":
        return cls(
            id=user.id,
            email=user.email,
            name=user.display_name,
            first_name=user.first_name or user.username or "",
            email_notifications=bool(user.email_notifications),
        )


@dataclass(frozen=True)
class BookingSnapshot:
    id: int
    user_id: int
    room_number: str
    room_type: Optional[str]
    check_in_date: date
    check_out_date: date
    nights: int
    number_of_guests: int
    total_amount: Decimal
    status: str
    payment_status: str
    payment_method: Optional[str]
    payment_date: Optional[datetime]
    guest_name: Optional[str]
    special_requests: Optional[str]

    @classmethod
    def capture(cls, booking: Booking, room: Room) -> "BookingSnapshot":
        return cls(
            id=booking.id,
            user_id=booking.user_id,
            room_number=room.room_number,
            room_type=room.room_type,
            check_in_date=booking.check_in_date,
            check_out_date=booking.check_out_date,
            nights=count_nights(booking.check_in_date, booking.check_out_date),
            number_of_guests=booking.number_of_guests,
            total_amount=booking.total_amount,
            status=booking.status,
            payment_status=booking.payment_status,
            payment_method=booking.payment_method,
            payment_date=booking.payment_date,
            guest_name=booking.guest_name,
            special_requests=booking.special_requests,
        )


def _plural_nights(nights: int) -> str:
    return f"{nights} night{'s' if nights != 1 else ''}"


class NotificationDispatcher:
    """Best-effort fan-out of booking lifecycle messages."""

    def __init__(self, session_factory: Callable[[], AsyncSession], email_sender: EmailSender):
        self._session_factory = session_factory
        self._email_sender = email_sender

    async def create_in_app(
        self,
        user_id: int,
        type: NotificationType,
        message: str,
        href: Optional[str] = None,
    ) -> None:
        try:
            async with self._session_factory() as session:
                session.add(Notification(
                    user_id=user_id,
                    type=NotificationType(type).value,
                    message=message[:MESSAGE_MAX_LENGTH],
                    href=href[:HREF_MAX_LENGTH] if href else None,
                ))
                await session.commit()
        except Exception:
            record_side_effect_failure("notification")
            logger.warning("notification_failed", user_id=user_id, exc_info=True)

    async def send_email(self, recipient: Recipient, subject: str, body_html: str) -> None:
        if not recipient.email or not recipient.email_notifications:
            return
        try:
            await self._email_sender.send(
                recipient.email, subject, email_service.render_app_email(subject, body_html)
            )
        except Exception:
            record_side_effect_failure("email")
            logger.warning("email_failed", user_id=recipient.id, subject=subject, exc_info=True)

    async def notify(
        self,
        recipient: Recipient,
        type: NotificationType,
        message: str,
        href: Optional[str] = None,
        email: Optional[Tuple[str, str]] = None,
    ) -> None:
        await self.create_in_app(recipient.id, type, message, href)
        if email is not None:
            subject, body_html = email
            await self.send_email(recipient, subject, body_html)

    async def admin_recipients(self) -> List[Recipient]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(User).where(User.role.in_([r.value for r in ADMIN_ROLES]))
                )
                return [Recipient.from_user(u) for u in result.scalars().all()]
        except Exception:
            record_side_effect_failure("notification")
            logger.warning("admin_lookup_failed", exc_info=True)
            return []

    # Booking lifecycle

    async def booking_created(self, booking: BookingSnapshot, owner: Recipient) -> None:
        await self.notify(
            owner,
            NotificationType.INFO,
            "Booking request submitted. Awaiting confirmation.",
            USER_BOOKINGS_HREF,
            email=(
                "Booking request received",
                email_service.paragraph(f"Hi {owner.first_name},")
                + email_service.paragraph(
                    f"Your booking request for Room {booking.room_number} "
                    f"({_plural_nights(booking.nights)}) has been received and is pending approval."
                )
                + email_service.build_booking_summary(
                    booking, guest_name=booking.guest_name or owner.name, booking_status="Pending approval"
                )
                + email_service.link(email_service.bookings_link(), "View my bookings"),
            ),
        )

        message = (
            f"{owner.name} created a new booking request for Room {booking.room_number} "
            f"({_plural_nights(booking.nights)})."
        )
        body = email_service.paragraph(message) + email_service.build_booking_summary(
            booking, guest_name=booking.guest_name or owner.name
        )
        if booking.special_requests:
            body += email_service.paragraph(f"Special requests: {booking.special_requests}")
        body += email_service.link(email_service.bookings_link(admin=True), "Review booking")

        for admin in await self.admin_recipients():
            await self.notify(
                admin,
                NotificationType.INFO,
                message,
                ADMIN_BOOKINGS_HREF,
                email=("New booking request - action required", body),
            )

    async def booking_confirmed(self, booking: BookingSnapshot, owner: Recipient) -> None:
        message = f"Your booking for Room {booking.room_number} is confirmed."
        await self.notify(
            owner,
            NotificationType.SUCCESS,
            message,
            USER_BOOKINGS_HREF,
            email=(
                "Booking confirmed",
                email_service.paragraph(f"Hi {owner.first_name},")
                + email_service.paragraph(message)
                + email_service.build_booking_summary(booking, guest_name=owner.name, booking_status="Confirmed")
                + email_service.paragraph(
                    "If your payment status is still pending, please complete payment from your bookings page."
                )
                + email_service.link(email_service.bookings_link(), "View your booking"),
            ),
        )

    async def booking_cancelled(
        self, booking: BookingSnapshot, owner: Recipient, notes: Optional[str] = None
    ) -> None:
        message = f"Your booking was cancelled{': ' + notes if notes else ''}."
        await self.notify(
            owner,
            NotificationType.WARNING,
            message,
            USER_BOOKINGS_HREF,
            email=(
                "Booking cancelled",
                email_service.paragraph(f"Hi {owner.first_name},")
                + email_service.paragraph(message)
                + email_service.build_booking_summary(booking, guest_name=owner.name, booking_status="Cancelled")
                + email_service.paragraph(
                    "If you believe this was a mistake, please contact the front desk."
                )
                + email_service.link(email_service.bookings_link(), "View your bookings"),
            ),
        )

    async def checked_in(self, booking: BookingSnapshot, owner: Recipient, at: datetime) -> None:
        message = (
            f"You have been checked in! Room: {booking.room_number}. "
            f"Check-in time: {email_service.format_date(at)}"
        )
        await self.notify(
            owner,
            NotificationType.SUCCESS,
            message,
            USER_BOOKINGS_HREF,
            email=(
                "You have been checked in",
                email_service.paragraph(f"Hi {owner.first_name},")
                + email_service.paragraph(message)
                + email_service.build_booking_summary(booking, guest_name=owner.name, booking_status="Checked in")
                + email_service.link(email_service.bookings_link(), "View your bookings"),
            ),
        )

    async def checked_out(
        self, booking: BookingSnapshot, owner: Recipient, charges: CheckoutCharges
    ) -> None:
        balance_due = charges.balance_due > 0
        message = f"You have been checked out! Room: {booking.room_number}."
        if balance_due:
            message += f" Balance due: {email_service.format_money(charges.balance_due)}"
        else:
            message += " Thank you for staying with us!"

        await self.notify(
            owner,
            NotificationType.WARNING if balance_due else NotificationType.SUCCESS,
            message,
            USER_BOOKINGS_HREF,
            email=(
                "You have been checked out",
                email_service.paragraph(f"Hi {owner.first_name},")
                + email_service.paragraph(message)
                + email_service.build_booking_summary(
                    booking,
                    guest_name=owner.name,
                    booking_status="Checked out",
                    payment_status="Balance due" if balance_due else None,
                )
                + email_service.build_charge_breakdown(charges)
                + email_service.link(email_service.bookings_link(), "View your bookings"),
            ),
        )

    # Cancellation workflow

    async def cancellation_requested(
        self, booking: BookingSnapshot, owner: Recipient, reason: Optional[str]
    ) -> None:
        message = f"{owner.name} requested a cancellation for Room {booking.room_number}."
        body = email_service.paragraph(message)
        if reason:
            body += email_service.paragraph(f"Reason: {reason}")
        body += email_service.build_booking_summary(booking, guest_name=owner.name)
        body += email_service.link(email_service.bookings_link(admin=True), "Review request")

        for admin in await self.admin_recipients():
            await self.notify(
                admin,
                NotificationType.WARNING,
                message,
                ADMIN_BOOKINGS_HREF,
                email=("Booking cancellation requested", body),
            )

        await self.send_email(
            owner,
            "Cancellation request received",
            email_service.paragraph(f"Hi {owner.first_name},")
            + email_service.paragraph(
                f"We received your cancellation request for Room {booking.room_number}. "
                "An admin will review it shortly."
            )
            + email_service.build_booking_summary(booking, guest_name=owner.name)
            + email_service.link(email_service.bookings_link(), "View my bookings"),
        )

    async def cancellation_approved(self, booking: BookingSnapshot, owner: Recipient) -> None:
        message = "Your booking cancellation was approved."
        await self.notify(
            owner,
            NotificationType.SUCCESS,
            message,
            USER_BOOKINGS_HREF,
            email=(
                "Booking cancellation approved",
                email_service.paragraph(f"Hi {owner.first_name},")
                + email_service.paragraph(message)
                + email_service.build_booking_summary(booking, guest_name=owner.name, booking_status="Cancelled")
                + email_service.link(email_service.bookings_link(), "View my bookings"),
            ),
        )

    async def cancellation_declined(
        self, booking: BookingSnapshot, owner: Recipient, notes: Optional[str] = None
    ) -> None:
        message = "Your cancellation request was declined."
        body = email_service.paragraph(f"Hi {owner.first_name},") + email_service.paragraph(message)
        if notes:
            body += email_service.paragraph(f"Notes from the front desk: {notes}")
        body += email_service.build_booking_summary(booking, guest_name=owner.name)
        body += email_service.link(email_service.bookings_link(), "View my bookings")
        await self.notify(
            owner,
            NotificationType.INFO,
            message,
            USER_BOOKINGS_HREF,
            email=("Booking cancellation declined", body),
        )

    # Payments

    async def booking_paid(self, booking: BookingSnapshot, owner: Recipient, notify_admins: bool = True) -> None:
        amount = email_service.format_money(booking.total_amount)
        if notify_admins:
            message = f"{owner.name} completed payment for Room {booking.room_number} ({amount})."
            body = (
                email_service.paragraph(message)
                + email_service.build_booking_summary(
                    booking, guest_name=owner.name, payment_status="Paid", include_payment=True
                )
                + email_service.link(email_service.bookings_link(admin=True), "View booking in admin panel")
            )
            for admin in await self.admin_recipients():
                await self.notify(
                    admin,
                    NotificationType.SUCCESS,
                    message,
                    ADMIN_BOOKINGS_HREF,
                    email=("Booking paid", body),
                )

        await self.notify(
            owner,
            NotificationType.SUCCESS,
            f"Payment received for Room {booking.room_number} ({amount}).",
            USER_BOOKINGS_HREF,
            email=(
                "Payment received for your booking",
                email_service.paragraph(f"Hi {owner.first_name},")
                + email_service.paragraph(
                    f"We received your payment for Room {booking.room_number} ({amount})."
                )
                + email_service.build_booking_summary(
                    booking, guest_name=owner.name, payment_status="Paid", include_payment=True
                )
                + email_service.link(email_service.bookings_link(), "View my bookings"),
            ),
        )


# Notification inbox

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


async def list_notifications(
    db: AsyncSession,
    user_id: int,
    last_id: Optional[int] = None,
    limit: int = DEFAULT_PAGE_SIZE,
) -> Tuple[List[Notification], bool]:
    """Newest first, keyset-paginated on id. Returns (items, has_more)."""
    take = max(1, min(limit, MAX_PAGE_SIZE))
    query = select(Notification).where(Notification.user_id == user_id)
    if last_id is not None:
        query = query.where(Notification.id < last_id)
    result = await db.execute(query.order_by(Notification.id.desc()).limit(take + 1))
    items = list(result.scalars().all())
    return items[:take], len(items) > take


async def count_unread(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
    )
    return result.scalar_one()


async def mark_read(db: AsyncSession, user_id: int, notification_id: int) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id, Notification.user_id == user_id
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if not notification.is_read:
        notification.is_read = True
        await db.flush()
    return notification


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    return result.rowcount
