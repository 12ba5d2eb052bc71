"""
Booking status and payment status state machines.

    pending ──> confirmed ──> checked-in ──> checked-out
       │            │
       └────────────┴──> cancelled (terminal)

    payment: pending ──> paid ──> refunded

These functions only validate; persistence and side effects belong to the
booking services.
"""

from typing import Dict, FrozenSet, Union

from app.models.enums import BookingStatus, PaymentStatus

StatusLike = Union[BookingStatus, str]
PaymentLike = Union[PaymentStatus, str]


class InvalidTransitionError(ValueError):
    """Raised when a booking or payment status change is not allowed."""


BOOKING_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CHECKED_IN, BookingStatus.CANCELLED}),
    BookingStatus.CHECKED_IN: frozenset({BookingStatus.CHECKED_OUT}),
    BookingStatus.CHECKED_OUT: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}

# Statuses from which the guest may ask to cancel
CANCELLABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def _status(value: StatusLike) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError:
        raise InvalidTransitionError(f"Unknown booking status: {value}") from None


def _payment(value: PaymentLike) -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        raise InvalidTransitionError(f"Unknown payment status: {value}") from None


def can_transition(current: StatusLike, target: StatusLike) -> bool:
    try:
        return _status(target) in BOOKING_TRANSITIONS[_status(current)]
    except InvalidTransitionError:
        return False


def ensure_transition(current: StatusLike, target: StatusLike) -> BookingStatus:
    """Validate a booking status change and return the target status."""
    source = _status(current)
    destination = _status(target)

    if source == destination:
        raise InvalidTransitionError(f"Booking is already {source.value}")
    if destination == BookingStatus.CHECKED_IN and source != BookingStatus.CONFIRMED:
        raise InvalidTransitionError(
            f"Only confirmed bookings can be checked in. Current status: {source.value}"
        )
    if destination == BookingStatus.CHECKED_OUT and source != BookingStatus.CHECKED_IN:
        raise InvalidTransitionError(
            f"Only checked-in bookings can be checked out. Current status: {source.value}"
        )
    if destination not in BOOKING_TRANSITIONS[source]:
        raise InvalidTransitionError(
            f"Cannot change booking status from {source.value} to {destination.value}"
        )
    return destination


def ensure_cancellable(current: StatusLike) -> None:
    if _status(current) not in CANCELLABLE_STATUSES:
        raise InvalidTransitionError("Only pending or confirmed bookings can be cancelled")


def ensure_payment_transition(current: PaymentLike, target: PaymentLike) -> PaymentStatus:
    """Validate a payment status change. Payment never moves back to pending."""
    source = _payment(current)
    destination = _payment(target)

    if source == destination:
        raise InvalidTransitionError(f"Payment is already {source.value}")
    if destination not in PAYMENT_TRANSITIONS[source]:
        raise InvalidTransitionError(
            f"Cannot change payment status from {source.value} to {destination.value}"
        )
    return destination
