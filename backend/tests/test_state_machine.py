"""
Tests for the booking and payment status state machines.
"""

import pytest

from app.models.enums import BookingStatus, PaymentStatus
from app.services.state_machine import (
    InvalidTransitionError,
    can_transition,
    ensure_cancellable,
    ensure_payment_transition,
    ensure_transition,
)


@pytest.mark.parametrize("current, target", [
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "checked-in"),
    ("confirmed", "cancelled"),
    ("checked-in", "checked-out"),
])
def test_allowed_transitions(current, target):
    assert can_transition(current, target)
    assert ensure_transition(current, target) == BookingStatus(target)


@pytest.mark.parametrize("current, target", [
    ("pending", "checked-in"),
    ("pending", "checked-out"),
    ("confirmed", "pending"),
    ("checked-in", "cancelled"),
    ("checked-out", "checked-in"),
    ("cancelled", "confirmed"),
])
def test_rejected_transitions(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransitionError):
        ensure_transition(current, target)


def test_same_status_is_rejected():
    with pytest.raises(InvalidTransitionError, match="already confirmed"):
        ensure_transition(BookingStatus.CONFIRMED, BookingStatus.CONFIRMED)


def test_check_in_message_names_current_status():
    with pytest.raises(InvalidTransitionError, match="Only confirmed bookings can be checked in"):
        ensure_transition("pending", "checked-in")


def test_unknown_status():
    assert not can_transition("pending", "teleported")
    with pytest.raises(InvalidTransitionError, match="Unknown booking status"):
        ensure_transition("pending", "teleported")


def test_terminal_states_have_no_exits():
    for target in BookingStatus:
        assert not can_transition(BookingStatus.CANCELLED, target)
        assert not can_transition(BookingStatus.CHECKED_OUT, target)


def test_cancellable_statuses():
    ensure_cancellable("pending")
    ensure_cancellable("confirmed")
    for status in ("checked-in", "checked-out", "cancelled"):
        with pytest.raises(InvalidTransitionError):
            ensure_cancellable(status)


def test_payment_transitions():
    assert ensure_payment_transition("pending", "paid") == PaymentStatus.PAID
    assert ensure_payment_transition("paid", "refunded") == PaymentStatus.REFUNDED

    for current, target in [("paid", "pending"), ("refunded", "paid"), ("pending", "refunded")]:
        with pytest.raises(InvalidTransitionError):
            ensure_payment_transition(current, target)

    with pytest.raises(InvalidTransitionError, match="already paid"):
        ensure_payment_transition("paid", "paid")
