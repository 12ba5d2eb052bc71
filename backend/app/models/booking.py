"""
Booking model representing a guest's stay in a room.

Key design decisions:
- Status and payment status are separate state machines; both are plain
  strings guarded by CHECK constraints
- Bookings are never deleted; cancellation is a status
- `contact_number` is encrypted at rest
- Composite index on (room_id, status, check_in_date) serves the overlap query
"""

from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text,
)

from app.core.encryption import EncryptedString
from app.db.base import Base, TimestampMixin
from app.models.enums import BookingStatus, PaymentStatus, sql_in


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    number_of_guests = Column(Integer, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)

    guest_name = Column(String(200), nullable=True)
    contact_number = Column(EncryptedString, nullable=True)
    special_requests = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)

    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(50), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    payment_transaction_id = Column(String(255), nullable=True, index=True)

    cancellation_requested = Column(Boolean, nullable=False, default=False)
    cancellation_reason = Column(Text, nullable=True)

    # Front desk tracking
    actual_check_in_time = Column(DateTime(timezone=True), nullable=True)
    actual_check_out_time = Column(DateTime(timezone=True), nullable=True)
    checked_in_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    checked_out_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    late_check_in_fee = Column(Numeric(10, 2), nullable=False, default=0)
    late_check_out_fee = Column(Numeric(10, 2), nullable=False, default=0)
    additional_charges = Column(Numeric(10, 2), nullable=False, default=0)
    checkout_notes = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("check_out_date > check_in_date", name="check_booking_dates_ordered"),
        CheckConstraint("number_of_guests > 0", name="check_booking_guests_positive"),
        CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        CheckConstraint(f"status IN ({sql_in(BookingStatus)})", name="check_booking_status"),
        CheckConstraint(f"payment_status IN ({sql_in(PaymentStatus)})", name="check_booking_payment_status"),
        Index("ix_bookings_room_status_dates", "room_id", "status", "check_in_date", "check_out_date"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, room={self.room_id}, user={self.user_id}, status={self.status})>"
