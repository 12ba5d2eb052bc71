"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, computed_field, model_validator

from app.models.enums import BookingStatus, PaymentStatus
from app.schemas.room import RoomSummary
from app.schemas.user import UserSummary
from app.services.email_service import booking_reference


class BookingCreate(BaseModel):
    room_id: int
    check_in_date: date
    check_out_date: date
    number_of_guests: int = Field(..., ge=1)
    guest_name: Optional[str] = Field(None, max_length=200)
    contact_number: Optional[str] = Field(None, max_length=30)
    special_requests: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_dates(self) -> "BookingCreate":
        if self.check_out_date <= self.check_in_date:
            raise ValueError("Check-out date must be after check-in date")
        return self


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    admin_notes: Optional[str] = Field(None, max_length=1000)


class DeskOperationRequest(BaseModel):
    additional_charges: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    notes: Optional[str] = Field(None, max_length=1000)


class CancellationRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class CancellationDecline(BaseModel):
    admin_notes: Optional[str] = Field(None, max_length=1000)


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class BookingResponse(BaseModel):
    id: int
    user_id: int
    room_id: int
    check_in_date: date
    check_out_date: date
    number_of_guests: int
    total_amount: float
    status: str
    payment_status: str
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    payment_transaction_id: Optional[str] = None
    guest_name: Optional[str] = None
    contact_number: Optional[str] = None
    special_requests: Optional[str] = None
    admin_notes: Optional[str] = None
    cancellation_requested: bool
    cancellation_reason: Optional[str] = None
    actual_check_in_time: Optional[datetime] = None
    actual_check_out_time: Optional[datetime] = None
    late_check_in_fee: float = 0
    late_check_out_fee: float = 0
    additional_charges: float = 0
    checkout_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    room: Optional[RoomSummary] = None
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def reference(self) -> str:
        return booking_reference(self.id)


class ChargesResponse(BaseModel):
    base_amount: float
    late_check_in_fee: float
    late_check_out_fee: float
    extended_stay_charge: float
    additional_charges: float
    total_charges: float
    amount_paid: float
    balance_due: float

    model_config = {"from_attributes": True}


class DeskOperationResponse(BaseModel):
    booking: BookingResponse
    charges: ChargesResponse


def booking_out(booking, room=None, user=None) -> BookingResponse:
    """Booking response with its room and owner attached when loaded."""
    response = BookingResponse.model_validate(booking)
    if room is not None:
        response.room = RoomSummary.model_validate(room)
    if user is not None:
        response.user = UserSummary.model_validate(user)
    return response
