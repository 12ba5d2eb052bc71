"""
Pydantic schemas for gateway checkout and confirmation.
"""

from typing import Optional

from pydantic import BaseModel


class CheckoutSessionCreate(BaseModel):
    booking_id: int


class CheckoutSessionResponse(BaseModel):
    id: str
    url: Optional[str]


class PaymentConfirmation(BaseModel):
    booking_id: int
    payment_status: str
    outcome: str
