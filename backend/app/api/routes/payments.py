"""
Gateway payment endpoints: hosted checkout, client confirmation and the
signed webhook.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_dispatcher, get_payment_gateway
from app.db.session import get_db
from app.infrastructure.payment_gateway import PaymentGateway
from app.models.user import User
from app.schemas.common import ApiResponse
from app.schemas.payment import CheckoutSessionCreate, CheckoutSessionResponse, PaymentConfirmation
from app.services import payment_service
from app.services.notification_service import NotificationDispatcher

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/create-checkout-session", response_model=ApiResponse[CheckoutSessionResponse])
async def create_checkout_session(
    data: CheckoutSessionCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    session = await payment_service.create_checkout_session(db, gateway, data.booking_id, user)
    return ApiResponse(data=CheckoutSessionResponse(id=session.id, url=session.url))


@router.get("/confirm", response_model=ApiResponse[PaymentConfirmation])
async def confirm_payment(
    session_id: str,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Called by the client after the gateway redirects back with a session id."""
    booking, outcome = await payment_service.confirm_session(db, gateway, dispatcher, session_id)
    return ApiResponse(
        message="Payment confirmed",
        data=PaymentConfirmation(
            booking_id=booking.id,
            payment_status=booking.payment_status,
            outcome=outcome,
        ),
    )


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    # Signature is computed over the exact bytes sent
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    outcome = await payment_service.handle_webhook(db, gateway, dispatcher, payload, signature)
    return {"received": True, "outcome": outcome}
