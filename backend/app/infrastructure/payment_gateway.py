"""
Payment gateway integration.

`StripeGateway` wraps Stripe Checkout. The stripe SDK is synchronous, so its
calls run in the threadpool to keep the event loop free.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from app.core.config import Settings
from app.core.logging import get_logger

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class PaymentGatewayError(Exception):
    """The gateway rejected a call or could not be reached."""


class WebhookVerificationError(PaymentGatewayError):
    """Webhook payload or signature is invalid."""


@dataclass
class CheckoutRequest:
    booking_id: int
    user_id: int
    amount: Decimal
    currency: str
    product_name: str
    description: str
    success_url: str
    cancel_url: str


@dataclass
class CheckoutSession:
    id: str
    url: Optional[str]
    paid: bool = False
    payment_intent: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def booking_id(self) -> Optional[int]:
        raw = self.metadata.get("bookingId")
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            return None


@dataclass
class GatewayEvent:
    type: str
    session: Optional[CheckoutSession] = None


class PaymentGateway(ABC):
    name: str = "gateway"

    @abstractmethod
    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        ...

    @abstractmethod
    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        ...

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        ...


def _session_from_stripe(obj) -> CheckoutSession:
    metadata = obj.get("metadata") or {}
    payment_intent = obj.get("payment_intent")
    if payment_intent is not None and not isinstance(payment_intent, str):
        payment_intent = payment_intent.get("id")
    return CheckoutSession(
        id=obj.get("id"),
        url=obj.get("url"),
        paid=obj.get("payment_status") == "paid" or obj.get("status") == "complete",
        payment_intent=payment_intent,
        metadata={str(k): str(v) for k, v in dict(metadata).items()},
    )


class StripeGateway(PaymentGateway):
    name = "stripe"

    def __init__(self, settings: Settings):
        self.api_key = settings.STRIPE_SECRET_KEY
        self.webhook_secret = settings.STRIPE_WEBHOOK_SECRET

    def _require_key(self) -> str:
        if not self.api_key:
            raise PaymentGatewayError("STRIPE_SECRET_KEY is not set")
        return self.api_key

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        api_key = self._require_key()
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create,
                api_key=api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "quantity": 1,
                        "price_data": {
                            "currency": request.currency,
                            # Stripe amounts are in the smallest currency unit
                            "unit_amount": int((request.amount * 100).to_integral_value()),
                            "product_data": {
                                "name": request.product_name,
                                "description": request.description,
                            },
                        },
                    }
                ],
                success_url=request.success_url,
                cancel_url=request.cancel_url,
                metadata={
                    "bookingId": str(request.booking_id),
                    "userId": str(request.user_id),
                },
            )
        except stripe.StripeError as e:
            logger.error("stripe_checkout_failed", booking_id=request.booking_id, error=str(e))
            raise PaymentGatewayError(str(e)) from e
        return _session_from_stripe(session)

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        api_key = self._require_key()
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.retrieve, session_id, api_key=api_key
            )
        except stripe.StripeError as e:
            logger.error("stripe_session_retrieve_failed", session_id=session_id, error=str(e))
            raise PaymentGatewayError(str(e)) from e
        return _session_from_stripe(session)

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        if not self.webhook_secret:
            raise WebhookVerificationError("STRIPE_WEBHOOK_SECRET is not set")
        try:
            event = stripe.Webhook.construct_event(payload, signature or "", self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise WebhookVerificationError(str(e)) from e

        session = None
        if event["type"] == CHECKOUT_COMPLETED:
            session = _session_from_stripe(event["data"]["object"])
        return GatewayEvent(type=event["type"], session=session)
