"""
Pytest fixtures for test database, client, adapters and authentication.

Runs against SQLite through aiosqlite by default (override with
TEST_DATABASE_URL). Tables are created and dropped around every test for
isolation. Redis is disabled, so the availability cache is a no-op and
verification codes live in a MemoryTTLStore.
"""

import json
import os
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_hotel_booking.db")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.core.permissions import Role
from app.core.security import create_access_token, hash_password
from app.infrastructure.email_sender import EmailSender
from app.infrastructure.payment_gateway import (
    CheckoutRequest,
    CheckoutSession,
    GatewayEvent,
    PaymentGateway,
    PaymentGatewayError,
    WebhookVerificationError,
)
from app.infrastructure.ttl_store import MemoryTTLStore
from app.models.booking import Booking
from app.models.enums import BookingStatus, HousekeepingStatus, PaymentStatus
from app.models.room import Room
from app.models.user import User
from app.services.activity_service import ActivityRecorder
from app.services.notification_service import NotificationDispatcher

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_hotel_booking.db")

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

VALID_SIGNATURE = "t=1,v1=valid"


class RecordingEmailSender(EmailSender):
    """Keeps sent mail in memory instead of talking to SMTP."""

    def __init__(self):
        self.sent: List[Dict[str, str]] = []
        self.fail = False

    async def send(self, to: str, subject: str, html: str) -> None:
        if self.fail:
            raise ConnectionError("smtp down")
        self.sent.append({"to": to, "subject": subject, "html": html})

    def to(self, address: str) -> List[Dict[str, str]]:
        return [m for m in self.sent if m["to"] == address]


class FakeGateway(PaymentGateway):
    """
    In-memory checkout sessions. Webhooks are JSON bodies of the form
    {"type": ..., "session_id": ...} and only VALID_SIGNATURE verifies.
    """
    name = "fake"

    def __init__(self):
        self.sessions: Dict[str, CheckoutSession] = {}
        self.requests: List[CheckoutRequest] = []
        self.fail = False

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        if self.fail:
            raise PaymentGatewayError("gateway unreachable")
        self.requests.append(request)
        session_id = f"cs_test_{len(self.sessions) + 1}"
        session = CheckoutSession(
            id=session_id,
            url=f"https://checkout.test/{session_id}",
            metadata={"bookingId": str(request.booking_id), "userId": str(request.user_id)},
        )
        self.sessions[session_id] = session
        return session

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        if session_id not in self.sessions:
            raise PaymentGatewayError(f"No such checkout session: {session_id}")
        return self.sessions[session_id]

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        if signature != VALID_SIGNATURE:
            raise WebhookVerificationError("No signatures found matching the expected signature")
        body = json.loads(payload)
        return GatewayEvent(type=body["type"], session=self.sessions.get(body.get("session_id")))

    def complete(self, session_id: str, payment_intent: str = "pi_test_1") -> CheckoutSession:
        session = self.sessions[session_id]
        session.paid = True
        session.payment_intent = payment_intent
        return session


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def code_store() -> MemoryTTLStore:
    return MemoryTTLStore()


@pytest.fixture
def dispatcher(email_sender: RecordingEmailSender) -> NotificationDispatcher:
    return NotificationDispatcher(TestSessionLocal, email_sender)


@pytest.fixture
def activity() -> ActivityRecorder:
    return ActivityRecorder(TestSessionLocal)


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    dispatcher: NotificationDispatcher,
    activity: ActivityRecorder,
    email_sender: RecordingEmailSender,
    gateway: FakeGateway,
    code_store: MemoryTTLStore,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test session and in-memory adapters."""

    async def override_get_db():
        yield db_session
        await db_session.commit()

    app.dependency_overrides[get_db] = override_get_db
    app.state.dispatcher = dispatcher
    app.state.activity = activity
    app.state.email_sender = email_sender
    app.state.payment_gateway = gateway
    app.state.code_store = code_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(
    db: AsyncSession,
    email: str,
    username: str,
    role: Role = Role.USER,
    password: str = "testpassword123",
) -> User:
    user = User(
        email=email,
        username=username,
        hashed_password=hash_password(password),
        first_name=username.capitalize(),
        last_name="Tester",
        role=role.value,
        is_email_verified=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "guest@example.com", "guest")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "other@example.com", "other")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin@example.com", "admin", Role.ADMIN)


@pytest_asyncio.fixture
async def superadmin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "root@example.com", "root", Role.SUPERADMIN)


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    return headers_for(test_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return headers_for(other_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest_asyncio.fixture
async def superadmin_headers(superadmin_user: User) -> dict:
    return headers_for(superadmin_user)


async def make_room(db: AsyncSession, room_number: str = "101", price: str = "100", capacity: int = 2, **kwargs) -> Room:
    room = Room(
        room_number=room_number,
        room_type=kwargs.pop("room_type", "Standard"),
        price=Decimal(price),
        capacity=capacity,
        amenities=kwargs.pop("amenities", ["wifi"]),
        description=kwargs.pop("description", "Test room"),
        images=[],
        is_available=kwargs.pop("is_available", True),
        housekeeping_status=kwargs.pop("housekeeping_status", HousekeepingStatus.CLEAN.value),
    )
    db.add(room)
    await db.commit()
    await db.refresh(room)
    return room


@pytest_asyncio.fixture
async def test_room(db_session: AsyncSession) -> Room:
    """Standard room 101: 100 per night, sleeps two."""
    return await make_room(db_session)


async def make_booking(
    db: AsyncSession,
    user: User,
    room: Room,
    check_in: date,
    check_out: date,
    status: BookingStatus = BookingStatus.PENDING,
    payment_status: PaymentStatus = PaymentStatus.PENDING,
    guests: int = 1,
    total: Optional[str] = None,
) -> Booking:
    nights = (check_out - check_in).days
    booking = Booking(
        user_id=user.id,
        room_id=room.id,
        check_in_date=check_in,
        check_out_date=check_out,
        number_of_guests=guests,
        total_amount=Decimal(total) if total is not None else Decimal(room.price) * nights,
        status=status.value,
        payment_status=payment_status.value,
        guest_name=user.display_name,
        cancellation_requested=False,
    )
    db.add(booking)
    await db.commit()
    await db.refresh(booking)
    return booking
