"""
Authentication service: e-mail verified signup, login and password reset.

Signup is two-step. `start_registration` parks the hashed credentials in the
TTL store under the e-mail address and mails a 6-digit code; the account
only exists once `verify_email` sees the right code before it expires.
"""

import secrets
from typing import Tuple

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.permissions import Role
from app.core.security import create_access_token, hash_password, verify_password
from app.infrastructure.email_sender import EmailSender
from app.infrastructure.ttl_store import TTLStore
from app.models.enums import AuthProvider
from app.models.user import User
from app.schemas.user import PasswordReset, UserCreate, UserLogin, VerifyEmail
from app.services import email_service

logger = get_logger(__name__)
settings = get_settings()

SIGNUP_PREFIX = "signup:"
RESET_PREFIX = "reset:"


def generate_code() -> str:
    return str(100000 + secrets.randbelow(900000))


def _normalize(email: str) -> str:
    return email.strip().lower()


async def _get_user_by_email(db: AsyncSession, email: str) -> User:
    result = await db.execute(select(User).where(User.email == _normalize(email)))
    return result.scalar_one_or_none()


async def _ensure_unique(db: AsyncSession, email: str, username: str) -> None:
    if await _get_user_by_email(db, email):
        logger.warning("registration_failed", reason="email_exists", email=email)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    result = await db.execute(select(User).where(User.username == username))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="username_exists", username=username)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")


async def _send_code(email_sender: EmailSender, to: str, subject: str, code: str, purpose: str) -> None:
    body = email_service.verification_code_email(code, purpose, settings.VERIFICATION_CODE_TTL // 60)
    try:
        await email_sender.send(to, subject, email_service.render_app_email(subject, body))
    except Exception:
        logger.error("verification_email_failed", to=to, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send verification email",
        )


async def start_registration(
    db: AsyncSession,
    code_store: TTLStore,
    email_sender: EmailSender,
    user_data: UserCreate,
) -> str:
    """Park the signup and e-mail a verification code. Returns the e-mail."""
    email = _normalize(user_data.email)
    await _ensure_unique(db, email, user_data.username)

    code = generate_code()
    await code_store.set(
        SIGNUP_PREFIX + email,
        {
            "code": code,
            "email": email,
            "username": user_data.username,
            "hashed_password": hash_password(user_data.password),
            "first_name": user_data.first_name,
            "last_name": user_data.last_name,
            "phone_number": user_data.phone_number,
            "address": user_data.address,
        },
        settings.VERIFICATION_CODE_TTL,
    )
    await _send_code(email_sender, email, "Verify your email", code, "complete your signup")
    logger.info("registration_started", email=email)
    return email


async def verify_email(db: AsyncSession, code_store: TTLStore, data: VerifyEmail) -> User:
    email = _normalize(data.email)
    pending = await code_store.get(SIGNUP_PREFIX + email)
    if not pending:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No pending verification found for this email",
        )
    if not secrets.compare_digest(pending["code"], data.code):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid verification code")

    # Someone may have registered the same address while the code was pending
    await _ensure_unique(db, email, pending["username"])

    user = User(
        email=email,
        username=pending["username"],
        hashed_password=pending["hashed_password"],
        auth_provider=AuthProvider.LOCAL.value,
        first_name=pending["first_name"],
        last_name=pending["last_name"],
        phone_number=pending.get("phone_number"),
        address=pending.get("address"),
        role=Role.USER.value,
        is_email_verified=True,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    await code_store.delete(SIGNUP_PREFIX + email)

    logger.info("user_registered", user_id=user.id, email=user.email)
    return user


def issue_token(user: User) -> str:
    return create_access_token(data={"sub": str(user.id), "email": user.email, "role": user.role})


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> Tuple[str, User]:
    """
    Authenticate user and return (JWT access token, user).
    Raises 401 if credentials are invalid, 403 if the account is blocked.
    """
    user = await _get_user_by_email(db, login_data.email)

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.is_blocked:
        logger.warning("login_blocked", user_id=user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is blocked")

    logger.info("user_logged_in", user_id=user.id)
    return issue_token(user), user


async def forgot_password(
    db: AsyncSession,
    code_store: TTLStore,
    email_sender: EmailSender,
    email: str,
) -> None:
    """Mail a reset code. Silent for unknown addresses."""
    email = _normalize(email)
    user = await _get_user_by_email(db, email)
    if not user or not user.hashed_password:
        logger.info("password_reset_skipped", email=email)
        return

    code = generate_code()
    await code_store.set(RESET_PREFIX + email, {"code": code}, settings.VERIFICATION_CODE_TTL)
    await _send_code(email_sender, email, "Reset your password", code, "reset your password")
    logger.info("password_reset_requested", user_id=user.id)


async def reset_password(db: AsyncSession, code_store: TTLStore, data: PasswordReset) -> None:
    email = _normalize(data.email)
    pending = await code_store.get(RESET_PREFIX + email)
    if not pending or not secrets.compare_digest(pending["code"], data.code):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset code")

    user = await _get_user_by_email(db, email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    user.hashed_password = hash_password(data.new_password)
    await db.flush()
    await code_store.delete(RESET_PREFIX + email)
    logger.info("password_reset", user_id=user.id)
