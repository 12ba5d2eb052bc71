"""
Authentication endpoints: e-mail verified signup, login and password reset.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_code_store, get_current_user, get_email_sender
from app.core.config import get_settings
from app.db.session import get_db
from app.infrastructure.email_sender import EmailSender
from app.infrastructure.ttl_store import TTLStore
from app.models.user import User
from app.schemas.common import ApiResponse
from app.schemas.user import (
    ForgotPassword,
    PasswordReset,
    RegistrationStarted,
    Token,
    UserCreate,
    UserLogin,
    UserResponse,
    VerifyEmail,
)
from app.services import auth_service

settings = get_settings()
router = APIRouter(prefix="/auth", tags=["Authentication"])


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite="lax",
    )


@router.post(
    "/register",
    response_model=ApiResponse[RegistrationStarted],
    status_code=status.HTTP_202_ACCEPTED,
)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
    code_store: TTLStore = Depends(get_code_store),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """Start signup. The account is created once the e-mailed code is verified."""
    email = await auth_service.start_registration(db, code_store, email_sender, user_data)
    return ApiResponse(message="Verification code sent", data=RegistrationStarted(email=email))


@router.post("/verify-email", response_model=ApiResponse[Token], status_code=status.HTTP_201_CREATED)
async def verify_email(
    data: VerifyEmail,
    response: Response,
    db: AsyncSession = Depends(get_db),
    code_store: TTLStore = Depends(get_code_store),
):
    user = await auth_service.verify_email(db, code_store, data)
    token = auth_service.issue_token(user)
    _set_auth_cookie(response, token)
    return ApiResponse(
        message="Email verified",
        data=Token(access_token=token, user=UserResponse.model_validate(user)),
    )


@router.post("/login", response_model=ApiResponse[Token])
async def login(login_data: UserLogin, response: Response, db: AsyncSession = Depends(get_db)):
    """Authenticate; the token is set as an httpOnly cookie and returned in the body."""
    token, user = await auth_service.authenticate_user(db, login_data)
    _set_auth_cookie(response, token)
    return ApiResponse(
        message="Logged in",
        data=Token(access_token=token, user=UserResponse.model_validate(user)),
    )


@router.post("/logout", response_model=ApiResponse[None])
async def logout(response: Response):
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return ApiResponse(message="Logged out")


@router.get("/me", response_model=ApiResponse[UserResponse])
async def me(user: User = Depends(get_current_user)):
    return ApiResponse(data=UserResponse.model_validate(user))


@router.post("/forgot-password", response_model=ApiResponse[None])
async def forgot_password(
    data: ForgotPassword,
    db: AsyncSession = Depends(get_db),
    code_store: TTLStore = Depends(get_code_store),
    email_sender: EmailSender = Depends(get_email_sender),
):
    await auth_service.forgot_password(db, code_store, email_sender, data.email)
    return ApiResponse(message="If the account exists, a reset code has been sent")


@router.post("/reset-password", response_model=ApiResponse[None])
async def reset_password(
    data: PasswordReset,
    db: AsyncSession = Depends(get_db),
    code_store: TTLStore = Depends(get_code_store),
):
    await auth_service.reset_password(db, code_store, data)
    return ApiResponse(message="Password has been reset")
