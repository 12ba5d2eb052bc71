"""
Shared route dependencies: authentication, role checks and the
side-effect adapters created at startup.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.permissions import Action, Resource, has_permission, is_admin
from app.core.security import decode_access_token
from app.db.session import get_db
from app.infrastructure.email_sender import EmailSender
from app.infrastructure.payment_gateway import PaymentGateway
from app.infrastructure.ttl_store import TTLStore
from app.models.user import User
from app.services.activity_service import ActivityRecorder
from app.services.notification_service import NotificationDispatcher

logger = get_logger(__name__)
settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the caller from the auth cookie, falling back to a Bearer header.
    The user is re-read on every request so blocks and role changes apply
    immediately.
    """
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token and credentials is not None:
        token = credentials.credentials
    if not token:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(token)
    if payload is None or payload.get("sub") is None:
        raise _unauthorized("Invalid or expired token")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise _unauthorized("Invalid or expired token")

    user = await db.get(User, user_id)
    if user is None:
        raise _unauthorized("User not found")
    if user.is_blocked:
        logger.warning("blocked_user_request", user_id=user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is blocked")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not is_admin(user.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def require_permission(action: Action, resource: Resource):
    """Dependency factory gating a route on one capability grant."""

    async def checker(user: User = Depends(get_current_user)) -> User:
        if not has_permission(user.role, action, resource):
            logger.warning(
                "permission_denied",
                user_id=user.id,
                role=user.role,
                action=action.value,
                resource=resource.value,
            )
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return checker


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_activity_recorder(request: Request) -> ActivityRecorder:
    return request.app.state.activity


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_code_store(request: Request) -> TTLStore:
    return request.app.state.code_store
