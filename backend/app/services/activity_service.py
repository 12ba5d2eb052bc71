"""
Activity log writer.

Routes record an entry after the service call has committed. Like the
notification dispatcher, the recorder opens its own session and swallows
its failures: a lost audit row is logged and counted, and the request that
caused it still succeeds.
"""

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.core.metrics import record_side_effect_failure
from app.models.activity_log import ActivityLog
from app.models.enums import ActivityStatus
from app.models.user import User

logger = get_logger(__name__)

USER_AGENT_MAX_LENGTH = 500


@dataclass(frozen=True)
class Actor:
    id: Optional[int]
    email: Optional[str]
    role: Optional[str]

    @classmethod
    def from_user(cls, user: Optional[User]) -> "Actor":
        if user is None:
            return cls(id=None, email=None, role=None)
        return cls(id=user.id, email=user.email, role=user.role)


def client_ip(request: Optional[Request]) -> Optional[str]:
    """First hop of X-Forwarded-For, else the socket peer."""
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


class ActivityRecorder:
    """Best-effort audit trail writer."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    async def record(
        self,
        actor: Actor,
        action: str,
        resource: str,
        resource_id: Any = None,
        details: Optional[Mapping[str, Any]] = None,
        request: Optional[Request] = None,
        status: ActivityStatus = ActivityStatus.SUCCESS,
    ) -> None:
        user_agent = request.headers.get("user-agent") if request is not None else None
        try:
            async with self._session_factory() as session:
                session.add(ActivityLog(
                    actor_id=actor.id,
                    actor_email=actor.email,
                    actor_role=actor.role,
                    action=action,
                    resource=resource,
                    resource_id=str(resource_id) if resource_id is not None else None,
                    details=jsonable_encoder(details) if details else None,
                    ip=client_ip(request),
                    user_agent=user_agent[:USER_AGENT_MAX_LENGTH] if user_agent else None,
                    status=ActivityStatus(status).value,
                ))
                await session.commit()
        except Exception:
            record_side_effect_failure("activity_log")
            logger.warning("activity_log_failed", action=action, resource=resource, exc_info=True)
