"""
User administration: listing, blocking and role assignment.
"""

from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.core.permissions import Role
from app.db.base import utcnow
from app.models.user import User

logger = get_logger(__name__)

# Superadmin is provisioned out of band, never granted through the API
ASSIGNABLE_ROLES = frozenset({Role.USER, Role.ADMIN})


async def list_users(db: AsyncSession, role: Optional[Role] = None) -> List[User]:
    query = select(User)
    if role is not None:
        query = query.where(User.role == Role(role).value)
    result = await db.execute(query.order_by(User.created_at.desc(), User.id.desc()))
    return list(result.scalars().all())


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def set_blocked(db: AsyncSession, actor: User, user_id: int, blocked: bool) -> User:
    user = await _get_user_or_404(db, user_id)
    if user.id == actor.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot block yourself")
    if user.role == Role.SUPERADMIN.value and actor.role != Role.SUPERADMIN.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot block a superadmin")

    user.is_blocked = blocked
    user.blocked_at = utcnow() if blocked else None
    await db.flush()
    await db.refresh(user)
    logger.info("user_block_changed", user_id=user.id, blocked=blocked, admin_id=actor.id)
    return user


async def set_role(db: AsyncSession, actor: User, user_id: int, role: Role) -> User:
    role = Role(role)
    if role not in ASSIGNABLE_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Valid role is required (user or admin)",
        )
    user = await _get_user_or_404(db, user_id)
    if user.id == actor.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot change your own role")
    if user.role == Role.SUPERADMIN.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot change a superadmin's role")

    previous = user.role
    user.role = role.value
    await db.flush()
    await db.refresh(user)
    logger.info("user_role_changed", user_id=user.id, from_role=previous, to_role=role.value, admin_id=actor.id)
    return user
