"""
User administration endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_permission
from app.core.permissions import Action, Resource, Role
from app.db.session import get_db
from app.models.user import User
from app.schemas.common import ApiResponse
from app.schemas.user import UserBlockUpdate, UserResponse, UserRoleUpdate
from app.services import user_service

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/", response_model=ApiResponse[List[UserResponse]])
async def list_users(
    role: Optional[Role] = Query(None),
    _: User = Depends(require_permission(Action.READ_ANY, Resource.USER)),
    db: AsyncSession = Depends(get_db),
):
    users = await user_service.list_users(db, role)
    return ApiResponse(data=[UserResponse.model_validate(u) for u in users])


@router.patch("/{user_id}/block", response_model=ApiResponse[UserResponse])
async def set_blocked(
    user_id: int,
    data: UserBlockUpdate,
    admin: User = Depends(require_permission(Action.UPDATE_ANY, Resource.USER)),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.set_blocked(db, admin, user_id, data.blocked)
    message = "User blocked" if data.blocked else "User unblocked"
    return ApiResponse(message=message, data=UserResponse.model_validate(user))


@router.patch("/{user_id}/role", response_model=ApiResponse[UserResponse])
async def set_role(
    user_id: int,
    data: UserRoleUpdate,
    superadmin: User = Depends(require_permission(Action.UPDATE_ANY, Resource.ROLE)),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.set_role(db, superadmin, user_id, data.role)
    return ApiResponse(message="Role updated", data=UserResponse.model_validate(user))
