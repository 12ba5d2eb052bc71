"""
Notification inbox endpoints for the signed-in user.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.common import ApiResponse
from app.schemas.notification import MarkAllReadResult, NotificationPage, NotificationResponse
from app.services import notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=ApiResponse[NotificationPage])
async def list_notifications(
    last_id: Optional[int] = Query(None, alias="lastId"),
    limit: int = Query(notification_service.DEFAULT_PAGE_SIZE, ge=1, le=notification_service.MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items, has_more = await notification_service.list_notifications(db, user.id, last_id, limit)
    unread = await notification_service.count_unread(db, user.id)
    return ApiResponse(data=NotificationPage(
        items=[NotificationResponse.model_validate(n) for n in items],
        has_more=has_more,
        unread=unread,
    ))


@router.patch("/read-all", response_model=ApiResponse[MarkAllReadResult])
async def mark_all_read(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    updated = await notification_service.mark_all_read(db, user.id)
    return ApiResponse(data=MarkAllReadResult(updated=updated))


@router.patch("/{notification_id}/read", response_model=ApiResponse[NotificationResponse])
async def mark_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await notification_service.mark_read(db, user.id, notification_id)
    return ApiResponse(data=NotificationResponse.model_validate(notification))
