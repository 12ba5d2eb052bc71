"""
Room inventory, availability search, housekeeping and guest review endpoints.

Availability snapshots are cached in Redis per date range; every write that
can change availability bumps the cache generation.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_permission
from app.core.permissions import Action, Resource
from app.db.session import get_db
from app.models.user import User
from app.schemas.common import ApiResponse
from app.schemas.review import ReviewCreate, ReviewPage, ReviewResponse, review_out
from app.schemas.room import HousekeepingUpdate, RoomCreate, RoomResponse, RoomUpdate
from app.services import availability_service, review_service, room_service
from app.services.booking_service import get_room_or_404
from app.services.cache_service import cached_availability, invalidate_availability_cache

router = APIRouter(prefix="/rooms", tags=["Rooms"])


@router.get("/", response_model=ApiResponse[List[RoomResponse]])
async def list_rooms(db: AsyncSession = Depends(get_db)):
    """Bookable rooms, ordered by room number."""
    rooms = await room_service.list_rooms(db)
    return ApiResponse(data=[RoomResponse.model_validate(r) for r in rooms])


@router.get("/admin/all", response_model=ApiResponse[List[RoomResponse]])
async def list_all_rooms(
    _: User = Depends(require_permission(Action.READ_ANY, Resource.ROOM)),
    db: AsyncSession = Depends(get_db),
):
    rooms = await room_service.list_rooms(db, include_unavailable=True)
    return ApiResponse(data=[RoomResponse.model_validate(r) for r in rooms])


@router.get("/availability", response_model=ApiResponse[list])
async def room_availability(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    date_: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
):
    """
    Availability of every bookable room from start_date to end_date.
    A single `date` checks that one night.
    """
    start, end = availability_service.resolve_range(start_date, end_date, date_)
    data = await cached_availability(
        start, end, lambda: availability_service.list_availability(db, start, end)
    )
    return ApiResponse(data=data)


@router.get("/calendar", response_model=ApiResponse[list])
async def availability_calendar(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse(data=await availability_service.month_calendar(db, year, month))


@router.get("/{room_id}", response_model=ApiResponse[RoomResponse])
async def get_room(room_id: int, db: AsyncSession = Depends(get_db)):
    room = await get_room_or_404(db, room_id)
    return ApiResponse(data=RoomResponse.model_validate(room))


@router.post("/", response_model=ApiResponse[RoomResponse], status_code=status.HTTP_201_CREATED)
async def create_room(
    data: RoomCreate,
    _: User = Depends(require_permission(Action.CREATE_ANY, Resource.ROOM)),
    db: AsyncSession = Depends(get_db),
):
    room = await room_service.create_room(db, data)
    await invalidate_availability_cache()
    return ApiResponse(message="Room created", data=RoomResponse.model_validate(room))


@router.put("/{room_id}", response_model=ApiResponse[RoomResponse])
async def update_room(
    room_id: int,
    data: RoomUpdate,
    _: User = Depends(require_permission(Action.UPDATE_ANY, Resource.ROOM)),
    db: AsyncSession = Depends(get_db),
):
    room = await room_service.update_room(db, room_id, data)
    await invalidate_availability_cache()
    return ApiResponse(message="Room updated", data=RoomResponse.model_validate(room))


@router.delete("/{room_id}", response_model=ApiResponse[None])
async def delete_room(
    room_id: int,
    _: User = Depends(require_permission(Action.DELETE_ANY, Resource.ROOM)),
    db: AsyncSession = Depends(get_db),
):
    await room_service.delete_room(db, room_id)
    await invalidate_availability_cache()
    return ApiResponse(message="Room deleted")


@router.patch("/{room_id}/housekeeping", response_model=ApiResponse[RoomResponse])
async def update_housekeeping(
    room_id: int,
    data: HousekeepingUpdate,
    _: User = Depends(require_permission(Action.UPDATE_ANY, Resource.HOUSEKEEPING)),
    db: AsyncSession = Depends(get_db),
):
    room = await room_service.update_housekeeping(db, room_id, data.housekeeping_status)
    return ApiResponse(message="Housekeeping status updated", data=RoomResponse.model_validate(room))


@router.get("/{room_id}/reviews", response_model=ApiResponse[ReviewPage])
async def list_room_reviews(room_id: int, db: AsyncSession = Depends(get_db)):
    """Newest reviews first, with the average rating."""
    rows, average_rating, count = await review_service.list_reviews(db, room_id)
    return ApiResponse(data=ReviewPage(
        items=[review_out(review, author) for review, author in rows],
        average_rating=average_rating,
        count=count,
    ))


@router.post("/{room_id}/reviews", response_model=ApiResponse[ReviewResponse], status_code=status.HTTP_201_CREATED)
async def submit_room_review(
    room_id: int,
    data: ReviewCreate,
    user: User = Depends(require_permission(Action.CREATE_OWN, Resource.REVIEW)),
    db: AsyncSession = Depends(get_db),
):
    """
    Rate a room after a completed stay. Posting again replaces the earlier
    review; guests without a checked-out booking in the room get a 403.
    """
    review = await review_service.submit_review(db, user, room_id, data)
    return ApiResponse(message="Review submitted", data=review_out(review, user))
