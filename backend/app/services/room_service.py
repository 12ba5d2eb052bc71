"""
Room inventory and housekeeping administration.
"""

from typing import List

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.models.booking import Booking
from app.models.enums import ACTIVE_BOOKING_STATUSES, HousekeepingStatus
from app.models.room import Room
from app.schemas.room import RoomCreate, RoomUpdate
from app.services.booking_service import get_room_or_404

logger = get_logger(__name__)


async def list_rooms(db: AsyncSession, include_unavailable: bool = False) -> List[Room]:
    query = select(Room)
    if not include_unavailable:
        query = query.where(Room.is_available.is_(True))
    result = await db.execute(query.order_by(Room.room_number))
    return list(result.scalars().all())


async def _ensure_number_free(db: AsyncSession, room_number: str) -> None:
    result = await db.execute(select(Room.id).where(Room.room_number == room_number))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Room number already exists")


async def create_room(db: AsyncSession, data: RoomCreate) -> Room:
    await _ensure_number_free(db, data.room_number)
    room = Room(
        room_number=data.room_number,
        room_type=data.room_type.value,
        price=data.price,
        capacity=data.capacity,
        amenities=list(data.amenities),
        description=data.description or "",
        images=list(data.images),
        is_available=True,
        housekeeping_status=HousekeepingStatus.CLEAN.value,
    )
    db.add(room)
    await db.flush()
    await db.refresh(room)
    await db.commit()
    logger.info("room_created", room_id=room.id, room_number=room.room_number)
    return room


async def update_room(db: AsyncSession, room_id: int, data: RoomUpdate) -> Room:
    room = await get_room_or_404(db, room_id)
    changes = data.model_dump(exclude_unset=True)

    if "room_number" in changes and changes["room_number"] != room.room_number:
        await _ensure_number_free(db, changes["room_number"])
    if "room_type" in changes and changes["room_type"] is not None:
        changes["room_type"] = changes["room_type"].value

    for field, value in changes.items():
        if value is not None:
            setattr(room, field, value)
    await db.flush()
    await db.refresh(room)
    await db.commit()
    logger.info("room_updated", room_id=room.id, fields=sorted(changes))
    return room


async def delete_room(db: AsyncSession, room_id: int) -> None:
    room = await get_room_or_404(db, room_id)

    active = await db.execute(
        select(func.count(Booking.id)).where(
            Booking.room_id == room_id, Booking.status.in_(ACTIVE_BOOKING_STATUSES)
        )
    )
    if active.scalar_one() > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete room with active bookings. Please cancel bookings first.",
        )

    history = await db.execute(select(func.count(Booking.id)).where(Booking.room_id == room_id))
    if history.scalar_one() > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Room has booking history. Mark it unavailable instead of deleting it.",
        )

    await db.delete(room)
    await db.commit()
    logger.info("room_deleted", room_id=room_id)


async def update_housekeeping(db: AsyncSession, room_id: int, housekeeping_status: HousekeepingStatus) -> Room:
    room = await get_room_or_404(db, room_id)
    previous = room.housekeeping_status
    room.housekeeping_status = HousekeepingStatus(housekeeping_status).value
    await db.flush()
    await db.refresh(room)
    await db.commit()
    logger.info(
        "housekeeping_updated",
        room_id=room.id,
        from_status=previous,
        to_status=room.housekeeping_status,
    )
    return room
