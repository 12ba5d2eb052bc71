"""
Room availability queries.

Two bookings for the same room conflict when their date ranges touch or
overlap, boundaries included:

    existing.check_in <= end AND existing.check_out >= start

so the room is not offered on the day the previous guest checks out; that day
is left for turnover. Only bookings in an active status (confirmed,
checked-in) hold the room. The month calendar marks a room occupied on the
nights it is slept in, check_in <= day < check_out.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking
from app.models.enums import ACTIVE_BOOKING_STATUSES
from app.models.room import Room


@dataclass
class AvailabilityResult:
    is_available: bool
    conflicts: List[Booking] = field(default_factory=list)


def _overlap_clause(start: date, end: date):
    return (
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        Booking.check_in_date <= end,
        Booking.check_out_date >= start,
    )


async def find_conflicts(
    db: AsyncSession,
    room_id: int,
    start: date,
    end: date,
    exclude_booking_id: Optional[int] = None,
) -> List[Booking]:
    query = select(Booking).where(Booking.room_id == room_id, *_overlap_clause(start, end))
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    result = await db.execute(query.order_by(Booking.check_in_date))
    return list(result.scalars().all())


async def check_availability(
    db: AsyncSession,
    room_id: int,
    start: date,
    end: date,
    exclude_booking_id: Optional[int] = None,
) -> AvailabilityResult:
    conflicts = await find_conflicts(db, room_id, start, end, exclude_booking_id)
    return AvailabilityResult(is_available=not conflicts, conflicts=conflicts)


def resolve_range(
    start_date: Optional[date],
    end_date: Optional[date],
    single_date: Optional[date],
) -> tuple:
    """A single date d is checked like a one-night stay from d to d+1."""
    if single_date is not None:
        return single_date, single_date + timedelta(days=1)
    if start_date is None or end_date is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Start date and end date are required, or provide a single date parameter",
        )
    if end_date <= start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date must be after start date",
        )
    return start_date, end_date


async def _bookable_rooms(db: AsyncSession) -> List[Room]:
    result = await db.execute(
        select(Room).where(Room.is_available.is_(True)).order_by(Room.room_number)
    )
    return list(result.scalars().all())


async def _active_bookings_by_room(db: AsyncSession, start: date, end: date) -> Dict[int, List[Booking]]:
    result = await db.execute(
        select(Booking).where(*_overlap_clause(start, end)).order_by(Booking.check_in_date)
    )
    by_room: Dict[int, List[Booking]] = {}
    for booking in result.scalars().all():
        by_room.setdefault(booking.room_id, []).append(booking)
    return by_room


async def list_availability(db: AsyncSession, start: date, end: date) -> List[dict]:
    """Snapshot of every bookable room and the bookings holding it between start and end."""
    rooms = await _bookable_rooms(db)
    by_room = await _active_bookings_by_room(db, start, end)

    availability = []
    for room in rooms:
        holding = by_room.get(room.id, [])
        availability.append({
            "room": {
                "id": room.id,
                "room_number": room.room_number,
                "room_type": room.room_type,
                "price": float(room.price),
                "capacity": room.capacity,
                "amenities": room.amenities or [],
                "description": room.description,
            },
            "is_available": not holding,
            "bookings": [
                {
                    "check_in_date": b.check_in_date.isoformat(),
                    "check_out_date": b.check_out_date.isoformat(),
                    "status": b.status,
                }
                for b in holding
            ],
        })
    return availability


async def month_calendar(db: AsyncSession, year: int, month: int) -> List[dict]:
    """Per-day, per-room occupancy for one calendar month."""
    if not 1 <= month <= 12:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Month must be between 1 and 12")

    days_in_month = calendar.monthrange(year, month)[1]
    first_day = date(year, month, 1)
    after_last = first_day + timedelta(days=days_in_month)

    rooms = await _bookable_rooms(db)
    by_room = await _active_bookings_by_room(db, first_day, after_last)

    days = []
    for offset in range(days_in_month):
        day = first_day + timedelta(days=offset)
        room_cells = []
        for room in rooms:
            occupying = next(
                (b for b in by_room.get(room.id, []) if b.check_in_date <= day < b.check_out_date),
                None,
            )
            room_cells.append({
                "room_id": room.id,
                "room_number": room.room_number,
                "room_type": room.room_type,
                "is_available": occupying is None,
                "booking_id": occupying.id if occupying else None,
                "booking_status": occupying.status if occupying else None,
            })
        days.append({"date": day.isoformat(), "day": day.day, "rooms": room_cells})
    return days
