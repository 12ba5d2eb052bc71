"""
Room reviews. Only guests who have completed a stay in a room (a checked-out
booking) may review it; a guest holds one review per room.
"""

from typing import List, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.models.booking import Booking
from app.models.enums import BookingStatus
from app.models.review import RoomReview
from app.models.user import User
from app.schemas.review import ReviewCreate
from app.services.booking_service import get_room_or_404

logger = get_logger(__name__)


async def _has_completed_stay(db: AsyncSession, user_id: int, room_id: int) -> bool:
    result = await db.execute(
        select(Booking.id).where(
            Booking.user_id == user_id,
            Booking.room_id == room_id,
            Booking.status == BookingStatus.CHECKED_OUT.value,
        ).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def _find_review(db: AsyncSession, user_id: int, room_id: int):
    result = await db.execute(
        select(RoomReview).where(RoomReview.user_id == user_id, RoomReview.room_id == room_id)
    )
    return result.scalar_one_or_none()


async def submit_review(db: AsyncSession, user: User, room_id: int, data: ReviewCreate) -> RoomReview:
    """Create the guest's review of a room, or replace their earlier one."""
    room = await get_room_or_404(db, room_id)
    user_id, room_id = user.id, room.id
    if not await _has_completed_stay(db, user_id, room_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only review rooms after you have completed a stay (checked out).",
        )

    review = await _find_review(db, user_id, room_id)
    if review is None:
        review = RoomReview(user_id=user_id, room_id=room_id, rating=data.rating, comment=data.comment)
        db.add(review)
        try:
            await db.flush()
        except IntegrityError:
            # A concurrent submission from the same guest won the insert
            await db.rollback()
            review = await _find_review(db, user_id, room_id)
            if review is None:
                raise
            review.rating = data.rating
            review.comment = data.comment
            await db.flush()
            await db.refresh(user)
    else:
        review.rating = data.rating
        review.comment = data.comment
        await db.flush()

    await db.refresh(review)
    await db.commit()
    logger.info("review_submitted", review_id=review.id, room_id=room_id, user_id=user_id, rating=data.rating)
    return review


async def list_reviews(db: AsyncSession, room_id: int) -> Tuple[List[Tuple[RoomReview, User]], float, int]:
    """Reviews of a room, newest first, with their authors. Returns (rows, average_rating, count)."""
    room = await get_room_or_404(db, room_id)
    result = await db.execute(
        select(RoomReview, User)
        .join(User, User.id == RoomReview.user_id)
        .where(RoomReview.room_id == room.id)
        .order_by(RoomReview.created_at.desc(), RoomReview.id.desc())
    )
    rows = [tuple(row) for row in result.all()]

    stats = await db.execute(
        select(func.avg(RoomReview.rating), func.count(RoomReview.id)).where(RoomReview.room_id == room.id)
    )
    average, count = stats.one()
    return rows, round(float(average or 0), 2), count
