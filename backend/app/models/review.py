"""
Guest review of a room. One review per guest per room; posting again
replaces the earlier rating and comment.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Text, UniqueConstraint

from app.db.base import Base, TimestampMixin

MIN_RATING = 1
MAX_RATING = 5


class RoomReview(Base, TimestampMixin):
    __tablename__ = "room_reviews"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False)

    __table_args__ = (
        CheckConstraint(f"rating BETWEEN {MIN_RATING} AND {MAX_RATING}", name="check_review_rating_range"),
        UniqueConstraint("user_id", "room_id", name="uq_room_reviews_user_room"),
    )

    def __repr__(self) -> str:
        return f"<RoomReview(id={self.id}, room={self.room_id}, user={self.user_id}, rating={self.rating})>"
