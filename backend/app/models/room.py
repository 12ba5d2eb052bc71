"""
Room model with housekeeping state.

Key design decisions:
- `room_number` is unique; it is what guests and staff refer to
- `version` column is the optimistic lock taken by every write that
  makes a booking hold the room (creation, confirmation, check-in)
- Amenities and images are small string lists stored as JSON
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, JSON, Numeric, String, Text

from app.db.base import Base, TimestampMixin
from app.models.enums import HousekeepingStatus, RoomType, sql_in


class Room(Base, TimestampMixin):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    room_number = Column(String(20), unique=True, index=True, nullable=False)
    room_type = Column(String(20), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    capacity = Column(Integer, nullable=False)
    amenities = Column(JSON, nullable=False, default=list)
    is_available = Column(Boolean, nullable=False, default=True)
    housekeeping_status = Column(String(20), nullable=False, default=HousekeepingStatus.CLEAN.value)
    description = Column(Text, nullable=True)
    images = Column(JSON, nullable=False, default=list)

    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_room_price_non_negative"),
        CheckConstraint("capacity > 0", name="check_room_capacity_positive"),
        CheckConstraint(f"room_type IN ({sql_in(RoomType)})", name="check_room_type"),
        CheckConstraint(
            f"housekeeping_status IN ({sql_in(HousekeepingStatus)})",
            name="check_room_housekeeping_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, number={self.room_number}, type={self.room_type})>"
