from app.models.user import User
from app.models.room import Room
from app.models.booking import Booking
from app.models.notification import Notification
from app.models.review import RoomReview
from app.models.activity_log import ActivityLog

__all__ = ["User", "Room", "Booking", "Notification", "RoomReview", "ActivityLog"]
