"""
In-app notification record. A pure side channel: nothing in the booking
lifecycle reads it back.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String

from app.db.base import Base, utcnow
from app.models.enums import NotificationType, sql_in


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False, default=NotificationType.INFO.value)
    message = Column(String(500), nullable=False)
    href = Column(String(300), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    __table_args__ = (
        CheckConstraint(f"type IN ({sql_in(NotificationType)})", name="check_notification_type"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user={self.user_id}, type={self.type})>"
