"""
Audit trail of staff and guest actions on bookings. Append-only; written
after the action commits and never read back by the booking lifecycle.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, JSON, String

from app.db.base import Base, utcnow
from app.models.enums import ActivityStatus, sql_in


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    # Plain columns, not foreign keys: entries outlive deleted users
    actor_id = Column(Integer, nullable=True)
    actor_email = Column(String(255), nullable=True)
    actor_role = Column(String(20), nullable=True)
    action = Column(String(50), nullable=False)
    resource = Column(String(50), nullable=False)
    resource_id = Column(String(50), nullable=True)
    details = Column(JSON, nullable=True)
    ip = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    status = Column(String(10), nullable=False, default=ActivityStatus.SUCCESS.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    __table_args__ = (
        CheckConstraint(f"status IN ({sql_in(ActivityStatus)})", name="check_activity_status"),
        Index("ix_activity_logs_lookup", "action", "resource", "actor_email", "actor_role"),
    )

    def __repr__(self) -> str:
        return f"<ActivityLog(id={self.id}, action={self.action}, resource={self.resource}:{self.resource_id})>"
