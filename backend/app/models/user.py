"""
User model with secure password storage and encrypted PII.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String

from app.core.encryption import EncryptedString
from app.core.permissions import Role
from app.db.base import Base, TimestampMixin
from app.models.enums import AuthProvider, sql_in


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=True)
    # Absent for OAuth accounts
    hashed_password = Column(String(255), nullable=True)
    auth_provider = Column(String(20), nullable=False, default=AuthProvider.LOCAL.value)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    phone_number = Column(EncryptedString, nullable=True)
    address = Column(EncryptedString, nullable=True)
    role = Column(String(20), nullable=False, default=Role.USER.value, index=True)
    is_blocked = Column(Boolean, default=False, nullable=False)
    blocked_at = Column(DateTime(timezone=True), nullable=True)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    email_notifications = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint(f"role IN ({sql_in(Role)})", name="check_user_role"),
    )

    @property
    def display_name(self) -> str:
        full_name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return self.username or full_name or self.email

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
