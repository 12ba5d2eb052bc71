"""
Pydantic schemas for user-related request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.core.permissions import Role


class UserCreate(BaseModel):
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=100, pattern=r"^[a-zA-Z0-9_]+$")
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=500)


class VerifyEmail(BaseModel):
    email: EmailStr
    code: str = Field(..., pattern=r"^\d{6}$")


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class ForgotPassword(BaseModel):
    email: EmailStr


class PasswordReset(BaseModel):
    email: EmailStr
    code: str = Field(..., pattern=r"^\d{6}$")
    new_password: str = Field(..., min_length=8, max_length=128)


class UserResponse(BaseModel):
    id: int
    email: str
    username: Optional[str]
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    address: Optional[str] = None
    role: str
    is_blocked: bool
    is_email_verified: bool
    email_notifications: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    id: int
    email: str
    username: Optional[str]
    first_name: str
    last_name: str

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class RegistrationStarted(BaseModel):
    email: str


class UserBlockUpdate(BaseModel):
    blocked: bool


class UserRoleUpdate(BaseModel):
    role: Role
