"""
Pydantic schemas for room inventory and housekeeping.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.enums import HousekeepingStatus, RoomType


class RoomCreate(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=20)
    room_type: RoomType
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    capacity: int = Field(..., gt=0, le=20)
    amenities: List[str] = Field(default_factory=list)
    description: Optional[str] = Field(None, max_length=2000)
    images: List[str] = Field(default_factory=list)


class RoomUpdate(BaseModel):
    room_number: Optional[str] = Field(None, min_length=1, max_length=20)
    room_type: Optional[RoomType] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    capacity: Optional[int] = Field(None, gt=0, le=20)
    amenities: Optional[List[str]] = None
    description: Optional[str] = Field(None, max_length=2000)
    images: Optional[List[str]] = None
    is_available: Optional[bool] = None


class HousekeepingUpdate(BaseModel):
    housekeeping_status: HousekeepingStatus


class RoomResponse(BaseModel):
    id: int
    room_number: str
    room_type: str
    price: float
    capacity: int
    amenities: List[str]
    is_available: bool
    housekeeping_status: str
    description: Optional[str]
    images: List[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RoomSummary(BaseModel):
    id: int
    room_number: str
    room_type: str
    price: float

    model_config = {"from_attributes": True}
