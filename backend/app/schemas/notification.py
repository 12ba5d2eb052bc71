"""
Pydantic schemas for the notification inbox.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    type: str
    message: str
    href: Optional[str]
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationPage(BaseModel):
    items: List[NotificationResponse]
    has_more: bool
    unread: int


class MarkAllReadResult(BaseModel):
    updated: int
