"""
Pydantic schemas for room reviews.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.review import MAX_RATING, MIN_RATING
from app.schemas.user import UserSummary


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=MIN_RATING, le=MAX_RATING)
    comment: str = Field(..., min_length=1, max_length=2000)

    model_config = {"str_strip_whitespace": True}


class ReviewResponse(BaseModel):
    id: int
    room_id: int
    rating: int
    comment: str
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class ReviewPage(BaseModel):
    items: List[ReviewResponse]
    average_rating: float
    count: int


def review_out(review, user=None) -> ReviewResponse:
    response = ReviewResponse.model_validate(review)
    if user is not None:
        response.user = UserSummary.model_validate(user)
    return response
