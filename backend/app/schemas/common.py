"""
Response envelopes shared by every endpoint.

Success: {"message": ..., "data": ...}
Failure: {"message": ..., "details": ...} (built by the handlers in app.main)
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    message: str = "OK"
    data: Optional[T] = None


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    message: str
    details: Optional[Any] = None
