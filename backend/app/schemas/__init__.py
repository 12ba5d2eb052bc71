from app.schemas.common import ApiResponse, ErrorResponse
from app.schemas.user import UserCreate, UserResponse, UserLogin, Token
from app.schemas.room import RoomCreate, RoomUpdate, RoomResponse
from app.schemas.booking import BookingCreate, BookingResponse

__all__ = [
    "ApiResponse", "ErrorResponse",
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "RoomCreate", "RoomUpdate", "RoomResponse",
    "BookingCreate", "BookingResponse",
]
