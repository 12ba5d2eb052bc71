"""
Status vocabularies shared by models, schemas and services.
"""

from enum import Enum


class RoomType(str, Enum):
    STANDARD = "Standard"
    DELUXE = "Deluxe"
    SUITE = "Suite"
    PRESIDENTIAL = "Presidential"


class HousekeepingStatus(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    IN_PROGRESS = "in-progress"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ActivityStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class AuthProvider(str, Enum):
    LOCAL = "local"
    GOOGLE = "google"


# Bookings in these states hold the room for their date range
ACTIVE_BOOKING_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.CHECKED_IN.value)


def sql_in(values) -> str:
    """Render enum values for a CHECK constraint."""
    return ", ".join(f"'{v.value if isinstance(v, Enum) else v}'" for v in values)
