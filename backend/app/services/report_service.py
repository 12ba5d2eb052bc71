"""
Read-only reporting over booking history.

Loaders pull flat `BookingRow`s from the database; the aggregations are pure
functions over those rows so they can be tested without a database.

The report window is inclusive on both ends and filters on booking creation
time. Daily occupancy instead looks at stays overlapping each day.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking
from app.models.enums import BookingStatus, PaymentStatus
from app.models.room import Room
from app.models.user import User
from app.services.pricing import count_nights

DEFAULT_WINDOW_DAYS = 30
TOP_CUSTOMERS = 10

# Bookings that represent real (or imminent) stays
STAY_STATUSES = (
    BookingStatus.CONFIRMED.value,
    BookingStatus.CHECKED_IN.value,
    BookingStatus.CHECKED_OUT.value,
)


@dataclass(frozen=True)
class ReportWindow:
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def each_day(self) -> Iterator[date]:
        for offset in range(self.days):
            yield self.start + timedelta(days=offset)

    def as_dict(self) -> dict:
        return {"start_date": self.start.isoformat(), "end_date": self.end.isoformat(), "days": self.days}


@dataclass(frozen=True)
class BookingRow:
    id: int
    user_id: int
    room_id: int
    room_type: str
    check_in_date: date
    check_out_date: date
    total_amount: Decimal
    status: str
    payment_status: str
    created_on: date
    customer_name: str
    customer_email: str

    @property
    def nights(self) -> int:
        return count_nights(self.check_in_date, self.check_out_date)


def resolve_window(
    start_date: Optional[date],
    end_date: Optional[date],
    today: Optional[date] = None,
) -> ReportWindow:
    today = today or datetime.now(timezone.utc).date()
    end = end_date or today
    start = start_date or end - timedelta(days=DEFAULT_WINDOW_DAYS)
    if start > end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Start date must not be after end date",
        )
    return ReportWindow(start=start, end=end)


def _money(value: Decimal) -> float:
    return round(float(value), 2)


def _percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


# Aggregations


def occupancy_report(
    rows: Iterable[BookingRow],
    stays: Iterable[BookingRow],
    total_rooms: int,
    window: ReportWindow,
) -> dict:
    """
    rows: stay-status bookings created in the window
    stays: stay-status bookings overlapping the window, for daily occupancy
    """
    rows = [r for r in rows if r.status in STAY_STATUSES]
    total_room_nights = sum(r.nights for r in rows)
    possible_room_nights = total_rooms * window.days

    by_type: Dict[str, dict] = defaultdict(lambda: {"bookings": 0, "revenue": Decimal("0")})
    for row in rows:
        by_type[row.room_type]["bookings"] += 1
        by_type[row.room_type]["revenue"] += row.total_amount

    stays = [s for s in stays if s.status in STAY_STATUSES]
    daily = []
    for day in window.each_day():
        occupied = {s.room_id for s in stays if s.check_in_date <= day < s.check_out_date}
        daily.append({
            "date": day.isoformat(),
            "occupied_rooms": len(occupied),
            "total_rooms": total_rooms,
            "occupancy_rate": _percent(len(occupied), total_rooms),
        })

    return {
        "summary": {
            "total_rooms": total_rooms,
            "total_bookings": len(rows),
            "total_room_nights": total_room_nights,
            "occupancy_rate": _percent(total_room_nights, possible_room_nights),
            "period": window.as_dict(),
        },
        "room_type_breakdown": {
            room_type: {"bookings": v["bookings"], "revenue": _money(v["revenue"])}
            for room_type, v in sorted(by_type.items())
        },
        "daily_occupancy": daily,
    }


def revenue_report(rows: Iterable[BookingRow], window: ReportWindow) -> dict:
    rows = [r for r in rows if r.status in STAY_STATUSES]
    total_revenue = sum((r.total_amount for r in rows), Decimal("0"))
    average = total_revenue / len(rows) if rows else Decimal("0")

    by_type: Dict[str, dict] = defaultdict(lambda: {"revenue": Decimal("0"), "bookings": 0})
    by_day: Dict[date, dict] = defaultdict(lambda: {"revenue": Decimal("0"), "bookings": 0})
    customers: Dict[int, dict] = {}
    for row in rows:
        by_type[row.room_type]["revenue"] += row.total_amount
        by_type[row.room_type]["bookings"] += 1
        by_day[row.created_on]["revenue"] += row.total_amount
        by_day[row.created_on]["bookings"] += 1
        customer = customers.setdefault(row.user_id, {
            "user_id": row.user_id,
            "name": row.customer_name,
            "email": row.customer_email,
            "total_spent": Decimal("0"),
            "bookings": 0,
        })
        customer["total_spent"] += row.total_amount
        customer["bookings"] += 1

    payment_counts = Counter(r.payment_status for r in rows)
    top_customers = sorted(customers.values(), key=lambda c: c["total_spent"], reverse=True)[:TOP_CUSTOMERS]

    return {
        "summary": {
            "total_revenue": _money(total_revenue),
            "total_bookings": len(rows),
            "average_booking_value": _money(average),
            "period": window.as_dict(),
        },
        "revenue_by_room_type": {
            room_type: {"revenue": _money(v["revenue"]), "bookings": v["bookings"]}
            for room_type, v in sorted(by_type.items())
        },
        "payment_status_breakdown": {s.value: payment_counts.get(s.value, 0) for s in PaymentStatus},
        "daily_revenue": [
            {
                "date": day.isoformat(),
                "revenue": _money(by_day[day]["revenue"]) if day in by_day else 0.0,
                "bookings": by_day[day]["bookings"] if day in by_day else 0,
            }
            for day in window.each_day()
        ],
        "top_customers": [{**c, "total_spent": _money(c["total_spent"])} for c in top_customers],
    }


def booking_analytics(rows: Iterable[BookingRow], window: ReportWindow) -> dict:
    rows = list(rows)
    status_counts = Counter(r.status for r in rows)
    per_day: Dict[date, Counter] = defaultdict(Counter)
    for row in rows:
        per_day[row.created_on][row.status] += 1

    bookings_per_guest = Counter(r.user_id for r in rows)
    average_duration = sum(r.nights for r in rows) / len(rows) if rows else 0

    trends = []
    for day in window.each_day():
        counts = per_day.get(day, Counter())
        trends.append({
            "date": day.isoformat(),
            "total_bookings": sum(counts.values()),
            **{s.value: counts.get(s.value, 0) for s in BookingStatus},
        })

    return {
        "summary": {
            "total_bookings": len(rows),
            "average_duration": round(average_duration, 2),
            "period": window.as_dict(),
        },
        "status_breakdown": {s.value: status_counts.get(s.value, 0) for s in BookingStatus},
        "booking_trends": trends,
        "room_type_popularity": dict(sorted(Counter(r.room_type for r in rows).items())),
        "guest_stats": {
            "total_guests": len(bookings_per_guest),
            "repeat_guests": sum(1 for n in bookings_per_guest.values() if n > 1),
        },
    }


# Loaders


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def _rows_query():
    return (
        select(Booking, Room.room_type, User)
        .join(Room, Booking.room_id == Room.id)
        .join(User, Booking.user_id == User.id)
    )


def _to_rows(result) -> List[BookingRow]:
    rows = []
    for booking, room_type, user in result.all():
        rows.append(BookingRow(
            id=booking.id,
            user_id=booking.user_id,
            room_id=booking.room_id,
            room_type=room_type,
            check_in_date=booking.check_in_date,
            check_out_date=booking.check_out_date,
            total_amount=Decimal(booking.total_amount),
            status=booking.status,
            payment_status=booking.payment_status,
            created_on=_as_date(booking.created_at),
            customer_name=f"{user.first_name} {user.last_name}".strip() or user.display_name,
            customer_email=user.email,
        ))
    return rows


async def load_created_in_window(
    db: AsyncSession,
    window: ReportWindow,
    statuses: Optional[Iterable[str]] = None,
) -> List[BookingRow]:
    lower = datetime.combine(window.start, time.min, tzinfo=timezone.utc)
    upper = datetime.combine(window.end + timedelta(days=1), time.min, tzinfo=timezone.utc)
    query = _rows_query().where(Booking.created_at >= lower, Booking.created_at < upper)
    if statuses is not None:
        query = query.where(Booking.status.in_(list(statuses)))
    return _to_rows(await db.execute(query.order_by(Booking.created_at)))


async def load_stays_overlapping(db: AsyncSession, window: ReportWindow) -> List[BookingRow]:
    query = _rows_query().where(
        Booking.status.in_(STAY_STATUSES),
        Booking.check_in_date <= window.end,
        Booking.check_out_date > window.start,
    )
    return _to_rows(await db.execute(query))


async def count_rooms(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(Room.id)))
    return result.scalar_one()


async def get_occupancy_report(db: AsyncSession, window: ReportWindow) -> dict:
    rows = await load_created_in_window(db, window, STAY_STATUSES)
    stays = await load_stays_overlapping(db, window)
    return occupancy_report(rows, stays, await count_rooms(db), window)


async def get_revenue_report(db: AsyncSession, window: ReportWindow) -> dict:
    return revenue_report(await load_created_in_window(db, window, STAY_STATUSES), window)


async def get_booking_analytics(db: AsyncSession, window: ReportWindow) -> dict:
    return booking_analytics(await load_created_in_window(db, window), window)
