"""
Booking price calculation and front-desk stay charges.

Everything here is pure: inputs in, a breakdown out, no storage access.
Callers are responsible for rejecting check-out <= check-in before pricing.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Union

DateLike = Union[date, datetime]
Money = Union[Decimal, int, float, str]

SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_HOUR = 60 * 60


def _money(value: Money) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def count_nights(check_in: DateLike, check_out: DateLike) -> int:
    """Whole nights between two dates, partial days rounded up."""
    delta: timedelta = check_out - check_in
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


@dataclass(frozen=True)
class PricingBreakdown:
    nights: int
    base_amount: Decimal
    extra_persons: int
    extra_person_charge: Decimal
    total_amount: Decimal

    def as_dict(self) -> dict:
        return {
            "nights": self.nights,
            "base_amount": float(self.base_amount),
            "extra_persons": self.extra_persons,
            "extra_person_charge": float(self.extra_person_charge),
            "total_amount": float(self.total_amount),
        }


def calculate_booking_pricing(
    room_price: Money,
    capacity: int,
    check_in: DateLike,
    check_out: DateLike,
    number_of_guests: int,
    extra_person_fee: Money,
) -> PricingBreakdown:
    """
    Price a stay.

    base = price x nights
    extra = max(0, guests - capacity) x extra_person_fee x nights
    """
    nights = count_nights(check_in, check_out)
    base_amount = _money(room_price) * nights
    extra_persons = max(0, number_of_guests - capacity)
    extra_person_charge = extra_persons * _money(extra_person_fee) * nights
    return PricingBreakdown(
        nights=nights,
        base_amount=base_amount,
        extra_persons=extra_persons,
        extra_person_charge=extra_person_charge,
        total_amount=base_amount + extra_person_charge,
    )


def _at_hour(day: date, hour: int) -> datetime:
    return datetime.combine(day, time(hour=hour), tzinfo=timezone.utc)


def _hours_after(now: datetime, threshold: datetime) -> int:
    return math.ceil((now - threshold).total_seconds() / SECONDS_PER_HOUR)


def late_check_in_fee(
    check_in_date: date,
    now: datetime,
    standard_hour: int,
    hourly_fee: Money,
    cap: Money,
) -> Decimal:
    """Hourly fee for arriving after the standard check-in time, capped."""
    threshold = _at_hour(check_in_date, standard_hour)
    if now <= threshold:
        return Decimal("0")
    return min(_hours_after(now, threshold) * _money(hourly_fee), _money(cap))


def late_check_out_fee(
    check_out_date: date,
    now: datetime,
    standard_hour: int,
    hourly_fee: Money,
    cap: Money,
) -> Decimal:
    """Hourly fee for leaving after the standard check-out time, capped.

    Early departures (before the scheduled check-out day) are never charged.
    """
    if now.date() < check_out_date:
        return Decimal("0")
    threshold = _at_hour(check_out_date, standard_hour)
    if now <= threshold:
        return Decimal("0")
    return min(_hours_after(now, threshold) * _money(hourly_fee), _money(cap))


def extended_stay_charge(
    scheduled_nights: int,
    actual_nights: int,
    room_price: Money,
) -> Decimal:
    extra_nights = actual_nights - scheduled_nights
    if extra_nights <= 0:
        return Decimal("0")
    return extra_nights * _money(room_price)


@dataclass(frozen=True)
class CheckoutCharges:
    base_amount: Decimal
    late_check_in_fee: Decimal
    late_check_out_fee: Decimal
    extended_stay_charge: Decimal
    additional_charges: Decimal
    total_charges: Decimal
    amount_paid: Decimal
    balance_due: Decimal

    def as_dict(self) -> dict:
        return {key: float(value) for key, value in self.__dict__.items()}


def summarize_charges(
    base_amount: Money,
    late_check_in: Money,
    late_check_out: Money,
    extended_stay: Money,
    additional: Money,
    paid: bool,
) -> CheckoutCharges:
    """Final bill at check-out. Only the booking total is ever prepaid."""
    base = _money(base_amount)
    total = base + _money(late_check_in) + _money(late_check_out) + _money(extended_stay) + _money(additional)
    amount_paid = base if paid else Decimal("0")
    return CheckoutCharges(
        base_amount=base,
        late_check_in_fee=_money(late_check_in),
        late_check_out_fee=_money(late_check_out),
        extended_stay_charge=_money(extended_stay),
        additional_charges=_money(additional),
        total_charges=total,
        amount_paid=amount_paid,
        balance_due=total - amount_paid,
    )
