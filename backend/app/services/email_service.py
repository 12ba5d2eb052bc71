"""
HTML e-mail content for booking lifecycle messages.

Only builds markup; delivery goes through an `EmailSender`.
"""

from datetime import date, datetime
from html import escape
from typing import Iterable, Optional, Tuple

from app.core.config import get_settings

settings = get_settings()

Row = Tuple[str, object]


def booking_reference(booking_id) -> str:
    """RB-XXXXXX: last six characters of the zero-padded id."""
    return f"RB-{str(booking_id).zfill(6)[-6:].upper()}"


def payment_reference(booking_id) -> str:
    return f"PAY-{str(booking_id).zfill(6)[-6:].upper()}"


def format_money(value) -> str:
    if value is None:
        return ""
    return f"{settings.CURRENCY_SYMBOL}{float(value):,.2f}"


def format_date(value: Optional[date]) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%b %d, %Y %I:%M %p")
    return value.strftime("%b %d, %Y")


def _rows_table(rows: Iterable[Row]) -> str:
    cells = [
        f'<tr><td style="padding:4px 8px;color:#64748b;white-space:nowrap;">{escape(label)}</td>'
        f'<td style="padding:4px 8px;color:#0f172a;font-weight:500;">{escape(str(value))}</td></tr>'
        for label, value in rows
        if value is not None and str(value).strip() != ""
    ]
    if not cells:
        return ""
    return (
        '<table style="width:100%;margin:12px 0;border-collapse:collapse;font-size:13px;"><tbody>'
        + "".join(cells)
        + "</tbody></table>"
    )


def render_app_email(title: str, body_html: str) -> str:
    """Wrap message body in the hotel's e-mail layout."""
    year = datetime.now().year
    hotel = escape(settings.HOTEL_NAME)
    return f"""
<div style="background:#f6f8fb;padding:24px 0;font-family:Arial,Helvetica,sans-serif;color:#0f172a;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0"
         style="max-width:560px;margin:0 auto;background:#ffffff;border:1px solid #e2e8f0;border-radius:10px;">
    <tr><td style="padding:20px 24px;background:#0ea5e9;color:#ffffff;">
      <h1 style="margin:0;font-size:18px;">{hotel}</h1>
    </td></tr>
    <tr><td style="padding:24px;">
      <h2 style="margin:0 0 12px;font-size:18px;">{escape(title)}</h2>
      <div style="color:#334155;font-size:14px;line-height:1.6;">{body_html}</div>
      <div style="margin-top:12px;color:#64748b;font-size:12px;">
        Standard check-in is {settings.STANDARD_CHECK_IN_HOUR}:00 and check-out is {settings.STANDARD_CHECK_OUT_HOUR}:00.
      </div>
    </td></tr>
    <tr><td style="padding:16px 24px;background:#f8fafc;color:#64748b;font-size:12px;text-align:center;">
      &copy; {year} {hotel}
    </td></tr>
  </table>
</div>
"""


def build_booking_summary(
    booking,
    guest_name: Optional[str] = None,
    booking_status: Optional[str] = None,
    payment_status: Optional[str] = None,
    include_payment: bool = False,
) -> str:
    """Key/value table describing a booking snapshot."""
    room_label = f"Room {booking.room_number}"
    if booking.room_type:
        room_label += f" - {booking.room_type}"

    rows = [
        ("Booking Reference", booking_reference(booking.id)),
        ("Payment Reference", payment_reference(booking.id) if include_payment else None),
        ("Guest", guest_name or booking.guest_name),
        ("Room", room_label),
        ("Check-in", format_date(booking.check_in_date)),
        ("Check-out", format_date(booking.check_out_date)),
        ("Nights", booking.nights),
        ("Guests", booking.number_of_guests),
        ("Total Amount", format_money(booking.total_amount)),
        ("Booking Status", booking_status or booking.status),
        ("Payment Status", payment_status or booking.payment_status),
    ]
    if include_payment:
        rows += [
            ("Payment Method", booking.payment_method),
            ("Payment Date", format_date(booking.payment_date)),
        ]
    return _rows_table(rows)


def build_charge_breakdown(charges) -> str:
    """Final bill table for the check-out e-mail."""
    return _rows_table([
        ("Base room amount", format_money(charges.base_amount)),
        ("Late check-in fee", format_money(charges.late_check_in_fee)),
        ("Late check-out fee", format_money(charges.late_check_out_fee)),
        ("Extended stay charge", format_money(charges.extended_stay_charge)),
        ("Additional charges", format_money(charges.additional_charges)),
        ("Total charges", format_money(charges.total_charges)),
        ("Amount paid", format_money(charges.amount_paid)),
        ("Balance due", format_money(charges.balance_due)),
    ])


def bookings_link(admin: bool = False) -> str:
    path = "/admin/bookings" if admin else "/user/bookings"
    return f"{settings.CLIENT_ORIGIN}{path}"


def paragraph(text: str) -> str:
    return f"<p>{escape(text)}</p>"


def link(href: str, label: str) -> str:
    return f'<p><a href="{escape(href)}">{escape(label)}</a></p>'


def verification_code_email(code: str, purpose: str, ttl_minutes: int) -> str:
    body = (
        paragraph(f"Use this code to {purpose}.")
        + '<div style="display:inline-block;padding:12px 20px;border:1px dashed #0ea5e9;'
        'border-radius:8px;font-size:24px;letter-spacing:6px;font-weight:700;color:#0ea5e9;">'
        f"{escape(code)}</div>"
        + f'<p style="color:#64748b;font-size:12px;">This code expires in {ttl_minutes} minutes.</p>'
    )
    return body
