"""
Booking endpoints: guest reservations, the admin status workflow, front desk
check-in/check-out and the cancellation request flow.

Every route that can move a booking in or out of an active status drops the
availability cache after the service call commits. Writes are then recorded
in the activity log.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_activity_recorder, get_current_user, get_dispatcher, require_permission
from app.core.logging import get_logger
from app.core.permissions import Action, Resource
from app.db.session import get_db
from app.models.enums import BookingStatus
from app.models.user import User
from app.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    CancellationDecline,
    CancellationRequest,
    ChargesResponse,
    DeskOperationRequest,
    DeskOperationResponse,
    PaymentStatusUpdate,
    booking_out,
)
from app.schemas.common import ApiResponse
from app.services import booking_service, cancellation_service
from app.services.activity_service import ActivityRecorder, Actor
from app.services.booking_service import DeskResult
from app.services.cache_service import invalidate_availability_cache
from app.services.notification_service import NotificationDispatcher

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])

BOOKING_RESOURCE = "booking"


async def _with_context(db: AsyncSession, booking) -> BookingResponse:
    room, owner = await booking_service.load_context(db, booking)
    return booking_out(booking, room, owner)


def _desk_out(result: DeskResult) -> DeskOperationResponse:
    return DeskOperationResponse(
        booking=booking_out(result.booking, result.room),
        charges=ChargesResponse(**result.charges.as_dict()),
    )


@router.post("/", response_model=ApiResponse[BookingResponse], status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: Request,
    booking_data: BookingCreate,
    user: User = Depends(require_permission(Action.CREATE_OWN, Resource.BOOKING)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    """
    Request a room for [check_in_date, check_out_date).

    The booking starts pending and waits for admin confirmation. Conflicting
    active bookings give a 400; losing the room lock three times gives a 409.
    """
    booking = await booking_service.create_booking(db, dispatcher, user, booking_data)
    await invalidate_availability_cache()
    await activity.record(
        Actor.from_user(user), "create_booking", BOOKING_RESOURCE, booking.id,
        details={
            "room_id": booking.room_id,
            "check_in_date": booking.check_in_date,
            "check_out_date": booking.check_out_date,
            "number_of_guests": booking.number_of_guests,
        },
        request=request,
    )
    return ApiResponse(message="Booking created", data=await _with_context(db, booking))


@router.get("/me", response_model=ApiResponse[List[BookingResponse]])
async def list_my_bookings(
    user: User = Depends(require_permission(Action.READ_OWN, Resource.BOOKING)),
    db: AsyncSession = Depends(get_db),
):
    rows = await booking_service.get_user_bookings(db, user.id)
    return ApiResponse(data=[booking_out(booking, room) for booking, room in rows])


@router.get("/", response_model=ApiResponse[List[BookingResponse]])
async def list_all_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    cancellation_requested: Optional[bool] = Query(None),
    _: User = Depends(require_permission(Action.READ_ANY, Resource.BOOKING)),
    db: AsyncSession = Depends(get_db),
):
    rows = await booking_service.list_bookings(db, status_filter, cancellation_requested)
    return ApiResponse(data=[booking_out(booking, room, owner) for booking, room, owner in rows])


@router.get("/{booking_id}", response_model=ApiResponse[BookingResponse])
async def get_booking(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.get_booking_for_user(db, booking_id, user)
    return ApiResponse(data=await _with_context(db, booking))


@router.put("/{booking_id}/status", response_model=ApiResponse[BookingResponse])
async def update_booking_status(
    request: Request,
    booking_id: int,
    data: BookingStatusUpdate,
    admin: User = Depends(require_permission(Action.UPDATE_ANY, Resource.BOOKING)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    booking = await booking_service.update_status(
        db, dispatcher, booking_id, data.status, admin, data.admin_notes
    )
    await invalidate_availability_cache()
    await activity.record(
        Actor.from_user(admin), "update_booking_status", BOOKING_RESOURCE, booking_id,
        details={"status": data.status.value, "admin_notes": data.admin_notes},
        request=request,
    )
    return ApiResponse(message="Booking status updated", data=await _with_context(db, booking))


@router.post("/{booking_id}/check-in", response_model=ApiResponse[DeskOperationResponse])
async def check_in(
    request: Request,
    booking_id: int,
    data: Optional[DeskOperationRequest] = None,
    admin: User = Depends(require_permission(Action.UPDATE_ANY, Resource.BOOKING)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    data = data or DeskOperationRequest()
    result = await booking_service.check_in(
        db, dispatcher, booking_id, admin,
        additional_charges=data.additional_charges, notes=data.notes,
    )
    await invalidate_availability_cache()
    await activity.record(
        Actor.from_user(admin), "check_in", BOOKING_RESOURCE, booking_id,
        details={"late_check_in_fee": result.charges.late_check_in_fee},
        request=request,
    )
    return ApiResponse(message="Guest checked in", data=_desk_out(result))


@router.post("/{booking_id}/check-out", response_model=ApiResponse[DeskOperationResponse])
async def check_out(
    request: Request,
    booking_id: int,
    data: Optional[DeskOperationRequest] = None,
    admin: User = Depends(require_permission(Action.UPDATE_ANY, Resource.BOOKING)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    data = data or DeskOperationRequest()
    result = await booking_service.check_out(
        db, dispatcher, booking_id, admin,
        additional_charges=data.additional_charges, notes=data.notes,
    )
    await invalidate_availability_cache()
    await activity.record(
        Actor.from_user(admin), "check_out", BOOKING_RESOURCE, booking_id,
        details={
            "late_check_out_fee": result.charges.late_check_out_fee,
            "extended_stay_charge": result.charges.extended_stay_charge,
            "balance_due": result.charges.balance_due,
        },
        request=request,
    )
    return ApiResponse(message="Guest checked out", data=_desk_out(result))


@router.post("/{booking_id}/request-cancel", response_model=ApiResponse[BookingResponse])
async def request_cancellation(
    request: Request,
    booking_id: int,
    data: Optional[CancellationRequest] = None,
    user: User = Depends(require_permission(Action.UPDATE_OWN, Resource.BOOKING)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    reason = data.reason if data else None
    booking = await cancellation_service.request_cancellation(db, dispatcher, booking_id, user, reason)
    await activity.record(
        Actor.from_user(user), "request_cancellation", BOOKING_RESOURCE, booking_id,
        details={"reason": reason},
        request=request,
    )
    return ApiResponse(message="Cancellation requested", data=await _with_context(db, booking))


@router.post("/{booking_id}/approve-cancel", response_model=ApiResponse[BookingResponse])
async def approve_cancellation(
    request: Request,
    booking_id: int,
    admin: User = Depends(require_permission(Action.UPDATE_ANY, Resource.BOOKING)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    booking = await cancellation_service.approve_cancellation(db, dispatcher, booking_id, admin)
    await invalidate_availability_cache()
    await activity.record(
        Actor.from_user(admin), "approve_cancellation", BOOKING_RESOURCE, booking_id, request=request
    )
    return ApiResponse(message="Cancellation approved", data=await _with_context(db, booking))


@router.post("/{booking_id}/decline-cancel", response_model=ApiResponse[BookingResponse])
async def decline_cancellation(
    request: Request,
    booking_id: int,
    data: Optional[CancellationDecline] = None,
    admin: User = Depends(require_permission(Action.UPDATE_ANY, Resource.BOOKING)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    notes = data.admin_notes if data else None
    booking = await cancellation_service.decline_cancellation(db, dispatcher, booking_id, admin, notes)
    await activity.record(
        Actor.from_user(admin), "decline_cancellation", BOOKING_RESOURCE, booking_id,
        details={"admin_notes": notes},
        request=request,
    )
    return ApiResponse(message="Cancellation declined", data=await _with_context(db, booking))


@router.put("/{booking_id}/payment-status", response_model=ApiResponse[BookingResponse])
async def update_payment_status(
    request: Request,
    booking_id: int,
    data: PaymentStatusUpdate,
    user: User = Depends(require_permission(Action.UPDATE_OWN, Resource.PAYMENT)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    """Owners may mark their booking paid; admins may also refund."""
    booking = await booking_service.update_payment_status(
        db, dispatcher, booking_id, data.payment_status, user
    )
    await activity.record(
        Actor.from_user(user), "update_payment_status", BOOKING_RESOURCE, booking_id,
        details={"payment_status": data.payment_status.value},
        request=request,
    )
    return ApiResponse(message="Payment status updated", data=await _with_context(db, booking))
