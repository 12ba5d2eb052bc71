"""
Admin reporting endpoints. Windows default to the last 30 days.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_permission
from app.core.permissions import Action, Resource
from app.db.session import get_db
from app.models.user import User
from app.schemas.common import ApiResponse
from app.services import report_service

router = APIRouter(prefix="/reports", tags=["Reports"])

can_read_reports = require_permission(Action.READ_ANY, Resource.REPORT)


@router.get("/occupancy", response_model=ApiResponse[dict])
async def occupancy(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    _: User = Depends(can_read_reports),
    db: AsyncSession = Depends(get_db),
):
    window = report_service.resolve_window(start_date, end_date)
    return ApiResponse(data=await report_service.get_occupancy_report(db, window))


@router.get("/revenue", response_model=ApiResponse[dict])
async def revenue(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    _: User = Depends(can_read_reports),
    db: AsyncSession = Depends(get_db),
):
    window = report_service.resolve_window(start_date, end_date)
    return ApiResponse(data=await report_service.get_revenue_report(db, window))


@router.get("/bookings", response_model=ApiResponse[dict])
async def booking_analytics(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    _: User = Depends(can_read_reports),
    db: AsyncSession = Depends(get_db),
):
    window = report_service.resolve_window(start_date, end_date)
    return ApiResponse(data=await report_service.get_booking_analytics(db, window))
