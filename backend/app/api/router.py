"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from app.api.routes import auth, bookings, notifications, payments, reports, rooms, users

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(rooms.router)
api_router.include_router(bookings.router)
api_router.include_router(payments.router)
api_router.include_router(notifications.router)
api_router.include_router(reports.router)
api_router.include_router(users.router)
