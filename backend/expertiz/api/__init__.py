"""API routes."""
from fastapi import APIRouter

from expertiz.api import admin, auth, notifications, payments, report, users

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(report.router, prefix="/report", tags=["Reports"])
api_router.include_router(users.router, prefix="/user", tags=["User"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
