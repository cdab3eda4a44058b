"""API v1 router configuration."""

from fastapi import APIRouter

from app.api.v1.endpoints import (
    appointments,
    auth,
    doctors,
    health,
    notifications,
    slots,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(doctors.router, prefix="/doctors", tags=["Doctors"])
api_router.include_router(slots.router, prefix="/slots", tags=["Slots"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(notifications.router, tags=["Notifications"])
