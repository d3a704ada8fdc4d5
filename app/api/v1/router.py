"""API v1 router configuration."""

from fastapi import APIRouter

from app.api.v1.endpoints import (
    appointments,
    health,
    notifications,
    patients,
    queue,
    users,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(patients.router, tags=["Patients"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(queue.router, tags=["Queue"])
api_router.include_router(notifications.router, tags=["Notifications"])
api_router.include_router(users.router, tags=["Users"])
