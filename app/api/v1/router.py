"""API v1 router configuration."""

from fastapi import APIRouter

from app.api.v1.endpoints import appointments, health, slots, waitlist

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(slots.router, prefix="/slots", tags=["Time Slots"])
api_router.include_router(waitlist.router, prefix="/waitlist", tags=["Waitlist"])
