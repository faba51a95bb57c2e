# homecare/api/router.py
from fastapi import APIRouter
from homecare.api import (
    routes_auth,
    routes_profiles,
    routes_service_areas,
    routes_slots,
    routes_bookings,
    routes_stats,
)

api_router = APIRouter()
api_router.include_router(routes_auth.router)
api_router.include_router(routes_profiles.router)
api_router.include_router(routes_service_areas.router)
api_router.include_router(routes_slots.router)
api_router.include_router(routes_bookings.router)
api_router.include_router(routes_stats.router)
