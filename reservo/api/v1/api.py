from fastapi import APIRouter

from reservo.api.v1.endpoints import (
    appointments,
    availability,
    bookings,
    work_windows,
)

api_router = APIRouter()

# Slot search
api_router.include_router(
    availability.router, prefix="/availability", tags=["availability"]
)

# Booking commits
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])

# Appointment lifecycle
api_router.include_router(
    appointments.router, prefix="/appointments", tags=["appointments"]
)

# Staff schedules
api_router.include_router(work_windows.router, prefix="/staff", tags=["work-windows"])
