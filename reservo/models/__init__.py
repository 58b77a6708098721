# Import all models to ensure they are registered with SQLAlchemy
from . import (
    appointment,
    business,
    customer,
    service,
    staff,
    staff_service,
    work_window,
)

__all__ = [
    "appointment",
    "business",
    "customer",
    "service",
    "staff",
    "staff_service",
    "work_window",
]
