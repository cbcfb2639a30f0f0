"""FastAPI routers package."""

from .availability import router as availability_router
from .booking import router as booking_router
from .health import router as health_router
from .hold import router as hold_router
from .metrics import router as metrics_router
from .schedule import router as schedule_router

__all__ = [
    "availability_router",
    "booking_router",
    "health_router",
    "hold_router",
    "metrics_router",
    "schedule_router",
]
