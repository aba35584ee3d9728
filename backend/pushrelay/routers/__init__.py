"""API routers."""
from .devices import router as devices_router
from .notifications import router as notifications_router
from .health import router as health_router

__all__ = ["devices_router", "notifications_router", "health_router"]
