"""Health check schemas."""
from pydantic import Field

from .base import CamelModel


class HealthStats(CamelModel):
    active_devices: int
    # to_camel would give "notificationsLast24H"
    notifications_last_24h: int = Field(..., alias="notificationsLast24h")


class HealthResponse(CamelModel):
    """Service health with basic usage stats."""
    status: str  # healthy
    timestamp: str
    database: str
    stats: HealthStats
