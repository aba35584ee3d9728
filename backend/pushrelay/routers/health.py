"""Health check endpoint."""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..deps import get_dispatcher, get_registry
from ..errors import StorageError
from ..schemas.health import HealthResponse, HealthStats
from ..services.dispatcher import FanoutDispatcher
from ..services.registry import DeviceRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("", response_model=HealthResponse)
async def health_check(
    registry: DeviceRegistry = Depends(get_registry),
    dispatcher: FanoutDispatcher = Depends(get_dispatcher),
):
    """Report database connectivity and basic stats."""
    try:
        counts = await registry.count()
        recent = await dispatcher.count_since(hours=24)
    except StorageError as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "timestamp": datetime.utcnow().isoformat(),
                "error": str(e),
            },
        )

    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow().isoformat(),
        database="connected",
        stats=HealthStats(active_devices=counts.active, notifications_last_24h=recent),
    )
