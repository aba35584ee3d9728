"""Main FastAPI application for device registration and push fan-out."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .database import Database
from .errors import NoActiveDevicesError, StorageError
from .routers import devices_router, notifications_router, health_router
from .services.dispatcher import FanoutDispatcher
from .services.push_gateway import PushGateway, build_gateway
from .services.registry import DeviceRegistry
from .utils.rate_limit import build_limiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _make_lifespan(database: Optional[Database], gateway: Optional[PushGateway]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown."""
        logger.info("Starting PushRelay")

        db = database or Database()
        await db.init()
        logger.info("Database initialized")

        push_gateway = gateway or build_gateway(settings)
        registry = DeviceRegistry(db.session_factory)
        app.state.registry = registry
        app.state.dispatcher = FanoutDispatcher(
            registry,
            push_gateway,
            db.session_factory,
            max_concurrency=settings.max_concurrent_deliveries,
        )
        app.state.history_limit = settings.history_limit

        yield

        # Shutdown
        await push_gateway.close()
        await db.close()
        logger.info("Shutdown complete")

    return lifespan


def _error_body(request: Request, message: str) -> dict:
    return {
        "error": message,
        "timestamp": datetime.utcnow().isoformat(),
        "path": request.url.path,
    }


def register_exception_handlers(app: FastAPI):
    """Map domain errors onto HTTP responses."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
                "msg": err.get("msg"),
            }
            for err in exc.errors()
        ]
        logger.info(f"Rejected request to {request.url.path}: {len(errors)} validation error(s)")
        return JSONResponse(status_code=400, content={"errors": errors})

    @app.exception_handler(NoActiveDevicesError)
    async def no_active_devices_handler(request: Request, exc: NoActiveDevicesError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"Storage error on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content=_error_body(request, str(exc)))

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded on {request.url.path}: {exc.detail}")
        content = _error_body(request, "Too many requests from this IP, please try again later.")
        content["detail"] = str(exc.detail)
        return JSONResponse(status_code=429, content=content)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(status_code=500, content=_error_body(request, "Internal server error"))


def create_app(
    database: Optional[Database] = None,
    gateway: Optional[PushGateway] = None,
    rate_limit: Optional[str] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``database`` and ``gateway`` default to ones built from settings at
    startup; tests pass their own. ``rate_limit`` defaults to
    ``settings.rate_limit``.
    """
    app = FastAPI(
        title="PushRelay",
        description="Register mobile devices and fan out push notifications",
        version="1.0.0",
        lifespan=_make_lifespan(database, gateway),
    )

    # Each app gets its own limiter and counters
    app.state.limiter = build_limiter(rate_limit or settings.rate_limit)
    app.add_middleware(SlowAPIMiddleware)

    # CORS middleware for the operator dashboard
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to your domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(devices_router)
    app.include_router(notifications_router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
