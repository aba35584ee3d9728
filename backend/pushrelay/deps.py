"""FastAPI dependencies resolving the handles built at startup."""
from fastapi import Request

from .services.dispatcher import FanoutDispatcher
from .services.registry import DeviceRegistry


def get_registry(request: Request) -> DeviceRegistry:
    """Device registry attached to the running application."""
    return request.app.state.registry


def get_dispatcher(request: Request) -> FanoutDispatcher:
    """Fan-out dispatcher attached to the running application."""
    return request.app.state.dispatcher
