"""Services for device registration and push fan-out."""
from .registry import DeviceRegistry
from .dispatcher import FanoutDispatcher
from .push_gateway import PushGateway, PlatformGateway, APNsGateway, FCMGateway

__all__ = ["DeviceRegistry", "FanoutDispatcher", "PushGateway", "PlatformGateway", "APNsGateway", "FCMGateway"]
