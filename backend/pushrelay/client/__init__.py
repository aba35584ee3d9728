"""Client-side pieces: local notification history, device identity, API access."""
from .api_client import ApiError, PushRelayClient
from .device_identity import DeviceIdentity
from .notification_store import LocalNotification, LocalNotificationStore
from .storage import JSONFileStorage, KeyValueStorage, MemoryStorage

__all__ = [
    "ApiError",
    "PushRelayClient",
    "DeviceIdentity",
    "LocalNotification",
    "LocalNotificationStore",
    "JSONFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
]
