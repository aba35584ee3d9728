"""Pydantic schemas for API request/response models."""
from .device import (
    DeviceRegisterRequest,
    DeviceRegisterResponse,
    RegistrationStatusResponse,
    DeviceUnregisterResponse,
    DeviceResponse,
)
from .notification import (
    SendNotificationRequest,
    NotificationTestRequest,
    DeliveryResultItem,
    SendNotificationResponse,
    HistoryItem,
)
from .health import (
    HealthResponse,
    HealthStats,
)

__all__ = [
    "DeviceRegisterRequest",
    "DeviceRegisterResponse",
    "RegistrationStatusResponse",
    "DeviceUnregisterResponse",
    "DeviceResponse",
    "SendNotificationRequest",
    "NotificationTestRequest",
    "DeliveryResultItem",
    "SendNotificationResponse",
    "HistoryItem",
    "HealthResponse",
    "HealthStats",
]
