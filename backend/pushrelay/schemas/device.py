"""Device registration schemas."""
from datetime import datetime
from pydantic import Field

from .base import CamelModel


class DeviceRegisterRequest(CamelModel):
    """Request to register a device for push notifications."""
    device_id: str = Field(..., min_length=1, max_length=255)
    push_token: str = Field(..., min_length=1)
    platform: str = Field(..., pattern="^(ios|android)$")
    device_name: str = Field(..., min_length=1, max_length=255)


class DeviceRegisterResponse(CamelModel):
    """Response after registering a device."""
    success: bool
    message: str
    device_id: str


class RegistrationStatusResponse(CamelModel):
    """Whether a device id is known and active."""
    is_registered: bool
    is_active: bool


class DeviceUnregisterResponse(CamelModel):
    """Response after unregistering a device."""
    success: bool
    message: str


class DeviceResponse(CamelModel):
    """Device as listed to operators; the push token is never exposed."""
    device_id: str
    device_name: str
    platform: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
