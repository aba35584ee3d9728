"""Device registration API endpoints for push notifications."""
import logging
from typing import List

from fastapi import APIRouter, Depends

from ..deps import get_registry
from ..schemas.device import (
    DeviceRegisterRequest,
    DeviceRegisterResponse,
    DeviceResponse,
    DeviceUnregisterResponse,
    RegistrationStatusResponse,
)
from ..services.registry import DeviceRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/devices", tags=["devices"])


@router.get("", response_model=List[DeviceResponse])
async def list_devices(registry: DeviceRegistry = Depends(get_registry)):
    """List all devices, newest first (for the operator dashboard)."""
    devices = await registry.list_devices()
    return [DeviceResponse.model_validate(device) for device in devices]


@router.post("/register", response_model=DeviceRegisterResponse)
async def register_device(
    request: DeviceRegisterRequest,
    registry: DeviceRegistry = Depends(get_registry),
):
    """Register a device for push notifications.

    If the device id already exists, its token and name are refreshed and it
    is reactivated. The app should call this on every launch to keep the
    token current.
    """
    device = await registry.upsert(
        device_id=request.device_id,
        push_token=request.push_token,
        platform=request.platform,
        device_name=request.device_name,
    )
    return DeviceRegisterResponse(
        success=True,
        message="Device registered successfully",
        device_id=device.device_id,
    )


@router.get("/{device_id}", response_model=RegistrationStatusResponse)
async def check_registration(
    device_id: str,
    registry: DeviceRegistry = Depends(get_registry),
):
    """Check whether a device is registered and active."""
    status = await registry.check_registration(device_id)
    return RegistrationStatusResponse(
        is_registered=status.is_registered,
        is_active=status.is_active,
    )


@router.delete("/{device_id}", response_model=DeviceUnregisterResponse)
async def unregister_device(
    device_id: str,
    registry: DeviceRegistry = Depends(get_registry),
):
    """Unregister a device from push notifications.

    This doesn't delete the record but marks it as inactive.
    """
    await registry.deactivate(device_id)
    return DeviceUnregisterResponse(
        success=True,
        message="Device unregistered successfully",
    )
