"""Notification dispatch and history schemas."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import Field

from .base import CamelModel


class SendNotificationRequest(CamelModel):
    """Request to send one notification to a set of devices."""
    device_ids: List[str] = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1)
    data: Optional[Dict[str, Any]] = None


class NotificationTestRequest(CamelModel):
    """Request to send the canned test notification."""
    device_id: str = Field(..., min_length=1)


class DeliveryResultItem(CamelModel):
    """Outcome for one targeted device."""
    device_id: str
    status: str  # sent, failed
    error: Optional[str] = None


class SendNotificationResponse(CamelModel):
    """Aggregate outcome of a dispatch."""
    success: bool
    results: List[DeliveryResultItem]
    total_sent: int
    total_failed: int


class HistoryItem(CamelModel):
    """Delivery record joined with device name and platform."""
    id: int
    device_id: str
    title: str
    body: str
    data: Optional[Dict[str, Any]] = None
    status: str
    created_at: datetime
    device_name: str
    platform: str
