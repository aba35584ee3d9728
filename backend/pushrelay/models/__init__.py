"""Database models."""
from .device import Device
from .notification_delivery import NotificationDelivery

__all__ = ["Device", "NotificationDelivery"]
