"""NotificationDelivery model - log of push attempts, one row per device."""
from datetime import datetime
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import Base


class NotificationDelivery(Base):
    """Record of a notification sent (or attempted) to one device."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(255), ForeignKey("devices.device_id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    status = Column(String(50), nullable=False, default="sent")  # sent, failed
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    # Relationship
    device = relationship("Device", back_populates="deliveries")
