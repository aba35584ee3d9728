"""Device model - registered client devices and their push tokens."""
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import Base


class Device(Base):
    """Registered device for push notifications.

    Rows are never physically deleted; unregistering clears ``is_active``
    so delivery records keep a valid reference.
    """

    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(255), unique=True, nullable=False, index=True)
    push_token = Column(Text, nullable=False)
    platform = Column(String(50), nullable=False)  # ios, android
    device_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationship
    deliveries = relationship("NotificationDelivery", back_populates="device")
