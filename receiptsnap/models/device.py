"""
Push notification device registrations.
"""
from sqlalchemy import Boolean, Column, DateTime, String

from receiptsnap.database import Base, utcnow


class UserDeviceModel(Base):
    __tablename__ = "user_devices"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    fcm_token = Column(String, nullable=False, index=True)
    device_platform = Column(String, nullable=False)  # android, ios
    device_name = Column(String)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
