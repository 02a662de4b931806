"""
Application user, mirrored from the identity provider on first request.
"""
from sqlalchemy import Column, String, JSON, DateTime

from receiptsnap.database import Base, utcnow


def default_notification_preferences() -> dict:
    return {"renewal_3d": True, "renewal_1d": True, "weekly_summary": True}


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)  # identity provider subject
    email = Column(String, nullable=False, default="")
    display_name = Column(String)
    timezone = Column(String, nullable=False, default="UTC")
    notification_preferences = Column(JSON, nullable=False, default=default_notification_preferences)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
