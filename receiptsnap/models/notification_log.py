"""
Append-only ledger of push send attempts.
"""
from sqlalchemy import Column, DateTime, String, Text

from receiptsnap.database import Base, utcnow


class NotificationLogModel(Base):
    __tablename__ = "notification_logs"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    subscription_id = Column(String, nullable=False, index=True)
    notification_type = Column(String, nullable=False)  # renewal_1d, renewal_3d
    fcm_message_id = Column(String)
    status = Column(String, nullable=False)  # sent, failed
    error_message = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
