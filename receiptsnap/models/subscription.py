"""
Subscription records created from receipt extractions.
"""
from sqlalchemy import Boolean, Column, Date, DateTime, Float, String, Text

from receiptsnap.database import Base, utcnow


class SubscriptionModel(Base):
    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    receipt_id = Column(String, index=True)  # originating receipt (optional)

    subscription_name = Column(String, nullable=False)
    billing_entity = Column(String)
    amount = Column(Float, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    billing_cycle = Column(String, nullable=False, default="unknown")

    start_date = Column(Date)
    next_charge_date = Column(Date, index=True)
    last_charge_date = Column(Date)
    cancellation_deadline = Column(Date)

    payment_method = Column(String)
    renewal_terms = Column(Text)
    cancellation_policy = Column(Text)

    confidence_score = Column(Float)  # 0.0 - 1.0
    user_verified = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
