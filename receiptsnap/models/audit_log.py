"""
Audit trail of entity changes.
"""
from sqlalchemy import Column, DateTime, JSON, String

from receiptsnap.database import Base, utcnow


class AuditLogModel(Base):
    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    entity_type = Column(String, nullable=False)  # subscription, receipt
    entity_id = Column(String, nullable=False)
    action = Column(String, nullable=False)  # create, update, delete
    old_values = Column(JSON)
    new_values = Column(JSON)
    created_at = Column(DateTime, default=utcnow, nullable=False)
