"""
SQLAlchemy model for uploaded receipt images.
"""
from sqlalchemy import Column, String, Text, JSON, Integer, Float, DateTime

from receiptsnap.database import Base, utcnow


class ReceiptModel(Base):
    __tablename__ = "receipts"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    storage_path = Column(String, nullable=False, default="")  # filled after upload
    original_filename = Column(String)
    file_size_bytes = Column(Integer)
    mime_type = Column(String)
    processing_status = Column(String, nullable=False, default="pending")  # pending, processing, completed, failed
    raw_llm_response = Column(JSON)
    error_message = Column(Text)

    # LLM accounting
    llm_model = Column(String)
    llm_input_tokens = Column(Integer)
    llm_output_tokens = Column(Integer)
    llm_tokens_used = Column(Integer)
    llm_cost_usd = Column(Float)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    processed_at = Column(DateTime)
