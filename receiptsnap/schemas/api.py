"""
Request / response bodies of the HTTP entry points.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from receiptsnap.schemas.base import ExtractionResult


class ProcessReceiptRequest(BaseModel):
    # Optional so a missing image is reported as a 400, not a schema error
    image_base64: Optional[str] = None
    filename: Optional[str] = None
    mime_type: Optional[str] = None


class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    receipt_id: Optional[str] = None
    subscription_name: str
    billing_entity: Optional[str] = None
    amount: float
    currency: str
    billing_cycle: str
    start_date: Optional[date] = None
    next_charge_date: Optional[date] = None
    last_charge_date: Optional[date] = None
    cancellation_deadline: Optional[date] = None
    payment_method: Optional[str] = None
    renewal_terms: Optional[str] = None
    cancellation_policy: Optional[str] = None
    is_active: bool
    is_deleted: bool
    confidence_score: Optional[float] = None
    user_verified: bool
    created_at: datetime
    updated_at: datetime


class ProcessReceiptResponse(BaseModel):
    success: bool = True
    receipt_id: str
    subscription: SubscriptionOut
    extracted: ExtractionResult
    requires_review: bool


class UpdateFcmTokenRequest(BaseModel):
    fcm_token: Optional[str] = None
    device_platform: Optional[str] = None
    device_name: Optional[str] = None


class UpdateFcmTokenResponse(BaseModel):
    success: bool = True
    device_id: str
    message: str


class RenewalResult(BaseModel):
    subscription_id: str
    user_id: str
    status: Literal["sent", "failed", "skipped"]
    reason: Optional[str] = None


class RunSummary(BaseModel):
    total: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0


class NotifyRenewalsResponse(BaseModel):
    success: bool = True
    summary: RunSummary
    results: List[RenewalResult]


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    receipt_id: Optional[str] = None
