"""
Core value types shared by the extraction client, the pipeline and the API.

All pipeline stages produce and consume these Pydantic v2 models.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


UNKNOWN_NAME = "Unknown"
LOW_CONFIDENCE_CAP = 0.3


class BillingCycle(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi_annual"
    ANNUAL = "annual"
    ONE_TIME = "one_time"
    UNKNOWN = "unknown"


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class NotificationType(str, Enum):
    RENEWAL_1D = "renewal_1d"
    RENEWAL_3D = "renewal_3d"


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class ExtractionResult(BaseModel):
    """Subscription terms read off a receipt by the vision model.

    Fields hold exactly what the model returned: no type coercion, and extra
    keys are kept. Conversion to column types happens when the subscription
    row is built.
    """
    model_config = ConfigDict(extra="allow")

    subscription_name: Any = None
    billing_entity: Any = None
    amount: Any = None
    currency: Any = None
    billing_cycle: Any = None
    start_date: Any = None
    next_charge_date: Any = None
    payment_method: Any = None
    renewal_terms: Any = None
    cancellation_policy: Any = None
    cancellation_deadline: Any = None
    confidence_score: Any = None
    raw_text: Any = None

    @property
    def has_usable_name(self) -> bool:
        if not isinstance(self.subscription_name, str):
            return False
        name = self.subscription_name.strip()
        return bool(name) and name != UNKNOWN_NAME


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class CostCalculation(BaseModel):
    input_cost: float
    output_cost: float
    total_cost: float
    input_price_per_million: float
    output_price_per_million: float


# ---------------------------------------------------------------------------
# Push messages
# ---------------------------------------------------------------------------

class RenewalMessage(BaseModel):
    title: str
    body: str
    data: dict[str, str] = Field(default_factory=dict)


class SendResult(BaseModel):
    """Outcome of one push send. Failures are data, never exceptions."""
    message_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None
