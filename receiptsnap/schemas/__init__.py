from receiptsnap.schemas.base import (  # noqa: F401
    LOW_CONFIDENCE_CAP,
    UNKNOWN_NAME,
    BillingCycle,
    CostCalculation,
    ExtractionResult,
    NotificationType,
    ProcessingStatus,
    RenewalMessage,
    SendResult,
    TokenUsage,
)
from receiptsnap.schemas.api import (  # noqa: F401
    ErrorResponse,
    NotifyRenewalsResponse,
    ProcessReceiptRequest,
    ProcessReceiptResponse,
    RenewalResult,
    RunSummary,
    SubscriptionOut,
    UpdateFcmTokenRequest,
    UpdateFcmTokenResponse,
)
