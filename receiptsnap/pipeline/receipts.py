"""
Receipt processing pipeline.

Orchestrates: receipt row → image upload → LLM extraction → subscription →
audit log. The receipt moves ``processing`` → ``completed | failed`` once;
already committed steps are never rolled back.
"""
from __future__ import annotations

import base64
import binascii
import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy.orm import Session

from receiptsnap.auth import AuthenticatedUser
from receiptsnap.database import utcnow
from receiptsnap.errors import StorageError, UpstreamError, ValidationFailed, truncate
from receiptsnap.models import AuditLogModel, ReceiptModel, SubscriptionModel
from receiptsnap.pipeline.parsing import coerce_number
from receiptsnap.pipeline.pricing import calculate_cost
from receiptsnap.schemas import (
    BillingCycle,
    ExtractionResult,
    ProcessingStatus,
    ProcessReceiptResponse,
    SubscriptionOut,
)
from receiptsnap.storage import ObjectStorage

if TYPE_CHECKING:
    from receiptsnap.clients.fireworks import ExtractionOutcome, FireworksClient

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "receipt.jpg"
DEFAULT_MIME_TYPE = "image/jpeg"
DEFAULT_SUBSCRIPTION_NAME = "Unknown Subscription"
DEFAULT_CURRENCY = "USD"
REVIEW_THRESHOLD = 0.8

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/heic": ".heic",
    "image/gif": ".gif",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def decode_image(image_base64: Optional[str]) -> bytes:
    if not image_base64:
        raise ValidationFailed("Missing image_base64")
    # Tolerate data URIs sent by web clients
    if image_base64.startswith("data:") and "," in image_base64:
        image_base64 = image_base64.split(",", 1)[1]
    try:
        data = base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationFailed("image_base64 is not valid base64")
    if not data:
        raise ValidationFailed("Missing image_base64")
    return data


def storage_path_for(user_id: str, receipt_id: str, mime_type: str) -> str:
    return f"{user_id}/{receipt_id}{_EXTENSIONS.get(mime_type.lower(), '.jpg')}"


def _text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def parse_date(value: Any) -> Optional[date]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        logger.warning("Dropping unparsable date from extraction: %r", value)
        return None


def normalize_billing_cycle(value: Any) -> str:
    try:
        return BillingCycle((_text(value) or "").lower()).value
    except ValueError:
        return BillingCycle.UNKNOWN.value


def requires_review(extraction: ExtractionResult, threshold: float = REVIEW_THRESHOLD) -> bool:
    score = coerce_number(extraction.confidence_score)
    return score is None or score < threshold


def _record_usage(receipt: ReceiptModel, outcome: ExtractionOutcome) -> None:
    receipt.llm_model = outcome.model
    receipt.llm_tokens_used = outcome.tokens_used
    if outcome.token_usage is None:
        return
    usage = outcome.token_usage
    cost = calculate_cost(outcome.model, usage.prompt_tokens, usage.completion_tokens)
    receipt.llm_input_tokens = usage.prompt_tokens
    receipt.llm_output_tokens = usage.completion_tokens
    receipt.llm_cost_usd = cost.total_cost
    logger.info(
        "LLM cost for receipt %s: $%.6f (%d in / %d out)",
        receipt.id, cost.total_cost, usage.prompt_tokens, usage.completion_tokens,
    )


def build_subscription(
    user_id: str, receipt_id: str, extraction: ExtractionResult
) -> SubscriptionModel:
    """Map the model's answer onto column types; unusable values become defaults."""
    return SubscriptionModel(
        id=str(uuid.uuid4()),
        user_id=user_id,
        receipt_id=receipt_id,
        subscription_name=_text(extraction.subscription_name) or DEFAULT_SUBSCRIPTION_NAME,
        billing_entity=_text(extraction.billing_entity),
        amount=coerce_number(extraction.amount) or 0,
        currency=(_text(extraction.currency) or DEFAULT_CURRENCY).upper(),
        billing_cycle=normalize_billing_cycle(extraction.billing_cycle),
        start_date=parse_date(extraction.start_date),
        next_charge_date=parse_date(extraction.next_charge_date),
        cancellation_deadline=parse_date(extraction.cancellation_deadline),
        payment_method=_text(extraction.payment_method),
        renewal_terms=_text(extraction.renewal_terms),
        cancellation_policy=_text(extraction.cancellation_policy),
        confidence_score=coerce_number(extraction.confidence_score),
        user_verified=False,
        is_active=True,
        is_deleted=False,
    )


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def process_receipt(
    db: Session,
    storage: ObjectStorage,
    extractor: FireworksClient,
    user: AuthenticatedUser,
    image_base64: Optional[str],
    filename: Optional[str] = None,
    mime_type: Optional[str] = None,
    review_threshold: float = REVIEW_THRESHOLD,
) -> ProcessReceiptResponse:
    """Run one receipt through upload, extraction and persistence."""
    image_bytes = decode_image(image_base64)
    mime_type = mime_type or DEFAULT_MIME_TYPE

    # 1. Receipt row first; storage_path is filled once the upload lands
    receipt = ReceiptModel(
        id=str(uuid.uuid4()),
        user_id=user.id,
        original_filename=filename or DEFAULT_FILENAME,
        mime_type=mime_type,
        processing_status=ProcessingStatus.PROCESSING.value,
        storage_path="",
    )
    db.add(receipt)
    db.commit()
    logger.info("Pipeline start: receipt %s for user %s", receipt.id, user.id)

    # 2. Durable image before any extraction
    path = storage_path_for(user.id, receipt.id, mime_type)
    try:
        storage.upload(path, image_bytes, content_type=mime_type, upsert=True)
    except StorageError as exc:
        logger.error("Storage upload failed for receipt %s: %s", receipt.id, exc.message)
        receipt.processing_status = ProcessingStatus.FAILED.value
        receipt.error_message = f"Storage upload failed: {exc.message}"
        db.commit()
        raise UpstreamError(f"Failed to upload image: {exc.message}", receipt_id=receipt.id) from exc

    receipt.storage_path = path
    receipt.file_size_bytes = len(image_bytes)
    db.commit()

    # 3. Extraction
    try:
        outcome = extractor.extract(image_bytes, mime_type)
    except Exception as exc:
        logger.exception("Extractor raised for receipt %s", receipt.id)
        receipt.processing_status = ProcessingStatus.FAILED.value
        receipt.error_message = truncate(f"Extraction failed: {exc}")
        receipt.processed_at = utcnow()
        db.commit()
        raise UpstreamError(receipt.error_message, receipt_id=receipt.id) from exc
    _record_usage(receipt, outcome)

    if outcome.error or outcome.extraction is None:
        message = outcome.error or "Extraction failed"
        logger.error("Extraction failed for receipt %s: %s", receipt.id, message)
        receipt.processing_status = ProcessingStatus.FAILED.value
        receipt.error_message = message
        receipt.processed_at = utcnow()
        db.commit()
        raise UpstreamError(message, receipt_id=receipt.id)

    extraction = outcome.extraction
    receipt.processing_status = ProcessingStatus.COMPLETED.value
    receipt.raw_llm_response = extraction.model_dump()
    receipt.processed_at = utcnow()
    db.commit()

    # 4. Subscription + audit trail
    subscription = build_subscription(user.id, receipt.id, extraction)
    db.add(subscription)
    db.flush()
    snapshot = SubscriptionOut.model_validate(subscription)

    db.add(
        AuditLogModel(
            id=str(uuid.uuid4()),
            user_id=user.id,
            entity_type="subscription",
            entity_id=subscription.id,
            action="create",
            new_values=snapshot.model_dump(mode="json"),
        )
    )
    db.commit()
    logger.info(
        "Pipeline done: receipt %s → subscription %s (%s, confidence=%s)",
        receipt.id, subscription.id, subscription.subscription_name, subscription.confidence_score,
    )

    return ProcessReceiptResponse(
        success=True,
        receipt_id=receipt.id,
        subscription=snapshot,
        extracted=extraction,
        requires_review=requires_review(extraction, review_threshold),
    )
