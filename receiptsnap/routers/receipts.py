"""
Receipt upload endpoint.

POST /api/process-receipt: image → stored receipt → extracted subscription
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from receiptsnap.auth import AuthenticatedUser, get_current_user
from receiptsnap.clients import FireworksClient
from receiptsnap.config import settings
from receiptsnap.database import get_db
from receiptsnap.dependencies import get_extractor, get_storage
from receiptsnap.errors import error_response
from receiptsnap.pipeline import process_receipt
from receiptsnap.schemas import ErrorResponse, ProcessReceiptRequest, ProcessReceiptResponse
from receiptsnap.storage import ObjectStorage

logger = logging.getLogger(__name__)
router = APIRouter()

ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (400, 401, 500)}


# ── POST /api/process-receipt ────────────────────────────────────────────
@router.post(
    "/process-receipt",
    response_model=ProcessReceiptResponse,
    responses=ERROR_RESPONSES,
)
def process_receipt_endpoint(
    req: ProcessReceiptRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    extractor: FireworksClient = Depends(get_extractor),
):
    logger.info("process-receipt: user=%s filename=%s", user.id, req.filename)
    try:
        return process_receipt(
            db,
            storage,
            extractor,
            user,
            image_base64=req.image_base64,
            filename=req.filename,
            mime_type=req.mime_type,
            review_threshold=settings.REVIEW_CONFIDENCE_THRESHOLD,
        )
    except Exception as exc:
        db.rollback()
        return error_response(exc)
