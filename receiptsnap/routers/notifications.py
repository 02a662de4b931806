"""
Renewal reminder endpoint, called by an external scheduler.

POST /api/notify-renewals: scan due subscriptions and push reminders
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from receiptsnap.clients import FcmClient
from receiptsnap.database import get_db
from receiptsnap.dependencies import get_dispatcher
from receiptsnap.errors import error_response
from receiptsnap.pipeline import run_renewal_scan
from receiptsnap.schemas import ErrorResponse, NotifyRenewalsResponse

logger = logging.getLogger(__name__)
router = APIRouter()


# ── POST /api/notify-renewals ────────────────────────────────────────────
@router.post(
    "/notify-renewals",
    response_model=NotifyRenewalsResponse,
    responses={500: {"model": ErrorResponse}},
)
def notify_renewals(
    db: Session = Depends(get_db),
    dispatcher: FcmClient = Depends(get_dispatcher),
):
    try:
        return run_renewal_scan(db, dispatcher)
    except Exception as exc:
        db.rollback()
        return error_response(exc)
