"""
Push token registration endpoint.

POST /api/update-fcm-token: register or refresh a device token
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from receiptsnap.auth import AuthenticatedUser, get_current_user
from receiptsnap.database import get_db
from receiptsnap.errors import error_response
from receiptsnap.pipeline import register_device
from receiptsnap.schemas import ErrorResponse, UpdateFcmTokenRequest, UpdateFcmTokenResponse

logger = logging.getLogger(__name__)
router = APIRouter()


# ── POST /api/update-fcm-token ───────────────────────────────────────────
@router.post(
    "/update-fcm-token",
    response_model=UpdateFcmTokenResponse,
    responses={code: {"model": ErrorResponse} for code in (400, 401, 500)},
)
def update_fcm_token(
    req: UpdateFcmTokenRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        device, created = register_device(
            db, user.id, req.fcm_token, req.device_platform, req.device_name
        )
    except Exception as exc:
        db.rollback()
        return error_response(exc)

    return UpdateFcmTokenResponse(
        success=True,
        device_id=device.id,
        message="FCM token registered" if created else "FCM token updated",
    )
