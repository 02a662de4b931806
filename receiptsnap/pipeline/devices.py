"""
Push token registration.

A known (user, token) pair is updated in place; a new token retires the
user's other tokens on the same platform.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from receiptsnap.database import utcnow
from receiptsnap.errors import ValidationFailed
from receiptsnap.models import UserDeviceModel

logger = logging.getLogger(__name__)

PLATFORMS = ("android", "ios")


def register_device(
    db: Session,
    user_id: str,
    fcm_token: Optional[str],
    device_platform: Optional[str],
    device_name: Optional[str] = None,
) -> tuple[UserDeviceModel, bool]:
    """Register or refresh a device. Returns ``(device, created)``."""
    if not fcm_token:
        raise ValidationFailed("Missing fcm_token")
    if device_platform not in PLATFORMS:
        raise ValidationFailed("Invalid device_platform (must be android or ios)")

    existing = (
        db.query(UserDeviceModel)
        .filter(UserDeviceModel.user_id == user_id, UserDeviceModel.fcm_token == fcm_token)
        .first()
    )
    if existing:
        existing.device_platform = device_platform
        existing.device_name = device_name or None
        existing.is_active = True
        existing.updated_at = utcnow()
        db.commit()
        logger.info("Updated device %s for user %s", existing.id, user_id)
        return existing, False

    retired = (
        db.query(UserDeviceModel)
        .filter(
            UserDeviceModel.user_id == user_id,
            UserDeviceModel.device_platform == device_platform,
            UserDeviceModel.fcm_token != fcm_token,
            UserDeviceModel.is_active == True,  # noqa: E712
        )
        .update({UserDeviceModel.is_active: False}, synchronize_session=False)
    )

    device = UserDeviceModel(
        id=str(uuid.uuid4()),
        user_id=user_id,
        fcm_token=fcm_token,
        device_platform=device_platform,
        device_name=device_name or None,
        is_active=True,
    )
    db.add(device)
    db.commit()
    logger.info(
        "Registered device %s (%s) for user %s, deactivated %d older token(s)",
        device.id, device_platform, user_id, retired,
    )
    return device, True
