"""
Renewal notification scan.

Run once per interval by an external trigger. Finds active subscriptions
charging in exactly 1 or 3 days, honours each owner's preferences, sends at
most one notification per (subscription, type, UTC day) and logs every
device send attempt.
"""
from __future__ import annotations

import logging
import math
import uuid
from datetime import date, datetime, time, timedelta
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from receiptsnap.database import utcnow
from receiptsnap.models import (
    NotificationLogModel,
    SubscriptionModel,
    UserDeviceModel,
    UserModel,
)
from receiptsnap.schemas import (
    NotificationType,
    NotifyRenewalsResponse,
    RenewalMessage,
    RenewalResult,
    RunSummary,
    SendResult,
)

logger = logging.getLogger(__name__)

REMINDER_OFFSETS = (1, 3)
SECONDS_PER_DAY = 24 * 60 * 60


class Dispatcher(Protocol):
    def send(self, device_token: str, title: str, body: str, data: Optional[dict] = None) -> SendResult: ...

    def build_renewal_message(
        self,
        subscription_name: str,
        amount: float,
        currency: str,
        days_until: int,
        subscription_id: str,
        notification_type: str,
    ) -> RenewalMessage: ...


def days_until(charge_date: date, now: datetime) -> int:
    """Whole days until *charge_date* (midnight UTC), rounded up."""
    delta = datetime.combine(charge_date, time.min) - now
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def notification_type_for(days: int) -> NotificationType:
    return NotificationType.RENEWAL_1D if days == 1 else NotificationType.RENEWAL_3D


def already_notified(db: Session, subscription_id: str, notification_type: str, since: datetime) -> bool:
    return (
        db.query(NotificationLogModel.id)
        .filter(
            NotificationLogModel.subscription_id == subscription_id,
            NotificationLogModel.notification_type == notification_type,
            NotificationLogModel.created_at >= since,
        )
        .first()
        is not None
    )


def _skip(sub: SubscriptionModel, reason: str) -> RenewalResult:
    logger.info("Skipping subscription %s: %s", sub.id, reason)
    return RenewalResult(subscription_id=sub.id, user_id=sub.user_id, status="skipped", reason=reason)


def notify_subscription(
    db: Session,
    dispatcher: Dispatcher,
    sub: SubscriptionModel,
    owner: UserModel,
    now: datetime,
) -> RenewalResult:
    start_of_today = datetime.combine(now.date(), time.min)
    days = days_until(sub.next_charge_date, now)
    notification_type = notification_type_for(days).value

    prefs = owner.notification_preferences or {}
    if not prefs.get(notification_type):
        return _skip(sub, "User disabled this notification type")

    if already_notified(db, sub.id, notification_type, start_of_today):
        return _skip(sub, "Already notified today")

    devices = (
        db.query(UserDeviceModel)
        .filter(UserDeviceModel.user_id == sub.user_id, UserDeviceModel.is_active == True)  # noqa: E712
        .order_by(UserDeviceModel.created_at)
        .all()
    )
    if not devices:
        return _skip(sub, "No active devices")

    message = dispatcher.build_renewal_message(
        sub.subscription_name,
        sub.amount or 0,
        sub.currency,
        days,
        sub.id,
        notification_type,
    )

    sent = failed = 0
    for device in devices:
        result = dispatcher.send(device.fcm_token, message.title, message.body, message.data)
        if result.ok:
            sent += 1
        else:
            failed += 1
            logger.error("FCM error for subscription %s device %s: %s", sub.id, device.id, result.error)

        db.add(
            NotificationLogModel(
                id=str(uuid.uuid4()),
                user_id=sub.user_id,
                subscription_id=sub.id,
                notification_type=notification_type,
                fcm_message_id=result.message_id if result.ok else None,
                status="sent" if result.ok else "failed",
                error_message=result.error,
                created_at=now,
            )
        )
        db.commit()

    # One reached device is enough for the subscription to count as sent
    return RenewalResult(
        subscription_id=sub.id,
        user_id=sub.user_id,
        status="sent" if sent > 0 else "failed",
        reason=f"Sent: {sent}, Failed: {failed}",
    )


def summarize(results: list[RenewalResult]) -> RunSummary:
    return RunSummary(
        total=len(results),
        sent=sum(1 for r in results if r.status == "sent"),
        failed=sum(1 for r in results if r.status == "failed"),
        skipped=sum(1 for r in results if r.status == "skipped"),
    )


def run_renewal_scan(
    db: Session,
    dispatcher: Dispatcher,
    now: Optional[datetime] = None,
) -> NotifyRenewalsResponse:
    """Notify owners of subscriptions renewing in 1 or 3 days.

    *now* is a naive UTC datetime; it defaults to the current time.
    """
    now = now or utcnow()
    targets = [now.date() + timedelta(days=offset) for offset in REMINDER_OFFSETS]
    logger.info("Checking renewals for %s", ", ".join(d.isoformat() for d in targets))

    rows = (
        db.query(SubscriptionModel, UserModel)
        .join(UserModel, UserModel.id == SubscriptionModel.user_id)
        .filter(
            SubscriptionModel.is_active == True,  # noqa: E712
            SubscriptionModel.is_deleted == False,  # noqa: E712
            SubscriptionModel.next_charge_date.in_(targets),
        )
        .order_by(SubscriptionModel.next_charge_date, SubscriptionModel.created_at)
        .all()
    )
    logger.info("Found %d subscriptions to notify", len(rows))

    results = [notify_subscription(db, dispatcher, sub, owner, now) for sub, owner in rows]
    summary = summarize(results)
    logger.info(
        "Notification summary: total=%d sent=%d failed=%d skipped=%d",
        summary.total, summary.sent, summary.failed, summary.skipped,
    )
    return NotifyRenewalsResponse(success=True, summary=summary, results=results)
