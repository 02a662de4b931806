from receiptsnap.models.audit_log import AuditLogModel
from receiptsnap.models.device import UserDeviceModel
from receiptsnap.models.notification_log import NotificationLogModel
from receiptsnap.models.receipt import ReceiptModel
from receiptsnap.models.subscription import SubscriptionModel
from receiptsnap.models.user import UserModel

__all__ = [
    "AuditLogModel",
    "NotificationLogModel",
    "ReceiptModel",
    "SubscriptionModel",
    "UserDeviceModel",
    "UserModel",
]
