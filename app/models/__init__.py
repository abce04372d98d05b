# app/models/__init__.py
# Import models in dependency order
from .user import User, Role
from .availability import AvailabilitySlot
from .pricing import PricingModel, PricingType, Subscription, SubscriptionStatus
from .session import Session, SessionStatus, BLOCKING_STATUSES, TERMINAL_STATUSES
from .transaction import Transaction, TransactionAdjustment, TransactionStatus, AdjustmentKind
from .payout import MentorPayout, PayoutItem, PayoutStatus, PayoutMethod
from .audit import AuditLog
from .notification import Notification

__all__ = [
    "User",
    "Role",
    "AvailabilitySlot",
    "PricingModel",
    "PricingType",
    "Subscription",
    "SubscriptionStatus",
    "Session",
    "SessionStatus",
    "BLOCKING_STATUSES",
    "TERMINAL_STATUSES",
    "Transaction",
    "TransactionAdjustment",
    "TransactionStatus",
    "AdjustmentKind",
    "MentorPayout",
    "PayoutItem",
    "PayoutStatus",
    "PayoutMethod",
    "AuditLog",
    "Notification",
]
