# app/schemas/__init__.py

# Auth schemas
from .auth import Token, TokenData, LoginRequest, RegisterRequest

# Availability schemas
from .availability import (
    AvailabilitySlotCreate,
    AvailabilitySlotUpdate,
    AvailabilitySlotResponse,
    TimeWindow,
    DayAvailability,
)

# Pricing and subscription schemas
from .pricing import (
    PricingModelCreate,
    PricingModelUpdate,
    PricingModelResponse,
    SubscriptionResponse,
    SubscriptionCancel,
)

# Payment schemas
from .payment import TransactionResponse, PaymentWebhookEvent

# Session schemas
from .session import BookingRequest, SessionStatusUpdate, SessionResponse, BookingResponse

# Notification schemas
from .notification import NotificationResponse, UnreadCount, MarkedRead

# Earnings and payout schemas
from .earnings import (
    EarningsSummary,
    EarningsHistory,
    EarningsHistoryItem,
    TaxReport,
    PayoutRequest,
    PayoutEvent,
    PayoutResponse,
    PayoutList,
)

__all__ = [
    "Token",
    "TokenData",
    "LoginRequest",
    "RegisterRequest",
    "AvailabilitySlotCreate",
    "AvailabilitySlotUpdate",
    "AvailabilitySlotResponse",
    "TimeWindow",
    "DayAvailability",
    "PricingModelCreate",
    "PricingModelUpdate",
    "PricingModelResponse",
    "SubscriptionResponse",
    "SubscriptionCancel",
    "TransactionResponse",
    "PaymentWebhookEvent",
    "BookingRequest",
    "SessionStatusUpdate",
    "SessionResponse",
    "BookingResponse",
    "EarningsSummary",
    "EarningsHistory",
    "EarningsHistoryItem",
    "TaxReport",
    "PayoutRequest",
    "PayoutEvent",
    "PayoutResponse",
    "PayoutList",
    "NotificationResponse",
    "UnreadCount",
    "MarkedRead",
]
