from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.payout import PayoutStatus
from app.models.pricing import PricingType


# ======================
# EARNINGS
# ======================

class EarningsSummary(BaseModel):
    total_earnings: Decimal
    available_for_payout: Decimal
    pending_payouts: Decimal
    processed_payouts: Decimal
    sessions_completed: int
    average_session_earnings: Decimal


class EarningsHistoryItem(BaseModel):
    transaction_id: int
    session_id: int
    pricing_type: Optional[PricingType] = None
    session_start: Optional[datetime] = None
    amount: Decimal
    platform_fee: Decimal
    mentor_earnings: Decimal
    completed_at: Optional[datetime] = None
    settled: bool


class EarningsHistory(BaseModel):
    items: List[EarningsHistoryItem]
    total: int
    page: int
    limit: int


class TaxReportLine(BaseModel):
    transaction_id: int
    session_id: int
    completed_at: Optional[datetime] = None
    amount: Decimal
    platform_fee: Decimal
    mentor_earnings: Decimal


class TaxReport(BaseModel):
    mentor_id: int
    year: int
    month: Optional[int] = None
    period_start: datetime
    period_end: datetime
    transaction_count: int
    gross_amount: Decimal
    platform_fees: Decimal
    net_earnings: Decimal
    transactions: List[TaxReportLine]


# ======================
# PAYOUTS
# ======================

class PayoutRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payout_method: str = "manual"


class PayoutEvent(BaseModel):
    status: PayoutStatus
    failure_reason: Optional[str] = Field(None, max_length=255)


class PayoutResponse(BaseModel):
    id: int
    mentor_id: int
    amount: Decimal
    requested_amount: Decimal
    status: PayoutStatus
    payout_method: str
    trigger_type: str
    transaction_ids: List[int]
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_payout(cls, payout) -> "PayoutResponse":
        return cls(
            id=payout.id,
            mentor_id=payout.mentor_id,
            amount=payout.amount,
            requested_amount=payout.requested_amount,
            status=payout.status,
            payout_method=payout.payout_method,
            trigger_type=payout.trigger_type,
            transaction_ids=sorted(payout.transaction_ids),
            failure_reason=payout.failure_reason,
            created_at=payout.created_at,
            processed_at=payout.processed_at,
        )


class PayoutList(BaseModel):
    items: List[PayoutResponse]
    total: int
    page: int
    limit: int
