from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.transaction import TransactionStatus


class TransactionResponse(BaseModel):
    id: int
    session_id: int
    amount: Decimal
    platform_fee: Decimal
    mentor_earnings: Decimal
    currency: str
    status: TransactionStatus
    payment_method: str
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentWebhookEvent(BaseModel):
    """Gateway callback: eventType is payment.success / payment.failed / payment.pending."""
    event_type: str = Field(..., alias="eventType")
    transaction_id: int = Field(..., alias="transactionId")
    gateway_transaction_id: Optional[str] = Field(None, alias="gatewayTransactionId")

    model_config = ConfigDict(populate_by_name=True)
