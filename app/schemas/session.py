from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from app.models.pricing import PricingType
from app.models.session import SessionStatus
from app.schemas.payment import TransactionResponse
from app.schemas.pricing import SubscriptionResponse

# ======================
# SESSION REQUEST MODELS
# ======================

class BookingRequest(BaseModel):
    mentor_id: int
    pricing_model_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    estimated_minutes: Optional[int] = Field(None, ge=1)
    payment_method: str = "platform_credit"

# ======================
# SESSION UPDATE MODELS
# ======================

class SessionStatusUpdate(BaseModel):
    status: SessionStatus
    # Actual end for COMPLETED; defaults to now.
    end_time: Optional[datetime] = None

# ======================
# SESSION RESPONSE MODELS
# ======================

class SessionResponse(BaseModel):
    id: int
    mentor_id: int
    mentee_id: int
    pricing_model_id: Optional[int] = None
    start_time: datetime
    scheduled_end: datetime
    status: SessionStatus
    pricing_type: PricingType
    agreed_price: Decimal
    session_link: str
    actual_duration: Optional[int] = None
    end_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookingResponse(BaseModel):
    session: SessionResponse
    transaction: TransactionResponse
    subscription: Optional[SubscriptionResponse] = None

    model_config = ConfigDict(from_attributes=True)
