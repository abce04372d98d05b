from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.pricing import PricingType, SubscriptionStatus


# ======================
# PRICING MODELS
# ======================

class PricingModelCreate(BaseModel):
    type: str
    price: Decimal = Field(..., gt=0, le=10000)
    duration: Optional[int] = Field(None, ge=15, le=480)
    description: Optional[str] = Field(None, max_length=200)


class PricingModelUpdate(BaseModel):
    price: Optional[Decimal] = Field(None, gt=0, le=10000)
    duration: Optional[int] = Field(None, ge=15, le=480)
    description: Optional[str] = Field(None, max_length=200)
    is_active: Optional[bool] = None


class PricingModelResponse(BaseModel):
    id: int
    mentor_id: int
    type: PricingType
    price: Decimal
    duration: Optional[int] = None
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ======================
# SUBSCRIPTIONS
# ======================

class SubscriptionResponse(BaseModel):
    id: int
    mentee_id: int
    mentor_id: int
    pricing_model_id: Optional[int] = None
    session_id: Optional[int] = None
    amount: Decimal
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SubscriptionCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)
