# app/models/pricing.py
import enum

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, TIMESTAMP, Numeric, Enum, CheckConstraint, Index, func,
)
from sqlalchemy.orm import relationship
from app.database import Base


class PricingType(str, enum.Enum):
    ONE_TIME = "ONE_TIME"
    HOURLY = "HOURLY"
    MONTHLY_SUBSCRIPTION = "MONTHLY_SUBSCRIPTION"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class PricingModel(Base):
    __tablename__ = "pricing_models"

    id = Column(Integer, primary_key=True, index=True)
    mentor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(PricingType), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    duration = Column(Integer, nullable=True)  # minutes
    description = Column(String(200))
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    __table_args__ = (
        CheckConstraint("price > 0", name="check_pricing_price_positive"),
    )

    mentor = relationship("User", back_populates="pricing_models")


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    mentee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    mentor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    pricing_model_id = Column(Integer, ForeignKey("pricing_models.id", ondelete="SET NULL"), nullable=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Enum(SubscriptionStatus), default=SubscriptionStatus.ACTIVE, nullable=False)
    start_date = Column(TIMESTAMP, nullable=False)
    end_date = Column(TIMESTAMP, nullable=False)
    cancelled_at = Column(TIMESTAMP, nullable=True)
    cancellation_reason = Column(String(255))
    created_at = Column(TIMESTAMP, server_default=func.now())

    __table_args__ = (
        Index("ix_subscriptions_mentee_mentor", "mentee_id", "mentor_id", "status"),
    )

    mentee = relationship("User", foreign_keys=[mentee_id])
    mentor = relationship("User", foreign_keys=[mentor_id])
    pricing_model = relationship("PricingModel")
