# app/models/session.py
import enum

from sqlalchemy import (
    Column, Integer, String, ForeignKey, TIMESTAMP, Numeric, Enum, CheckConstraint, Index, func,
)
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.pricing import PricingType


class SessionStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses that occupy the mentor's calendar.
BLOCKING_STATUSES = (SessionStatus.SCHEDULED, SessionStatus.IN_PROGRESS)
TERMINAL_STATUSES = (SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW)


class Session(Base):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    mentor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    mentee_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    pricing_model_id = Column(Integer, ForeignKey("pricing_models.id", ondelete="SET NULL"), nullable=True)
    start_time = Column(TIMESTAMP, nullable=False)
    scheduled_end = Column(TIMESTAMP, nullable=False)
    status = Column(Enum(SessionStatus), default=SessionStatus.SCHEDULED, nullable=False, index=True)
    pricing_type = Column(Enum(PricingType), nullable=False)
    agreed_price = Column(Numeric(12, 2), nullable=False)
    # Rate and estimate snapshot for HOURLY bookings, so completion does not
    # depend on the pricing model's current price.
    hourly_rate = Column(Numeric(12, 2), nullable=True)
    estimated_minutes = Column(Integer, nullable=True)
    session_link = Column(String(64), unique=True, nullable=False)
    actual_duration = Column(Integer, nullable=True)  # minutes
    end_time = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    __table_args__ = (
        CheckConstraint("mentee_id <> mentor_id", name="check_session_not_self"),
        CheckConstraint("scheduled_end > start_time", name="check_session_end_after_start"),
        CheckConstraint("agreed_price >= 0", name="check_session_price_non_negative"),
        Index("ix_sessions_mentor_status_start", "mentor_id", "status", "start_time"),
    )

    mentor = relationship("User", foreign_keys=[mentor_id], back_populates="mentor_sessions")
    mentee = relationship("User", foreign_keys=[mentee_id], back_populates="mentee_sessions")
    pricing_model = relationship("PricingModel")
    transaction = relationship("Transaction", back_populates="session", uselist=False)

    @property
    def is_blocking(self) -> bool:
        return self.status in BLOCKING_STATUSES
