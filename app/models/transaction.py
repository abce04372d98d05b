# app/models/transaction.py
import enum

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, TIMESTAMP, Numeric, Enum, CheckConstraint, func,
)
from sqlalchemy.orm import relationship
from app.database import Base


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class AdjustmentKind(str, enum.Enum):
    REFUND = "REFUND"
    ADDITIONAL_CHARGE = "ADDITIONAL_CHARGE"
    NONE = "NONE"


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    # One transaction per session.
    session_id = Column(Integer, ForeignKey("sessions.id"), unique=True, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    platform_fee = Column(Numeric(12, 2), nullable=False)
    mentor_earnings = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(Enum(TransactionStatus), default=TransactionStatus.PENDING, nullable=False, index=True)
    payment_method = Column(String(30), nullable=False)
    gateway_reference = Column(String(255), nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
    completed_at = Column(TIMESTAMP, nullable=True)
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_transaction_amount_non_negative"),
    )

    session = relationship("Session", back_populates="transaction")
    adjustments = relationship("TransactionAdjustment", back_populates="transaction", cascade="all, delete-orphan")


class TransactionAdjustment(Base):
    """Delta between the booked estimate and the final charge of an HOURLY session."""

    __tablename__ = "transaction_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    previous_amount = Column(Numeric(12, 2), nullable=False)
    new_amount = Column(Numeric(12, 2), nullable=False)
    delta = Column(Numeric(12, 2), nullable=False)
    kind = Column(Enum(AdjustmentKind), nullable=False)
    actual_minutes = Column(Integer, nullable=False)
    # False when the transaction was already settled and could not be corrected.
    applied = Column(Boolean, default=True, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())

    transaction = relationship("Transaction", back_populates="adjustments")
