# app/models/payout.py
import enum

from sqlalchemy import Column, Integer, String, ForeignKey, TIMESTAMP, Numeric, Enum, func
from sqlalchemy.orm import relationship
from app.database import Base


class PayoutStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PayoutMethod(str, enum.Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"
    STRIPE = "stripe"


# Methods settled by the platform itself; the rest wait for gateway confirmation.
SYNCHRONOUS_PAYOUT_METHODS = (PayoutMethod.MANUAL, PayoutMethod.AUTOMATIC)


class MentorPayout(Base):
    __tablename__ = "mentor_payouts"

    id = Column(Integer, primary_key=True, index=True)
    mentor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    requested_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Enum(PayoutStatus), default=PayoutStatus.PENDING, nullable=False, index=True)
    payout_method = Column(String(30), nullable=False)
    trigger_type = Column(String(30), nullable=False, default="manual_request")
    failure_reason = Column(String(255))
    created_at = Column(TIMESTAMP, server_default=func.now())
    processed_at = Column(TIMESTAMP, nullable=True)

    items = relationship("PayoutItem", back_populates="payout", cascade="all, delete-orphan")

    @property
    def transaction_ids(self) -> set:
        return {item.transaction_id for item in self.items}


class PayoutItem(Base):
    """Membership of a transaction in a payout's transaction set.

    The unique index on transaction_id is what guarantees a transaction is
    settled by at most one payout, even when two requests race.
    """

    __tablename__ = "payout_transactions"

    id = Column(Integer, primary_key=True, index=True)
    payout_id = Column(Integer, ForeignKey("mentor_payouts.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, unique=True)

    payout = relationship("MentorPayout", back_populates="items")
    transaction = relationship("Transaction")
