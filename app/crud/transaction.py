# app/crud/transaction.py
"""
Transaction repository.

Transactions are created once per session and afterwards only change
status; the one exception is the hourly usage correction applied through
`apply_amount_correction` before settlement.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app import models
from app.models.pricing import PricingType
from app.models.transaction import AdjustmentKind, TransactionStatus


# =====================================
# QUERIES
# =====================================

def get_transaction(db: Session, transaction_id: int) -> Optional[models.Transaction]:
    return db.query(models.Transaction).filter(models.Transaction.id == transaction_id).first()


def get_transaction_by_session(db: Session, session_id: int) -> Optional[models.Transaction]:
    return db.query(models.Transaction).filter(models.Transaction.session_id == session_id).first()


def find_unsettled_transactions(db: Session, mentor_id: int) -> List[models.Transaction]:
    """
    COMPLETED transactions of a mentor that no payout references yet.

    Args:
        db: Database session
        mentor_id: Mentor user ID

    Returns:
        Transactions oldest first (created_at, then id) for FIFO selection
    """
    return db.query(models.Transaction).join(
        models.Session, models.Session.id == models.Transaction.session_id
    ).outerjoin(
        models.PayoutItem, models.PayoutItem.transaction_id == models.Transaction.id
    ).filter(
        models.Session.mentor_id == mentor_id,
        models.Transaction.status == TransactionStatus.COMPLETED,
        models.PayoutItem.id.is_(None),
    ).order_by(
        models.Transaction.created_at.asc(), models.Transaction.id.asc()
    ).all()


def list_completed_transactions(
    db: Session,
    mentor_id: int,
    *,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    pricing_type: Optional[PricingType] = None,
) -> List[models.Transaction]:
    """
    COMPLETED transactions of a mentor, newest first.

    Args:
        db: Database session
        mentor_id: Mentor user ID
        since: Inclusive lower bound on completed_at
        until: Exclusive upper bound on completed_at
        pricing_type: Restrict to sessions booked under this pricing type

    Returns:
        List of Transaction objects
    """
    query = db.query(models.Transaction).join(
        models.Session, models.Session.id == models.Transaction.session_id
    ).filter(
        models.Session.mentor_id == mentor_id,
        models.Transaction.status == TransactionStatus.COMPLETED,
    )
    if since is not None:
        query = query.filter(models.Transaction.completed_at >= since)
    if until is not None:
        query = query.filter(models.Transaction.completed_at < until)
    if pricing_type is not None:
        query = query.filter(models.Session.pricing_type == pricing_type)
    return query.order_by(
        models.Transaction.completed_at.desc(), models.Transaction.id.desc()
    ).all()


def is_settled(db: Session, transaction_id: int) -> bool:
    return db.query(models.PayoutItem).filter(
        models.PayoutItem.transaction_id == transaction_id
    ).first() is not None


# =====================================
# WRITES
# =====================================

def create_transaction(
    db: Session,
    *,
    session_id: int,
    amount,
    platform_fee,
    mentor_earnings,
    payment_method: str,
    currency: str = "USD",
    status: TransactionStatus = TransactionStatus.PENDING,
    completed_at: Optional[datetime] = None,
) -> models.Transaction:
    """
    Insert the transaction of a session with its fee split frozen.

    Args:
        db: Database session
        session_id: Session being paid for
        amount: Gross charge
        platform_fee: Platform share
        mentor_earnings: Mentor share (amount - platform_fee)
        payment_method: Method label supplied by the payer
        currency: ISO currency code
        status: Initial status
        completed_at: Set when the transaction starts COMPLETED

    Returns:
        Flushed Transaction with an ID
    """
    transaction = models.Transaction(
        session_id=session_id,
        amount=amount,
        platform_fee=platform_fee,
        mentor_earnings=mentor_earnings,
        currency=currency,
        status=status,
        payment_method=payment_method,
        completed_at=completed_at,
    )
    db.add(transaction)
    db.flush()
    return transaction


def update_transaction_status(
    db: Session,
    transaction: models.Transaction,
    new_status: TransactionStatus,
    *,
    completed_at: Optional[datetime] = None,
    gateway_reference: Optional[str] = None,
) -> models.Transaction:
    transaction.status = new_status
    if completed_at is not None:
        transaction.completed_at = completed_at
    if gateway_reference:
        transaction.gateway_reference = gateway_reference
    db.flush()
    return transaction


def apply_amount_correction(
    db: Session,
    transaction: models.Transaction,
    *,
    amount,
    platform_fee,
    mentor_earnings,
) -> models.Transaction:
    transaction.amount = amount
    transaction.platform_fee = platform_fee
    transaction.mentor_earnings = mentor_earnings
    db.flush()
    return transaction


def create_adjustment(
    db: Session,
    *,
    transaction_id: int,
    previous_amount,
    new_amount,
    delta,
    kind: AdjustmentKind,
    actual_minutes: int,
    applied: bool,
) -> models.TransactionAdjustment:
    adjustment = models.TransactionAdjustment(
        transaction_id=transaction_id,
        previous_amount=previous_amount,
        new_amount=new_amount,
        delta=delta,
        kind=kind,
        actual_minutes=actual_minutes,
        applied=applied,
    )
    db.add(adjustment)
    db.flush()
    return adjustment
