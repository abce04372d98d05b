# app/crud/payout.py
"""
Payout repository.
"""

from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app import models
from app.models.payout import PayoutStatus


def get_payout(db: Session, payout_id: int) -> Optional[models.MentorPayout]:
    return db.query(models.MentorPayout).filter(models.MentorPayout.id == payout_id).first()


def find_payout_by_transaction(db: Session, transaction_id: int) -> Optional[models.MentorPayout]:
    """
    The payout whose transaction set contains the given transaction.

    Args:
        db: Database session
        transaction_id: Transaction ID

    Returns:
        MentorPayout or None when the transaction is unsettled
    """
    return db.query(models.MentorPayout).join(
        models.PayoutItem, models.PayoutItem.payout_id == models.MentorPayout.id
    ).filter(
        models.PayoutItem.transaction_id == transaction_id
    ).first()


def list_payouts(
    db: Session,
    mentor_id: int,
    status: Optional[PayoutStatus] = None,
    skip: int = 0,
    limit: int = 20,
) -> List[models.MentorPayout]:
    query = db.query(models.MentorPayout).filter(models.MentorPayout.mentor_id == mentor_id)
    if status is not None:
        query = query.filter(models.MentorPayout.status == status)
    return query.order_by(
        models.MentorPayout.created_at.desc(), models.MentorPayout.id.desc()
    ).offset(skip).limit(limit).all()


def count_payouts(db: Session, mentor_id: int, status: Optional[PayoutStatus] = None) -> int:
    query = db.query(models.MentorPayout).filter(models.MentorPayout.mentor_id == mentor_id)
    if status is not None:
        query = query.filter(models.MentorPayout.status == status)
    return query.count()


def create_payout(
    db: Session,
    *,
    mentor_id: int,
    amount,
    requested_amount,
    payout_method: str,
    trigger_type: str,
    transaction_ids: Iterable[int],
    status: PayoutStatus = PayoutStatus.PENDING,
    processed_at=None,
) -> models.MentorPayout:
    """
    Insert a payout together with its transaction set.

    The flush raises IntegrityError when any transaction already belongs to
    another payout (unique payout_transactions.transaction_id).

    Args:
        db: Database session
        mentor_id: Mentor user ID
        amount: Sum of the selected transactions' mentor earnings
        requested_amount: Amount the caller asked for
        payout_method: Payout method value
        trigger_type: "manual_request" or "session_completed"
        transaction_ids: Selected transaction IDs
        status: Initial status
        processed_at: Set when created already COMPLETED

    Returns:
        Flushed MentorPayout with its items
    """
    payout = models.MentorPayout(
        mentor_id=mentor_id,
        amount=amount,
        requested_amount=requested_amount,
        status=status,
        payout_method=payout_method,
        trigger_type=trigger_type,
        processed_at=processed_at,
    )
    payout.items = [models.PayoutItem(transaction_id=tid) for tid in transaction_ids]
    db.add(payout)
    db.flush()
    return payout
