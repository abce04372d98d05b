# app/services/earnings_service.py
"""
Earnings Ledger

Available earnings are recomputed from transaction facts on every read:
COMPLETED transactions of the mentor that no payout references. There is
no stored balance to drift out of sync.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app import models
from app.crud import payout as payout_crud
from app.crud import transaction as transaction_crud
from app.errors import ValidationError
from app.models.payout import PayoutStatus
from app.models.session import SessionStatus
from app.utils.clock import quantize_money

ZERO = Decimal("0.00")


@dataclass
class UnsettledEarnings:
    transactions: List[models.Transaction] = field(default_factory=list)
    total_available: Decimal = ZERO


def _total(values) -> Decimal:
    return quantize_money(sum((Decimal(str(v)) for v in values), ZERO))


def get_unsettled_earnings(db: Session, mentor_id: int) -> UnsettledEarnings:
    transactions = transaction_crud.find_unsettled_transactions(db, mentor_id)
    return UnsettledEarnings(
        transactions=transactions,
        total_available=_total(t.mentor_earnings for t in transactions),
    )


def get_earnings_summary(db: Session, mentor_id: int) -> Dict[str, Any]:
    completed = transaction_crud.list_completed_transactions(db, mentor_id)
    total_earnings = _total(t.mentor_earnings for t in completed)
    available = get_unsettled_earnings(db, mentor_id).total_available

    payouts = payout_crud.list_payouts(db, mentor_id, limit=None)
    pending = _total(p.amount for p in payouts if p.status == PayoutStatus.PENDING)
    processed = _total(p.amount for p in payouts if p.status == PayoutStatus.COMPLETED)

    sessions_completed = db.query(models.Session).filter(
        models.Session.mentor_id == mentor_id,
        models.Session.status == SessionStatus.COMPLETED,
    ).count()

    average = quantize_money(total_earnings / len(completed)) if completed else ZERO

    return {
        "total_earnings": total_earnings,
        "available_for_payout": available,
        "pending_payouts": pending,
        "processed_payouts": processed,
        "sessions_completed": sessions_completed,
        "average_session_earnings": average,
    }


def _history_item(transaction: models.Transaction, settled_ids: set) -> Dict[str, Any]:
    session = transaction.session
    return {
        "transaction_id": transaction.id,
        "session_id": transaction.session_id,
        "pricing_type": session.pricing_type if session else None,
        "session_start": session.start_time if session else None,
        "amount": transaction.amount,
        "platform_fee": transaction.platform_fee,
        "mentor_earnings": transaction.mentor_earnings,
        "completed_at": transaction.completed_at,
        "settled": transaction.id in settled_ids,
    }


def get_earnings_history(
    db: Session,
    mentor_id: int,
    *,
    page: int = 1,
    limit: int = 20,
    pricing_type=None,
) -> Dict[str, Any]:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")

    transactions = transaction_crud.list_completed_transactions(db, mentor_id, pricing_type=pricing_type)
    unsettled_ids = {t.id for t in transaction_crud.find_unsettled_transactions(db, mentor_id)}
    settled_ids = {t.id for t in transactions} - unsettled_ids

    offset = (page - 1) * limit
    window = transactions[offset:offset + limit]
    return {
        "items": [_history_item(t, settled_ids) for t in window],
        "total": len(transactions),
        "page": page,
        "limit": limit,
    }


def generate_tax_report(
    db: Session,
    mentor_id: int,
    year: int,
    month: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Completed transactions in a calendar year (or a single month of it)
    with gross, fee and net totals.
    """
    if month is not None and not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    if not 2000 <= year <= 9998:
        raise ValidationError("year is out of range")

    if month is None:
        since, until = datetime(year, 1, 1), datetime(year + 1, 1, 1)
    elif month == 12:
        since, until = datetime(year, 12, 1), datetime(year + 1, 1, 1)
    else:
        since, until = datetime(year, month, 1), datetime(year, month + 1, 1)

    transactions = transaction_crud.list_completed_transactions(db, mentor_id, since=since, until=until)
    return {
        "mentor_id": mentor_id,
        "year": year,
        "month": month,
        "period_start": since,
        "period_end": until,
        "transaction_count": len(transactions),
        "gross_amount": _total(t.amount for t in transactions),
        "platform_fees": _total(t.platform_fee for t in transactions),
        "net_earnings": _total(t.mentor_earnings for t in transactions),
        "transactions": [
            {
                "transaction_id": t.id,
                "session_id": t.session_id,
                "completed_at": t.completed_at,
                "amount": t.amount,
                "platform_fee": t.platform_fee,
                "mentor_earnings": t.mentor_earnings,
            }
            for t in transactions
        ],
    }
