# app/services/payout_service.py
"""
Payout Engine

Selects a mentor's unsettled transactions oldest first until the requested
amount is covered, and records them as one payout. Selection runs under the
mentor row lock and the payout_transactions unique index rejects any
transaction that another payout already claimed, so no transaction is
paid out twice.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import models
from app.config import settings
from app.crud import payout as payout_crud
from app.crud import session as session_crud
from app.crud import transaction as transaction_crud
from app.errors import (
    AmountTooLow, Conflict, InsufficientEarnings, InternalError, InvalidTransition, NotFound,
    PermissionDenied, ValidationError,
)
from app.models.payout import PayoutMethod, PayoutStatus, SYNCHRONOUS_PAYOUT_METHODS
from app.models.session import SessionStatus
from app.models.transaction import TransactionStatus
from app.services import audit_service, notification_service
from app.utils.clock import quantize_money, utcnow

logger = logging.getLogger(__name__)

MANUAL_TRIGGER = "manual_request"
SESSION_COMPLETED_TRIGGER = "session_completed"


# =====================================
# CONFIGURATION
# =====================================

@dataclass(frozen=True)
class PayoutPolicy:
    min_amount: Decimal = Decimal("10.00")
    max_amount: Decimal = Decimal("10000.00")
    auto_payout_enabled: bool = True

    @classmethod
    def from_settings(cls, cfg=settings) -> "PayoutPolicy":
        return cls(
            min_amount=cfg.MIN_PAYOUT_AMOUNT,
            max_amount=cfg.MAX_PAYOUT_AMOUNT,
            auto_payout_enabled=cfg.AUTO_PAYOUT_ENABLED,
        )


def select_transactions(transactions: List[models.Transaction], amount: Decimal) -> List[models.Transaction]:
    """
    Greedy FIFO selection: take transactions in order until their earnings
    reach the amount. The last one may overshoot; transactions are never split.
    """
    selected = []
    running = Decimal("0.00")
    for transaction in transactions:
        if running >= amount:
            break
        selected.append(transaction)
        running += transaction.mentor_earnings
    return selected


def _coerce_method(value) -> PayoutMethod:
    try:
        return PayoutMethod(getattr(value, "value", value))
    except ValueError:
        raise ValidationError(
            f"Unsupported payout method: {value}",
            {"allowed": [m.value for m in PayoutMethod if m != PayoutMethod.AUTOMATIC]},
        )


def _after_payout_created(db: Session, payout: models.MentorPayout, actor_id: Optional[int]) -> None:
    audit_service.record_audit(
        db,
        actor_id=actor_id,
        action="payout.created",
        resource="payout",
        resource_id=payout.id,
        details={
            "amount": payout.amount,
            "status": payout.status,
            "method": payout.payout_method,
            "trigger_type": payout.trigger_type,
            "transaction_ids": sorted(payout.transaction_ids),
        },
    )
    if payout.status == PayoutStatus.COMPLETED:
        _notify_payout(db, payout, "payout_completed", f"Your payout of {payout.amount} has been processed.")


def _notify_payout(db: Session, payout: models.MentorPayout, event_type: str, message: str) -> None:
    notification_service.notify(
        db,
        recipient_id=payout.mentor_id,
        actor_id=None,
        event_type=event_type,
        message=message,
        payout_id=payout.id,
    )


# =====================================
# MANUAL PAYOUT REQUEST
# =====================================

def request_payout(
    db: Session,
    mentor_id: int,
    amount,
    *,
    payout_method=PayoutMethod.MANUAL,
    policy: Optional[PayoutPolicy] = None,
    now: Optional[datetime] = None,
    actor_id: Optional[int] = None,
) -> models.MentorPayout:
    """
    Pay out at least `amount` from the mentor's unsettled earnings.

    Args:
        db: Database session
        mentor_id: Mentor user ID
        amount: Requested amount
        payout_method: manual settles immediately; bank_transfer, paypal and
            stripe stay PENDING until the provider confirms
        policy: Minimum and maximum payout amounts
        now: Reference time
        actor_id: User who asked for the payout

    Returns:
        Created MentorPayout; its amount is the sum of the selected earnings

    Raises:
        ValidationError: Non-positive amount, amount above maximum, bad method
        AmountTooLow: Amount below the minimum payout
        InsufficientEarnings: Unsettled earnings do not cover the amount
        Conflict: A concurrent payout claimed one of the selected transactions
    """
    policy = policy or PayoutPolicy.from_settings()
    now = now or utcnow()
    method = _coerce_method(payout_method)
    if method == PayoutMethod.AUTOMATIC:
        raise ValidationError("Automatic payouts are triggered by session completion")

    requested = quantize_money(amount)
    if requested is None or requested <= 0:
        raise ValidationError("Payout amount must be positive")
    if requested < policy.min_amount:
        raise AmountTooLow(
            f"Minimum payout amount is {policy.min_amount}",
            {"amount": str(requested), "minimum": str(policy.min_amount)},
        )
    if requested > policy.max_amount:
        raise ValidationError(f"Maximum payout amount is {policy.max_amount}")

    try:
        session_crud.lock_mentor(db, mentor_id)
        unsettled = transaction_crud.find_unsettled_transactions(db, mentor_id)
        available = quantize_money(sum((t.mentor_earnings for t in unsettled), Decimal("0.00")))
        if available < requested:
            raise InsufficientEarnings(
                f"Insufficient earnings: {available} available, {requested} requested",
                {"available": str(available), "requested": str(requested)},
            )

        selected = select_transactions(unsettled, requested)
        total = quantize_money(sum((t.mentor_earnings for t in selected), Decimal("0.00")))
        synchronous = method in SYNCHRONOUS_PAYOUT_METHODS
        payout = payout_crud.create_payout(
            db,
            mentor_id=mentor_id,
            amount=total,
            requested_amount=requested,
            payout_method=method.value,
            trigger_type=MANUAL_TRIGGER,
            transaction_ids=[t.id for t in selected],
            status=PayoutStatus.COMPLETED if synchronous else PayoutStatus.PENDING,
            processed_at=now if synchronous else None,
        )
        db.commit()
        db.refresh(payout)
    except InsufficientEarnings:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise Conflict("Some earnings were already included in another payout; retry the request")
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Payout request failed: {str(e)}")

    logger.info(
        "Payout %s for mentor %s: requested=%s amount=%s transactions=%s status=%s",
        payout.id, mentor_id, requested, total, len(selected), payout.status.value,
    )
    _after_payout_created(db, payout, actor_id)
    return payout


# =====================================
# AUTOMATIC PAYOUT
# =====================================

def trigger_automatic_payout(
    db: Session,
    session_id: int,
    *,
    policy: Optional[PayoutPolicy] = None,
    now: Optional[datetime] = None,
) -> Optional[models.MentorPayout]:
    """
    Pay out exactly one completed session's earnings.

    Returns the existing payout when the session's transaction is already
    settled, so calling it twice yields one payout. Returns None when the
    session or its transaction is not COMPLETED, or auto payouts are off.
    """
    policy = policy or PayoutPolicy.from_settings()
    if not policy.auto_payout_enabled:
        return None

    transaction = transaction_crud.get_transaction_by_session(db, session_id)
    if transaction is None or transaction.status != TransactionStatus.COMPLETED:
        return None
    session = transaction.session
    if session is None or session.status != SessionStatus.COMPLETED:
        return None

    existing = payout_crud.find_payout_by_transaction(db, transaction.id)
    if existing is not None:
        return existing

    now = now or utcnow()
    try:
        session_crud.lock_mentor(db, session.mentor_id)
        existing = payout_crud.find_payout_by_transaction(db, transaction.id)
        if existing is not None:
            db.commit()
            return existing
        payout = payout_crud.create_payout(
            db,
            mentor_id=session.mentor_id,
            amount=transaction.mentor_earnings,
            requested_amount=transaction.mentor_earnings,
            payout_method=PayoutMethod.AUTOMATIC.value,
            trigger_type=SESSION_COMPLETED_TRIGGER,
            transaction_ids=[transaction.id],
            status=PayoutStatus.COMPLETED,
            processed_at=now,
        )
        db.commit()
        db.refresh(payout)
    except IntegrityError:
        db.rollback()
        existing = payout_crud.find_payout_by_transaction(db, transaction.id)
        if existing is not None:
            return existing
        raise Conflict(f"Automatic payout for session {session_id} conflicted with another payout")
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Automatic payout failed: {str(e)}")

    logger.info("Automatic payout %s for session %s: amount=%s", payout.id, session_id, payout.amount)
    _after_payout_created(db, payout, None)
    return payout


# =====================================
# PAYOUT LIFECYCLE
# =====================================

def _get_payout(db: Session, payout_id: int, mentor_id: Optional[int] = None) -> models.MentorPayout:
    payout = payout_crud.get_payout(db, payout_id)
    if payout is None:
        raise NotFound(f"Payout {payout_id} not found")
    if mentor_id is not None and payout.mentor_id != mentor_id:
        raise PermissionDenied("Not your payout")
    return payout


def apply_payout_event(
    db: Session,
    payout_id: int,
    outcome,
    *,
    failure_reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.MentorPayout:
    """
    Record the provider's confirmation of a PENDING payout.

    Raises:
        NotFound: Unknown payout
        ValidationError: Outcome is neither COMPLETED nor FAILED
        InvalidTransition: Payout is not PENDING (COMPLETED payouts are immutable)
    """
    try:
        target = PayoutStatus(str(getattr(outcome, "value", outcome)).upper())
    except ValueError:
        raise ValidationError(f"Unknown payout outcome: {outcome}")
    if target == PayoutStatus.PENDING:
        raise ValidationError("Payout outcome must be COMPLETED or FAILED")

    payout = _get_payout(db, payout_id)
    if payout.status == target:
        return payout
    if payout.status != PayoutStatus.PENDING:
        raise InvalidTransition(payout.status, target)

    try:
        payout.status = target
        if target == PayoutStatus.COMPLETED:
            payout.processed_at = now or utcnow()
            payout.failure_reason = None
        else:
            payout.failure_reason = failure_reason or "Payout rejected by provider"
        db.commit()
        db.refresh(payout)
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Failed to update payout: {str(e)}")

    audit_service.record_audit(
        db,
        actor_id=None,
        action="payout.status_changed",
        resource="payout",
        resource_id=payout.id,
        details={"from": PayoutStatus.PENDING, "to": target, "failure_reason": payout.failure_reason},
    )
    if target == PayoutStatus.COMPLETED:
        _notify_payout(db, payout, "payout_completed", f"Your payout of {payout.amount} has been processed.")
    else:
        _notify_payout(db, payout, "payout_failed", f"Your payout of {payout.amount} failed: {payout.failure_reason}")
    return payout


def retry_payout(db: Session, payout_id: int, *, mentor_id: Optional[int] = None) -> models.MentorPayout:
    """
    FAILED -> PENDING. The payout keeps its transactions, so they stay
    reserved for it rather than returning to the available pool.
    """
    payout = _get_payout(db, payout_id, mentor_id)
    if payout.status != PayoutStatus.FAILED:
        raise InvalidTransition(payout.status, PayoutStatus.PENDING)

    try:
        payout.status = PayoutStatus.PENDING
        payout.failure_reason = None
        db.commit()
        db.refresh(payout)
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Failed to retry payout: {str(e)}")

    audit_service.record_audit(
        db,
        actor_id=mentor_id,
        action="payout.retried",
        resource="payout",
        resource_id=payout.id,
    )
    return payout


def list_payouts(
    db: Session,
    mentor_id: int,
    *,
    status=None,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    resolved = None
    if status is not None:
        try:
            resolved = PayoutStatus(str(getattr(status, "value", status)).upper())
        except ValueError:
            raise ValidationError(f"Unknown payout status: {status}")
    items = payout_crud.list_payouts(db, mentor_id, status=resolved, skip=(page - 1) * limit, limit=limit)
    return {
        "items": items,
        "total": payout_crud.count_payouts(db, mentor_id, status=resolved),
        "page": page,
        "limit": limit,
    }
