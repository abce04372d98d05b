# app/services/payment_service.py
"""
Payment / Transaction Processor

Creates the single transaction of a session with its platform-fee split
frozen at creation time, and applies asynchronous gateway outcomes.
A transaction moves at most once: PENDING -> COMPLETED or PENDING -> FAILED.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app import models
from app.config import settings
from app.crud import session as session_crud
from app.crud import transaction as transaction_crud
from app.errors import AlreadyPaid, InternalError, InvalidTransition, MarketplaceError, NotFound, ValidationError
from app.models.session import SessionStatus
from app.models.transaction import TransactionStatus
from app.services import audit_service
from app.services.pricing_models import PricingDecision
from app.utils.clock import quantize_money, utcnow

logger = logging.getLogger(__name__)

# Settled by the platform itself at booking time; every other method waits
# for the gateway webhook.
PLATFORM_CREDIT = "platform_credit"

GATEWAY_EVENTS = {
    "payment.success": TransactionStatus.COMPLETED,
    "payment.failed": TransactionStatus.FAILED,
    "payment.pending": TransactionStatus.PENDING,
}


# =====================================
# FEE POLICY
# =====================================

@dataclass(frozen=True)
class FeePolicy:
    platform_fee_percentage: Decimal = Decimal("0.15")
    currency: str = "USD"

    @classmethod
    def from_settings(cls, cfg=settings) -> "FeePolicy":
        return cls(
            platform_fee_percentage=Decimal(str(cfg.PLATFORM_FEE_PERCENTAGE)),
            currency=cfg.CURRENCY,
        )


def split_fee(amount, policy: Optional[FeePolicy] = None) -> Tuple[Decimal, Decimal, Decimal]:
    """
    Split a gross amount into (amount, platform_fee, mentor_earnings).

    The fee is rounded to the cent and earnings take the remainder, so
    platform_fee + mentor_earnings == amount exactly.
    """
    policy = policy or FeePolicy.from_settings()
    gross = quantize_money(amount)
    fee = quantize_money(gross * policy.platform_fee_percentage)
    return gross, fee, gross - fee


# =====================================
# PROCESS PAYMENT
# =====================================

def process_payment(
    db: Session,
    session_id: int,
    decision: PricingDecision,
    payment_method: str,
    *,
    fee_policy: Optional[FeePolicy] = None,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> models.Transaction:
    """
    Charge a session according to its pricing decision.

    Args:
        db: Database session
        session_id: Session being paid for
        decision: Priced booking from the pricing registry
        payment_method: "platform_credit" completes immediately; others stay PENDING
        fee_policy: Fee rate to freeze on the transaction
        now: Reference time
        commit: False when the caller commits together with the session insert

    Returns:
        The session's Transaction

    Raises:
        NotFound: Session does not exist
        AlreadyPaid: The session's transaction is already COMPLETED
        ValidationError: Missing payment method
    """
    if not payment_method:
        raise ValidationError("Payment method is required")
    now = now or utcnow()
    fee_policy = fee_policy or FeePolicy.from_settings()

    session = session_crud.get_session(db, session_id)
    if session is None:
        raise NotFound(f"Session {session_id} not found")

    existing = transaction_crud.get_transaction_by_session(db, session_id)
    if existing is not None and existing.status == TransactionStatus.COMPLETED:
        raise AlreadyPaid(f"Session {session_id} is already paid", {"transaction_id": existing.id})
    if existing is not None and existing.status == TransactionStatus.PENDING:
        return existing

    amount, fee, earnings = split_fee(decision.amount, fee_policy)
    synchronous = payment_method == PLATFORM_CREDIT
    status = TransactionStatus.COMPLETED if synchronous else TransactionStatus.PENDING
    completed_at = now if synchronous else None

    try:
        if existing is not None:
            # A FAILED attempt is retried on the same row (one transaction per session).
            transaction = transaction_crud.apply_amount_correction(
                db, existing, amount=amount, platform_fee=fee, mentor_earnings=earnings
            )
            transaction.payment_method = payment_method
            transaction.currency = fee_policy.currency
            transaction_crud.update_transaction_status(db, transaction, status, completed_at=completed_at)
        else:
            transaction = transaction_crud.create_transaction(
                db,
                session_id=session_id,
                amount=amount,
                platform_fee=fee,
                mentor_earnings=earnings,
                payment_method=payment_method,
                currency=fee_policy.currency,
                status=status,
                completed_at=completed_at,
            )
        if commit:
            db.commit()
            db.refresh(transaction)
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Payment processing failed: {str(e)}")

    logger.info(
        "Transaction %s for session %s: amount=%s fee=%s status=%s",
        transaction.id, session_id, amount, fee, status.value,
    )
    return transaction


# =====================================
# GATEWAY EVENTS
# =====================================

def resolve_gateway_outcome(outcome) -> TransactionStatus:
    if isinstance(outcome, TransactionStatus):
        return outcome
    resolved = GATEWAY_EVENTS.get(str(outcome))
    if resolved is None:
        raise ValidationError(f"Unknown payment event: {outcome}")
    return resolved


def apply_gateway_event(
    db: Session,
    transaction_id: int,
    outcome,
    *,
    gateway_reference: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.Transaction:
    """
    Apply a payment gateway outcome to a transaction.

    success -> COMPLETED, failed -> FAILED, pending -> unchanged. Repeating
    the outcome a transaction already has is a no-op. The session's own
    status is never touched; a FAILED transaction only records the failure.

    Raises:
        NotFound: Unknown transaction
        ValidationError: Unknown event type
        InvalidTransition: Outcome contradicts an already settled status
    """
    target = resolve_gateway_outcome(outcome)
    transaction = transaction_crud.get_transaction(db, transaction_id)
    if transaction is None:
        raise NotFound(f"Transaction {transaction_id} not found")

    if target == TransactionStatus.PENDING or transaction.status == target:
        return transaction
    if transaction.status != TransactionStatus.PENDING:
        raise InvalidTransition(transaction.status, target)

    previous = transaction.status
    try:
        transaction_crud.update_transaction_status(
            db,
            transaction,
            target,
            completed_at=(now or utcnow()) if target == TransactionStatus.COMPLETED else None,
            gateway_reference=gateway_reference,
        )
        db.commit()
        db.refresh(transaction)
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Failed to apply payment event: {str(e)}")

    audit_service.record_audit(
        db,
        actor_id=None,
        action="transaction.status_changed",
        resource="transaction",
        resource_id=transaction.id,
        details={"from": previous, "to": target, "gateway_reference": gateway_reference},
    )

    session = transaction.session
    if target == TransactionStatus.COMPLETED and session is not None and session.status == SessionStatus.COMPLETED:
        from app.services import payout_service

        try:
            payout_service.trigger_automatic_payout(db, session.id, now=now)
        except MarketplaceError as exc:
            logger.warning("Automatic payout after payment of session %s failed: %s", session.id, exc.message)

    return transaction
