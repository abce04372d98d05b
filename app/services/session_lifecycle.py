# app/services/session_lifecycle.py
"""
Session State Machine

SCHEDULED -> IN_PROGRESS | CANCELLED | NO_SHOW
IN_PROGRESS -> COMPLETED | CANCELLED
COMPLETED, CANCELLED and NO_SHOW are terminal.

Cancelling is additionally limited to strictly more than the cutoff
(2 hours by default) before the session start.
"""

import logging
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app import models
from app.crud import session as session_crud
from app.crud import transaction as transaction_crud
from app.errors import (
    CancellationWindowExpired, InternalError, InvalidTransition, MarketplaceError, NotFound,
    PermissionDenied, ValidationError,
)
from app.models.pricing import PricingType
from app.models.session import SessionStatus
from app.models.transaction import AdjustmentKind
from app.models.user import Role
from app.services import audit_service, notification_service, payout_service
from app.services.payment_service import FeePolicy, split_fee
from app.services.pricing_models import BookingPolicy, compute_hourly_amount
from app.utils.clock import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    SessionStatus.SCHEDULED: frozenset({SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED, SessionStatus.NO_SHOW}),
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
    SessionStatus.NO_SHOW: frozenset(),
}

# Transitions only the mentor (or an admin) may make.
MENTOR_ONLY_TARGETS = (SessionStatus.COMPLETED, SessionStatus.NO_SHOW)


def can_transition(from_status: SessionStatus, to_status: SessionStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def assert_transition(from_status: SessionStatus, to_status: SessionStatus) -> None:
    if not can_transition(from_status, to_status):
        raise InvalidTransition(from_status, to_status)


def check_cancellation_window(
    session: models.Session,
    now: datetime,
    policy: Optional[BookingPolicy] = None,
) -> None:
    policy = policy or BookingPolicy.from_settings()
    deadline = session.start_time - timedelta(hours=policy.cancellation_cutoff_hours)
    if not now < deadline:
        raise CancellationWindowExpired(
            f"Sessions can only be cancelled more than {policy.cancellation_cutoff_hours} hours before they start",
            {"session_id": session.id, "start_time": session.start_time.isoformat()},
        )


def duration_minutes(start: datetime, end: datetime) -> int:
    seconds = Decimal(str((end - start).total_seconds()))
    return int((seconds / 60).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _coerce_status(value) -> SessionStatus:
    try:
        return SessionStatus(str(getattr(value, "value", value)).upper())
    except ValueError:
        raise ValidationError(f"Unknown session status: {value}")


def _check_actor(session: models.Session, actor: models.User, target: SessionStatus) -> None:
    if actor.has_role(Role.ADMIN):
        return
    if actor.id not in (session.mentor_id, session.mentee_id):
        raise PermissionDenied("Not a participant of this session")
    if target in MENTOR_ONLY_TARGETS and actor.id != session.mentor_id:
        raise PermissionDenied(f"Only the mentor can mark a session {target.value}")


# =====================================
# HOURLY USAGE ADJUSTMENT
# =====================================

def _adjust_hourly_charge(
    db: Session,
    session: models.Session,
    actual_minutes: int,
    fee_policy: FeePolicy,
) -> Optional[models.TransactionAdjustment]:
    """
    Reprice an HOURLY session from its actual minutes. The delta against the
    booked charge is recorded; the transaction itself is corrected only while
    it is not yet part of a payout.
    """
    new_amount = compute_hourly_amount(session.hourly_rate, actual_minutes)
    session.agreed_price = new_amount

    transaction = transaction_crud.get_transaction_by_session(db, session.id)
    if transaction is None:
        return None

    previous_amount = transaction.amount
    delta = new_amount - previous_amount
    if delta > 0:
        kind = AdjustmentKind.ADDITIONAL_CHARGE
    elif delta < 0:
        kind = AdjustmentKind.REFUND
    else:
        kind = AdjustmentKind.NONE

    applied = not transaction_crud.is_settled(db, transaction.id)
    if applied and kind != AdjustmentKind.NONE:
        amount, fee, earnings = split_fee(new_amount, fee_policy)
        transaction_crud.apply_amount_correction(
            db, transaction, amount=amount, platform_fee=fee, mentor_earnings=earnings
        )

    return transaction_crud.create_adjustment(
        db,
        transaction_id=transaction.id,
        previous_amount=previous_amount,
        new_amount=new_amount,
        delta=delta,
        kind=kind,
        actual_minutes=actual_minutes,
        applied=applied,
    )


# =====================================
# TRANSITIONS
# =====================================

def transition_session(
    db: Session,
    session_id: int,
    new_status,
    *,
    actor: models.User,
    end_time: Optional[datetime] = None,
    now: Optional[datetime] = None,
    booking_policy: Optional[BookingPolicy] = None,
    fee_policy: Optional[FeePolicy] = None,
    payout_policy: Optional[payout_service.PayoutPolicy] = None,
) -> models.Session:
    """
    Move a session to a new status.

    Args:
        db: Database session
        session_id: Session ID
        new_status: Target SessionStatus
        actor: User making the change
        end_time: Actual end for COMPLETED (defaults to now)
        now: Reference time
        booking_policy: Cancellation cutoff
        fee_policy: Fee rate for the hourly usage correction
        payout_policy: Automatic payout switch

    Returns:
        Updated Session

    Raises:
        NotFound: Unknown session
        PermissionDenied: Actor may not make this change
        InvalidTransition: Illegal status change
        CancellationWindowExpired: Cancelling too close to the start
        ValidationError: end_time before start_time
    """
    target = _coerce_status(new_status)
    now = now or utcnow()
    booking_policy = booking_policy or BookingPolicy.from_settings()
    fee_policy = fee_policy or FeePolicy.from_settings()

    try:
        session = session_crud.get_session_for_update(db, session_id)
        if session is None:
            raise NotFound(f"Session {session_id} not found")
        _check_actor(session, actor, target)
        previous = session.status
        assert_transition(previous, target)

        changes = {}
        adjustment = None
        if target == SessionStatus.CANCELLED:
            check_cancellation_window(session, now, booking_policy)
        elif target == SessionStatus.COMPLETED:
            finished_at = to_naive_utc(end_time) if end_time is not None else now
            if finished_at < session.start_time:
                raise ValidationError("end_time cannot be before the session start")
            changes["end_time"] = finished_at
            changes["actual_duration"] = duration_minutes(session.start_time, finished_at)
            if session.pricing_type == PricingType.HOURLY and session.hourly_rate is not None:
                adjustment = _adjust_hourly_charge(db, session, changes["actual_duration"], fee_policy)

        session_crud.update_session_status(db, session, target, **changes)
        db.commit()
        db.refresh(session)
    except MarketplaceError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Session status update failed: {str(e)}")

    logger.info("Session %s: %s -> %s by user %s", session.id, previous.value, target.value, actor.id)
    details = {"from": previous, "to": target}
    if adjustment is not None:
        details["adjustment"] = {"kind": adjustment.kind, "delta": adjustment.delta, "applied": adjustment.applied}
    audit_service.record_audit(
        db,
        actor_id=actor.id,
        action="session.status_changed",
        resource="session",
        resource_id=session.id,
        details=details,
    )

    if target == SessionStatus.CANCELLED:
        counterparty = session.mentee_id if actor.id == session.mentor_id else session.mentor_id
        notification_service.notify(
            db,
            recipient_id=counterparty,
            actor_id=actor.id,
            event_type="session_cancelled",
            message=f"Session on {session.start_time:%Y-%m-%d %H:%M} UTC was cancelled.",
            session_id=session.id,
        )
    elif target == SessionStatus.COMPLETED:
        notification_service.notify(
            db,
            recipient_id=session.mentee_id,
            actor_id=actor.id,
            event_type="session_completed",
            message=f"Your session on {session.start_time:%Y-%m-%d %H:%M} UTC was marked completed.",
            session_id=session.id,
        )
        try:
            payout_service.trigger_automatic_payout(db, session.id, policy=payout_policy, now=now)
        except MarketplaceError as exc:
            logger.warning("Automatic payout for session %s failed: %s", session.id, exc.message)

    return session


def start_session(db: Session, session_id: int, *, actor: models.User, **kwargs) -> models.Session:
    return transition_session(db, session_id, SessionStatus.IN_PROGRESS, actor=actor, **kwargs)


def complete_session(db: Session, session_id: int, *, actor: models.User, end_time=None, **kwargs) -> models.Session:
    return transition_session(db, session_id, SessionStatus.COMPLETED, actor=actor, end_time=end_time, **kwargs)


def cancel_session(db: Session, session_id: int, *, actor: models.User, **kwargs) -> models.Session:
    return transition_session(db, session_id, SessionStatus.CANCELLED, actor=actor, **kwargs)


def mark_no_show(db: Session, session_id: int, *, actor: models.User, **kwargs) -> models.Session:
    return transition_session(db, session_id, SessionStatus.NO_SHOW, actor=actor, **kwargs)
