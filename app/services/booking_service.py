# app/services/booking_service.py
"""
Session booking.

The conflict check and the session insert happen in one database
transaction under the mentor row lock; on PostgreSQL an exclusion
constraint on the sessions table backs this up, and its violation is
reported as a Conflict.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import models
from app.crud import pricing as pricing_crud
from app.crud import session as session_crud
from app.crud import user as user_crud
from app.errors import (
    Conflict, InternalError, MarketplaceError, NotFound, PermissionDenied, PricingModelNotFound,
    ValidationError,
)
from app.models.pricing import PricingType
from app.models.user import Role
from app.services import audit_service, notification_service, payment_service
from app.services.payment_service import FeePolicy, PLATFORM_CREDIT
from app.services.pricing_models import BookingParams, BookingPolicy, get_pricing_handler
from app.utils.clock import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass
class BookingResult:
    session: models.Session
    transaction: models.Transaction
    subscription: Optional[models.Subscription] = None


def generate_session_link() -> str:
    return f"mm-{secrets.token_hex(16)}"


def book_session(
    db: Session,
    mentee: models.User,
    *,
    mentor_id: int,
    pricing_model_id: int,
    start_time: datetime,
    end_time: Optional[datetime] = None,
    estimated_minutes: Optional[int] = None,
    payment_method: str = PLATFORM_CREDIT,
    booking_policy: Optional[BookingPolicy] = None,
    fee_policy: Optional[FeePolicy] = None,
    now: Optional[datetime] = None,
) -> BookingResult:
    """
    Book a session with a mentor under one of the mentor's pricing models.

    Args:
        db: Database session
        mentee: Booking user (must hold the MENTEE role)
        mentor_id: Mentor user ID
        pricing_model_id: Active pricing model of that mentor
        start_time: Session start, must be in the future
        end_time: Optional end; defaults depend on the pricing type
        estimated_minutes: HOURLY estimate
        payment_method: "platform_credit" pays immediately, others await the gateway
        booking_policy: Scheduling and minimum charge limits
        fee_policy: Platform fee frozen on the transaction
        now: Reference time

    Returns:
        BookingResult with the SCHEDULED session, its transaction and, for
        subscriptions, the new Subscription

    Raises:
        ValidationError, PermissionDenied, NotFound, PricingModelNotFound,
        UnsupportedPricingType, Conflict, AmountTooLow, InternalError
    """
    now = now or utcnow()
    booking_policy = booking_policy or BookingPolicy.from_settings()
    fee_policy = fee_policy or FeePolicy.from_settings()
    start = to_naive_utc(start_time)
    end = to_naive_utc(end_time) if end_time is not None else None

    if not mentee.has_role(Role.MENTEE):
        raise PermissionDenied("Only mentees can book sessions")
    if mentee.id == mentor_id:
        raise ValidationError("You cannot book a session with yourself")
    if start <= now:
        raise ValidationError("Session start must be in the future")
    if end is not None and end <= start:
        raise ValidationError("Session end must be after its start")

    mentor = user_crud.get_user(db, mentor_id)
    if mentor is None or not mentor.is_active or not mentor.has_role(Role.MENTOR):
        raise NotFound("Mentor not found")

    pricing_model = pricing_crud.get_active_pricing_model(db, pricing_model_id, mentor_id)
    if pricing_model is None:
        raise PricingModelNotFound("Pricing model not found or inactive")
    handler = get_pricing_handler(pricing_model.type, booking_policy)

    params = BookingParams(
        mentor_id=mentor_id,
        mentee_id=mentee.id,
        start=start,
        end=end,
        estimated_minutes=estimated_minutes,
        now=now,
    )

    try:
        session_crud.lock_mentor(db, mentor_id)
        decision = handler.decide(db, pricing_model, params)

        session = session_crud.create_session(
            db,
            mentor_id=mentor_id,
            mentee_id=mentee.id,
            pricing_model_id=pricing_model.id,
            start_time=decision.start,
            scheduled_end=decision.end,
            pricing_type=decision.pricing_type,
            agreed_price=decision.amount,
            session_link=generate_session_link(),
            hourly_rate=decision.hourly_rate,
            estimated_minutes=decision.estimated_minutes,
        )
        transaction = payment_service.process_payment(
            db,
            session.id,
            decision,
            payment_method,
            fee_policy=fee_policy,
            now=now,
            commit=False,
        )
        subscription = None
        if decision.pricing_type == PricingType.MONTHLY_SUBSCRIPTION:
            subscription = pricing_crud.create_subscription(
                db,
                mentee_id=mentee.id,
                mentor_id=mentor_id,
                pricing_model_id=pricing_model.id,
                session_id=session.id,
                amount=decision.amount,
                start_date=now,
                end_date=decision.subscription_end,
            )
        db.commit()
        db.refresh(session)
        db.refresh(transaction)
        if subscription is not None:
            db.refresh(subscription)
    except MarketplaceError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise Conflict("Mentor is not available at this time")
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Booking failed: {str(e)}")

    logger.info(
        "Session %s booked: mentor=%s mentee=%s type=%s amount=%s",
        session.id, mentor_id, mentee.id, decision.pricing_type.value, decision.amount,
    )

    audit_service.record_audit(
        db,
        actor_id=mentee.id,
        action="session.booked",
        resource="session",
        resource_id=session.id,
        details={
            "mentor_id": mentor_id,
            "pricing_type": decision.pricing_type,
            "amount": decision.amount,
            "transaction_id": transaction.id,
            "payment_method": payment_method,
        },
    )
    notification_service.notify(
        db,
        recipient_id=mentor_id,
        actor_id=mentee.id,
        event_type="booking_created",
        message=f"{mentee.name} booked a session on {decision.start:%Y-%m-%d %H:%M} UTC.",
        session_id=session.id,
    )
    return BookingResult(session=session, transaction=transaction, subscription=subscription)


def get_session_for_participant(db: Session, session_id: int, user: models.User) -> models.Session:
    session = session_crud.get_session(db, session_id)
    if session is None:
        raise NotFound(f"Session {session_id} not found")
    if user.id not in (session.mentor_id, session.mentee_id) and not user.has_role(Role.ADMIN):
        raise PermissionDenied("Not a participant of this session")
    return session


def list_user_sessions(db: Session, user: models.User, *, status=None, page: int = 1, limit: int = 20):
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    resolved = None
    if status is not None:
        try:
            resolved = models.SessionStatus(str(getattr(status, "value", status)).upper())
        except ValueError:
            raise ValidationError(f"Unknown session status: {status}")
    return session_crud.list_sessions_for_user(
        db, user.id, status=resolved, skip=(page - 1) * limit, limit=limit
    )
