# app/crud/session.py
"""
Session repository.

Database operations for booked sessions: locking a mentor's calendar,
overlap lookups, inserts and status updates. Callers own the commit.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session as DbSession

from app import models
from app.models.session import BLOCKING_STATUSES, SessionStatus


# =====================================
# LOCKING
# =====================================

def lock_mentor(db: DbSession, mentor_id: int) -> Optional[models.User]:
    """
    Take a row lock on the mentor before a check-then-act sequence.

    Concurrent bookings, slot edits and payout requests for the same mentor
    serialize on this lock. SQLite ignores FOR UPDATE; there the engine opens
    each transaction with BEGIN IMMEDIATE (see app.database), so the whole
    transaction already holds the database write lock.

    Args:
        db: Database session
        mentor_id: Mentor user ID

    Returns:
        The locked User row or None
    """
    return db.query(models.User).filter(
        models.User.id == mentor_id
    ).with_for_update().first()


# =====================================
# QUERIES
# =====================================

def get_session(db: DbSession, session_id: int) -> Optional[models.Session]:
    return db.query(models.Session).filter(models.Session.id == session_id).first()


def get_session_for_update(db: DbSession, session_id: int) -> Optional[models.Session]:
    """Fetch a session with a row lock so concurrent transitions serialize."""
    return db.query(models.Session).filter(
        models.Session.id == session_id
    ).with_for_update().first()


def find_overlapping(
    db: DbSession,
    mentor_id: int,
    start: datetime,
    end: datetime,
    exclude_session_id: Optional[int] = None,
    statuses: Iterable[SessionStatus] = BLOCKING_STATUSES,
) -> List[models.Session]:
    """
    Sessions of a mentor whose [start_time, scheduled_end) overlaps [start, end).

    Args:
        db: Database session
        mentor_id: Mentor user ID
        start: Candidate interval start (inclusive)
        end: Candidate interval end (exclusive)
        exclude_session_id: Session to ignore, e.g. the one being rescheduled
        statuses: Statuses that count as occupying the calendar

    Returns:
        Overlapping sessions ordered by start time
    """
    query = db.query(models.Session).filter(
        models.Session.mentor_id == mentor_id,
        models.Session.status.in_(list(statuses)),
        models.Session.start_time < end,
        models.Session.scheduled_end > start,
    )
    if exclude_session_id is not None:
        query = query.filter(models.Session.id != exclude_session_id)
    return query.order_by(models.Session.start_time.asc()).all()


def list_sessions_for_user(
    db: DbSession,
    user_id: int,
    status: Optional[SessionStatus] = None,
    skip: int = 0,
    limit: int = 20,
) -> List[models.Session]:
    query = db.query(models.Session).filter(
        (models.Session.mentee_id == user_id) |
        (models.Session.mentor_id == user_id)
    )
    if status is not None:
        query = query.filter(models.Session.status == status)
    return query.order_by(
        models.Session.start_time.desc(), models.Session.id.desc()
    ).offset(skip).limit(limit).all()


# =====================================
# WRITES
# =====================================

def create_session(
    db: DbSession,
    *,
    mentor_id: int,
    mentee_id: int,
    start_time: datetime,
    scheduled_end: datetime,
    pricing_type,
    agreed_price,
    session_link: str,
    pricing_model_id: Optional[int] = None,
    hourly_rate=None,
    estimated_minutes: Optional[int] = None,
) -> models.Session:
    """
    Insert a SCHEDULED session.

    Args:
        db: Database session
        mentor_id: Mentor user ID
        mentee_id: Mentee user ID
        start_time: Naive UTC start
        scheduled_end: Naive UTC end (exclusive)
        pricing_type: PricingType of the booking
        agreed_price: Charge computed at booking time
        session_link: Unique meeting link
        pricing_model_id: Pricing model the booking used
        hourly_rate: Rate snapshot for HOURLY bookings
        estimated_minutes: Estimate snapshot for HOURLY bookings

    Returns:
        Flushed Session with an ID
    """
    session = models.Session(
        mentor_id=mentor_id,
        mentee_id=mentee_id,
        pricing_model_id=pricing_model_id,
        start_time=start_time,
        scheduled_end=scheduled_end,
        status=SessionStatus.SCHEDULED,
        pricing_type=pricing_type,
        agreed_price=agreed_price,
        hourly_rate=hourly_rate,
        estimated_minutes=estimated_minutes,
        session_link=session_link,
    )
    db.add(session)
    db.flush()
    return session


def update_session_status(
    db: DbSession,
    session: models.Session,
    new_status: SessionStatus,
    **changes,
) -> models.Session:
    """
    Persist a status change plus any fields that travel with it
    (end_time, actual_duration, agreed_price).

    Legality of the transition is checked by the lifecycle service.
    """
    session.status = new_status
    for key, value in changes.items():
        setattr(session, key, value)
    db.flush()
    return session
