"""
Double-booking detection.

Intervals are half-open: [start, end) and [other_start, other_end) conflict
iff start < other_end and other_start < end, so back-to-back bookings are
allowed. Only SCHEDULED and IN_PROGRESS sessions occupy a calendar.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app import models
from app.crud import session as session_crud


def intervals_overlap(start, end, other_start, other_end) -> bool:
    return start < other_end and other_start < end


def find_conflicting_session(
    db: Session,
    mentor_id: int,
    start: datetime,
    end: datetime,
    exclude_session_id: Optional[int] = None,
) -> Optional[models.Session]:
    overlapping = session_crud.find_overlapping(
        db, mentor_id, start, end, exclude_session_id=exclude_session_id
    )
    return overlapping[0] if overlapping else None


def has_conflict(
    db: Session,
    mentor_id: int,
    start: datetime,
    end: datetime,
    exclude_session_id: Optional[int] = None,
) -> bool:
    """True when [start, end) overlaps a blocking session of the mentor."""
    return find_conflicting_session(db, mentor_id, start, end, exclude_session_id) is not None
