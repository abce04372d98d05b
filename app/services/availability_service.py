# app/services/availability_service.py
"""
Mentor availability management.

Slots are weekly recurring windows ("HH:MM" on a day of week, 0 = Sunday).
Active slots of one mentor on one day never overlap; the overlap check and
the write run under the mentor row lock so concurrent edits cannot both pass.
"""

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app import models
from app.crud import availability as availability_crud
from app.crud import session as session_crud
from app.errors import Conflict, InternalError, NotFound, PermissionDenied, ValidationError
from app.models.user import Role
from app.services.conflict_detector import intervals_overlap

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

Interval = Tuple[datetime, datetime]


# =====================================
# VALIDATION
# =====================================

def validate_slot_times(day_of_week: int, start_time: str, end_time: str) -> None:
    """
    Raises:
        ValidationError: Day outside 0-6, malformed time, or start not before end
    """
    if not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
        raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    for label, value in (("start_time", start_time), ("end_time", end_time)):
        if not isinstance(value, str) or not TIME_PATTERN.match(value):
            raise ValidationError(f"{label} must use HH:MM format", {"field": label})
    if start_time >= end_time:
        raise ValidationError("start_time must be before end_time")


def weekday_index(day: date) -> int:
    """Day of week with Sunday as 0."""
    return day.isoweekday() % 7


def _require_mentor(user: models.User) -> None:
    if not user.has_role(Role.MENTOR):
        raise PermissionDenied("Only mentors can manage availability")


def _get_owned_slot(db: Session, mentor: models.User, slot_id: int) -> models.AvailabilitySlot:
    slot = availability_crud.get_slot(db, slot_id)
    if slot is None or slot.mentor_id != mentor.id:
        raise NotFound("Availability slot not found")
    return slot


def _assert_no_slot_overlap(
    db: Session,
    mentor_id: int,
    day_of_week: int,
    start_time: str,
    end_time: str,
    exclude_slot_id: Optional[int] = None,
) -> None:
    clashes = availability_crud.find_overlapping_slots(
        db, mentor_id, day_of_week, start_time, end_time, exclude_slot_id=exclude_slot_id
    )
    if clashes:
        clash = clashes[0]
        raise Conflict(
            "Time slot overlaps with existing availability",
            {"slot_id": clash.id, "start_time": clash.start_time, "end_time": clash.end_time},
        )


# =====================================
# SLOT OPERATIONS
# =====================================

def create_slot(
    db: Session,
    mentor: models.User,
    *,
    day_of_week: int,
    start_time: str,
    end_time: str,
    is_active: bool = True,
) -> models.AvailabilitySlot:
    """
    Add a weekly availability window for a mentor.

    Raises:
        PermissionDenied: User is not a mentor
        ValidationError: Malformed day or times
        Conflict: Overlaps an active slot on the same day
    """
    _require_mentor(mentor)
    validate_slot_times(day_of_week, start_time, end_time)

    try:
        session_crud.lock_mentor(db, mentor.id)
        if is_active:
            _assert_no_slot_overlap(db, mentor.id, day_of_week, start_time, end_time)
        slot = availability_crud.create_slot(
            db,
            mentor_id=mentor.id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            is_active=is_active,
        )
        db.commit()
        db.refresh(slot)
    except Conflict:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Failed to create availability slot: {str(e)}")

    logger.info("Availability slot %s created for mentor %s", slot.id, mentor.id)
    return slot


def update_slot(
    db: Session,
    mentor: models.User,
    slot_id: int,
    *,
    day_of_week: Optional[int] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> models.AvailabilitySlot:
    """
    Change a slot's window or toggle it; the overlap rule is re-checked
    whenever the resulting slot is active.
    """
    _require_mentor(mentor)
    slot = _get_owned_slot(db, mentor, slot_id)

    new_day = slot.day_of_week if day_of_week is None else day_of_week
    new_start = slot.start_time if start_time is None else start_time
    new_end = slot.end_time if end_time is None else end_time
    new_active = slot.is_active if is_active is None else is_active
    validate_slot_times(new_day, new_start, new_end)

    try:
        session_crud.lock_mentor(db, mentor.id)
        if new_active:
            _assert_no_slot_overlap(db, mentor.id, new_day, new_start, new_end, exclude_slot_id=slot.id)
        slot.day_of_week = new_day
        slot.start_time = new_start
        slot.end_time = new_end
        slot.is_active = new_active
        db.commit()
        db.refresh(slot)
    except Conflict:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Failed to update availability slot: {str(e)}")

    return slot


def delete_slot(db: Session, mentor: models.User, slot_id: int) -> None:
    _require_mentor(mentor)
    slot = _get_owned_slot(db, mentor, slot_id)
    try:
        availability_crud.delete_slot(db, slot)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Failed to delete availability slot: {str(e)}")


def list_slots(db: Session, mentor_id: int, active_only: bool = False) -> List[models.AvailabilitySlot]:
    return availability_crud.list_slots(db, mentor_id, active_only=active_only)


# =====================================
# CALENDAR VIEWS
# =====================================

def get_booked_intervals(db: Session, mentor_id: int, day: date) -> List[Interval]:
    """
    Blocking sessions of the mentor that overlap the given UTC date, clipped
    to [00:00, 24:00) of that date.
    """
    day_start = datetime.combine(day, time.min)
    day_end = day_start + timedelta(days=1)
    sessions = session_crud.find_overlapping(db, mentor_id, day_start, day_end)
    return [
        (max(s.start_time, day_start), min(s.scheduled_end, day_end))
        for s in sessions
    ]


def _subtract(window: Interval, busy: List[Interval]) -> List[Interval]:
    free = [window]
    for busy_start, busy_end in busy:
        remaining = []
        for free_start, free_end in free:
            if not intervals_overlap(free_start, free_end, busy_start, busy_end):
                remaining.append((free_start, free_end))
                continue
            if free_start < busy_start:
                remaining.append((free_start, busy_start))
            if busy_end < free_end:
                remaining.append((busy_end, free_end))
        free = remaining
    return free


def get_open_windows(db: Session, mentor_id: int, day: date) -> List[Interval]:
    """
    Bookable windows on a date: the mentor's active slots for that weekday
    minus already booked intervals.
    """
    slots = availability_crud.list_slots(
        db, mentor_id, active_only=True, day_of_week=weekday_index(day)
    )
    booked = get_booked_intervals(db, mentor_id, day)

    windows: List[Interval] = []
    for slot in slots:
        slot_start = datetime.combine(day, time.fromisoformat(slot.start_time))
        slot_end = datetime.combine(day, time.fromisoformat(slot.end_time))
        windows.extend(_subtract((slot_start, slot_end), booked))
    return sorted(windows)
