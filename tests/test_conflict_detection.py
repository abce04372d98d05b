from __future__ import annotations

import random
from datetime import timedelta

import pytest

from app import models
from app.crud import session as session_crud
from app.errors import Conflict
from app.models.pricing import PricingType
from app.models.session import SessionStatus
from app.services import booking_service, conflict_detector
from app.services.conflict_detector import intervals_overlap

from conftest import NOW, at


def _book(db, mentee, mentor, pricing_model, start, end=None, **kwargs):
    return booking_service.book_session(
        db,
        mentee,
        mentor_id=mentor.id,
        pricing_model_id=pricing_model.id,
        start_time=start,
        end_time=end,
        now=NOW,
        **kwargs,
    )


def test_intervals_overlap_is_half_open():
    a, b, c = at(10), at(11), at(12)
    assert intervals_overlap(a, b, a, b)
    assert intervals_overlap(a, c, at(10, 30), at(11, 30))
    assert not intervals_overlap(a, b, b, c)
    assert not intervals_overlap(b, c, a, b)


def test_overlapping_booking_is_rejected_and_adjacent_is_allowed(db, mentor, user_factory, pricing_factory):
    pricing_model = pricing_factory(mentor)
    first = user_factory("First")
    second = user_factory("Second")

    _book(db, first, mentor, pricing_model, at(10), at(11))

    with pytest.raises(Conflict):
        _book(db, second, mentor, pricing_model, at(10, 30), at(11, 30))

    adjacent = _book(db, second, mentor, pricing_model, at(11), at(12))
    assert adjacent.session.status == SessionStatus.SCHEDULED


def test_rejected_booking_writes_nothing(db, mentor, mentee, user_factory, pricing_factory):
    pricing_model = pricing_factory(mentor)
    _book(db, mentee, mentor, pricing_model, at(10), at(11))
    other = user_factory("Other")

    with pytest.raises(Conflict):
        _book(db, other, mentor, pricing_model, at(9, 30), at(10, 30))

    sessions = session_crud.list_sessions_for_user(db, mentor.id, limit=50)
    assert len(sessions) == 1
    assert db.query(models.Transaction).count() == 1


def test_new_session_containing_existing_conflicts(db, mentor, mentee, pricing_factory):
    hourly = pricing_factory(mentor, pricing_type=PricingType.HOURLY, price="60.00", duration=60)
    _book(db, mentee, mentor, hourly, at(10), estimated_minutes=30)

    assert conflict_detector.has_conflict(db, mentor.id, at(9), at(12))
    assert not conflict_detector.has_conflict(db, mentor.id, at(10, 30), at(12))


def test_terminal_sessions_do_not_block(db, mentor, mentee, pricing_factory):
    pricing_model = pricing_factory(mentor)
    booked = _book(db, mentee, mentor, pricing_model, at(10), at(11))

    for status in (SessionStatus.CANCELLED, SessionStatus.COMPLETED, SessionStatus.NO_SHOW):
        session_crud.update_session_status(db, booked.session, status)
        db.commit()
        assert not conflict_detector.has_conflict(db, mentor.id, at(10), at(11))


def test_exclude_session_id_ignores_the_session_itself(db, mentor, mentee, pricing_factory):
    pricing_model = pricing_factory(mentor)
    booked = _book(db, mentee, mentor, pricing_model, at(10), at(11))

    assert conflict_detector.has_conflict(db, mentor.id, at(10), at(11))
    assert not conflict_detector.has_conflict(
        db, mentor.id, at(10), at(11), exclude_session_id=booked.session.id
    )


def test_other_mentors_do_not_conflict(db, mentor, mentee, user_factory, pricing_factory):
    other_mentor = user_factory("Other Mentor", roles=("MENTOR",))
    _book(db, mentee, mentor, pricing_factory(mentor), at(10), at(11))

    assert not conflict_detector.has_conflict(db, other_mentor.id, at(10), at(11))


def test_random_bookings_never_overlap(db, mentor, user_factory, pricing_factory):
    rng = random.Random(20300107)
    hourly = pricing_factory(mentor, pricing_type=PricingType.HOURLY, price="60.00", duration=60)
    mentees = [user_factory(f"Mentee {i}") for i in range(4)]
    accepted = []

    for _ in range(60):
        start = at(6) + timedelta(minutes=15 * rng.randrange(0, 48))
        minutes = rng.choice([15, 30, 45, 60, 90, 120])
        end = start + timedelta(minutes=minutes)
        expected_conflict = any(intervals_overlap(start, end, s, e) for s, e in accepted)

        try:
            _book(db, rng.choice(mentees), mentor, hourly, start, estimated_minutes=minutes)
        except Conflict:
            assert expected_conflict
            continue
        assert not expected_conflict
        accepted.append((start, end))

    blocking = [
        s for s in session_crud.list_sessions_for_user(db, mentor.id, limit=500)
        if s.status in (SessionStatus.SCHEDULED, SessionStatus.IN_PROGRESS)
    ]
    assert len(blocking) == len(accepted)
    for i, left in enumerate(blocking):
        for right in blocking[i + 1:]:
            assert not intervals_overlap(
                left.start_time, left.scheduled_end, right.start_time, right.scheduled_end
            )
