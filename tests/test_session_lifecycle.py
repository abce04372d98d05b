from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from app import models
from app.crud import session as session_crud
from app.errors import CancellationWindowExpired, InvalidTransition, PermissionDenied, ValidationError
from app.models.pricing import PricingType
from app.models.session import SessionStatus
from app.services import booking_service, session_lifecycle
from app.services.session_lifecycle import ALLOWED_TRANSITIONS, can_transition, duration_minutes

from conftest import NOW, at


def _book(db, mentee, mentor, pricing_model, start, **kwargs):
    return booking_service.book_session(
        db,
        mentee,
        mentor_id=mentor.id,
        pricing_model_id=pricing_model.id,
        start_time=start,
        now=NOW,
        **kwargs,
    ).session


def _session_in(db, mentor, mentee, status, start=None):
    session = session_crud.create_session(
        db,
        mentor_id=mentor.id,
        mentee_id=mentee.id,
        start_time=start or at(10),
        scheduled_end=(start or at(10)) + timedelta(hours=1),
        pricing_type=PricingType.ONE_TIME,
        agreed_price=Decimal("50.00"),
        session_link=f"link-{status.value}",
    )
    session_crud.update_session_status(db, session, status)
    db.commit()
    return session


def test_transition_table():
    assert can_transition(SessionStatus.SCHEDULED, SessionStatus.IN_PROGRESS)
    assert can_transition(SessionStatus.SCHEDULED, SessionStatus.CANCELLED)
    assert can_transition(SessionStatus.SCHEDULED, SessionStatus.NO_SHOW)
    assert can_transition(SessionStatus.IN_PROGRESS, SessionStatus.COMPLETED)
    assert can_transition(SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED)
    assert not can_transition(SessionStatus.SCHEDULED, SessionStatus.COMPLETED)
    assert not can_transition(SessionStatus.IN_PROGRESS, SessionStatus.SCHEDULED)
    assert not can_transition(SessionStatus.IN_PROGRESS, SessionStatus.NO_SHOW)


@pytest.mark.parametrize(
    "terminal",
    [SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW],
)
def test_terminal_states_reject_every_target(db, mentor, mentee, terminal):
    session = _session_in(db, mentor, mentee, terminal)
    assert ALLOWED_TRANSITIONS[terminal] == frozenset()

    for target in SessionStatus:
        with pytest.raises(InvalidTransition) as excinfo:
            session_lifecycle.transition_session(db, session.id, target, actor=mentor, now=NOW)
        assert excinfo.value.from_status == terminal
        assert excinfo.value.to_status == target

    db.refresh(session)
    assert session.status == terminal


def test_cancel_more_than_two_hours_before_start_succeeds(db, mentor, mentee, pricing_factory):
    session = _book(db, mentee, mentor, pricing_factory(mentor), NOW + timedelta(hours=2, minutes=1))

    cancelled = session_lifecycle.cancel_session(db, session.id, actor=mentee, now=NOW)

    assert cancelled.status == SessionStatus.CANCELLED
    notes = db.query(models.Notification).filter(
        models.Notification.event_type == "session_cancelled"
    ).all()
    assert [n.recipient_id for n in notes] == [mentor.id]


def test_cancel_inside_two_hours_fails(db, mentor, mentee, pricing_factory):
    session = _book(db, mentee, mentor, pricing_factory(mentor), NOW + timedelta(hours=1, minutes=59))

    with pytest.raises(CancellationWindowExpired):
        session_lifecycle.cancel_session(db, session.id, actor=mentee, now=NOW)

    db.refresh(session)
    assert session.status == SessionStatus.SCHEDULED


def test_cancel_exactly_at_cutoff_fails(db, mentor, mentee, pricing_factory):
    session = _book(db, mentee, mentor, pricing_factory(mentor), NOW + timedelta(hours=2))

    with pytest.raises(CancellationWindowExpired):
        session_lifecycle.cancel_session(db, session.id, actor=mentee, now=NOW)


def test_completion_records_actual_duration(db, mentor, mentee, pricing_factory):
    pricing_model = pricing_factory(mentor, price="80.00")
    session = _book(db, mentee, mentor, pricing_model, at(10), end_time=at(11))

    session_lifecycle.start_session(db, session.id, actor=mentor, now=at(10))
    completed = session_lifecycle.complete_session(
        db, session.id, actor=mentor, end_time=at(10, 50) + timedelta(seconds=40), now=at(11)
    )

    assert completed.status == SessionStatus.COMPLETED
    assert completed.actual_duration == 51
    assert completed.end_time == at(10, 50) + timedelta(seconds=40)
    # ONE_TIME price is not recomputed from actual usage.
    assert completed.agreed_price == Decimal("80.00")


def test_completion_end_before_start_is_rejected(db, mentor, mentee, pricing_factory):
    session = _book(db, mentee, mentor, pricing_factory(mentor), at(10), end_time=at(11))
    session_lifecycle.start_session(db, session.id, actor=mentor, now=at(10))

    with pytest.raises(ValidationError):
        session_lifecycle.complete_session(db, session.id, actor=mentor, end_time=at(9), now=at(11))


def test_only_mentor_can_complete(db, mentor, mentee, pricing_factory):
    session = _book(db, mentee, mentor, pricing_factory(mentor), at(10), end_time=at(11))
    session_lifecycle.start_session(db, session.id, actor=mentee, now=at(10))

    with pytest.raises(PermissionDenied):
        session_lifecycle.complete_session(db, session.id, actor=mentee, end_time=at(11), now=at(11))


def test_outsider_cannot_transition(db, mentor, mentee, user_factory, pricing_factory):
    session = _book(db, mentee, mentor, pricing_factory(mentor), at(10), end_time=at(11))
    outsider = user_factory("Outsider")

    with pytest.raises(PermissionDenied):
        session_lifecycle.cancel_session(db, session.id, actor=outsider, now=NOW)


def test_status_changes_are_audited(db, mentor, mentee, pricing_factory):
    session = _book(db, mentee, mentor, pricing_factory(mentor), at(10), end_time=at(11))
    session_lifecycle.start_session(db, session.id, actor=mentor, now=at(10))

    entries = db.query(models.AuditLog).filter(models.AuditLog.action == "session.status_changed").all()
    assert len(entries) == 1
    assert entries[0].actor_id == mentor.id
    assert entries[0].details == {"from": "SCHEDULED", "to": "IN_PROGRESS"}


def test_duration_minutes_rounds_half_up():
    assert duration_minutes(at(10), at(10, 30) + timedelta(seconds=30)) == 31
    assert duration_minutes(at(10), at(10, 30) + timedelta(seconds=29)) == 30
