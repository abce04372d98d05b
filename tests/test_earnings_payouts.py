from datetime import datetime
from decimal import Decimal

import pytest

from app import models
from app.crud import transaction as transaction_crud
from app.errors import (
    AmountTooLow, Conflict, InsufficientEarnings, InvalidTransition, PermissionDenied, ValidationError,
)
from app.models.payout import PayoutMethod, PayoutStatus
from app.models.pricing import PricingType
from app.services import booking_service, earnings_service, payout_service, session_lifecycle
from app.services.payout_service import PayoutPolicy, select_transactions

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
    )


@pytest.fixture
def three_paid_sessions(db, mentor, mentee, pricing_factory):
    pricing_model = pricing_factory(mentor, price="100.00")
    return [_book(db, mentee, mentor, pricing_model, at(hour)) for hour in (9, 11, 13)]


def _complete(db, mentor, session_id, start_hour):
    session_lifecycle.start_session(db, session_id, actor=mentor, now=at(start_hour))
    return session_lifecycle.complete_session(
        db, session_id, actor=mentor, end_time=at(start_hour + 1), now=at(start_hour + 1)
    )


# =====================================
# SELECTION
# =====================================

def test_select_transactions_is_greedy_fifo():
    rows = [models.Transaction(id=i, mentor_earnings=Decimal(v)) for i, v in enumerate(["40", "30", "50"], 1)]

    assert [t.id for t in select_transactions(rows, Decimal("40"))] == [1]
    assert [t.id for t in select_transactions(rows, Decimal("41"))] == [1, 2]
    assert [t.id for t in select_transactions(rows, Decimal("120"))] == [1, 2, 3]


# =====================================
# MANUAL PAYOUTS
# =====================================

def test_payout_selects_oldest_earnings_first(db, mentor, three_paid_sessions):
    unsettled = earnings_service.get_unsettled_earnings(db, mentor.id)
    assert unsettled.total_available == Decimal("255.00")

    payout = payout_service.request_payout(db, mentor.id, "100.00", now=NOW, actor_id=mentor.id)

    first, second, third = (r.transaction for r in three_paid_sessions)
    assert payout.status == PayoutStatus.COMPLETED
    assert payout.processed_at == NOW
    assert payout.requested_amount == Decimal("100.00")
    assert payout.amount == Decimal("170.00")
    assert payout.transaction_ids == {first.id, second.id}
    assert [t.id for t in earnings_service.get_unsettled_earnings(db, mentor.id).transactions] == [third.id]


def test_sequential_payouts_use_disjoint_transactions(db, mentor, three_paid_sessions):
    first = payout_service.request_payout(db, mentor.id, "85.00", now=NOW)
    second = payout_service.request_payout(db, mentor.id, "85.00", now=NOW)
    third = payout_service.request_payout(db, mentor.id, "85.00", now=NOW)

    assert first.transaction_ids.isdisjoint(second.transaction_ids)
    assert (first.transaction_ids | second.transaction_ids).isdisjoint(third.transaction_ids)
    assert earnings_service.get_unsettled_earnings(db, mentor.id).total_available == Decimal("0.00")

    with pytest.raises(InsufficientEarnings):
        payout_service.request_payout(db, mentor.id, "10.00", now=NOW)


def test_insufficient_earnings(db, mentor, three_paid_sessions):
    with pytest.raises(InsufficientEarnings) as excinfo:
        payout_service.request_payout(db, mentor.id, "255.01", now=NOW)

    assert excinfo.value.details == {"available": "255.00", "requested": "255.01"}
    assert db.query(models.MentorPayout).count() == 0


def test_payout_amount_limits(db, mentor, three_paid_sessions):
    with pytest.raises(AmountTooLow):
        payout_service.request_payout(db, mentor.id, "9.99", now=NOW)
    with pytest.raises(ValidationError):
        payout_service.request_payout(db, mentor.id, "0", now=NOW)
    with pytest.raises(ValidationError):
        payout_service.request_payout(
            db, mentor.id, "200.00", now=NOW, policy=PayoutPolicy(max_amount=Decimal("150.00"))
        )


def test_payout_method_validation(db, mentor, three_paid_sessions):
    with pytest.raises(ValidationError):
        payout_service.request_payout(db, mentor.id, "50.00", payout_method="automatic", now=NOW)
    with pytest.raises(ValidationError):
        payout_service.request_payout(db, mentor.id, "50.00", payout_method="cheque", now=NOW)


def test_pending_earnings_are_not_available(db, mentor, mentee, pricing_factory):
    _book(db, mentee, mentor, pricing_factory(mentor), at(10), payment_method="card")

    with pytest.raises(InsufficientEarnings):
        payout_service.request_payout(db, mentor.id, "10.00", now=NOW)


def test_stale_selection_cannot_pay_twice(db, mentor, three_paid_sessions, monkeypatch):
    first = payout_service.request_payout(db, mentor.id, "170.00", now=NOW)
    everything = [r.transaction for r in three_paid_sessions]

    # A reader that still sees the already settled transactions as available.
    monkeypatch.setattr(
        payout_service.transaction_crud,
        "find_unsettled_transactions",
        lambda db, mentor_id: list(everything),
    )

    with pytest.raises(Conflict):
        payout_service.request_payout(db, mentor.id, "170.00", now=NOW)

    monkeypatch.undo()
    payouts = db.query(models.MentorPayout).all()
    assert [p.id for p in payouts] == [first.id]
    items = db.query(models.PayoutItem).all()
    assert len(items) == len({item.transaction_id for item in items}) == 2


# =====================================
# PAYOUT LIFECYCLE
# =====================================

def test_external_payout_lifecycle(db, mentor, three_paid_sessions):
    payout = payout_service.request_payout(
        db, mentor.id, "85.00", payout_method=PayoutMethod.PAYPAL, now=NOW
    )
    assert payout.status == PayoutStatus.PENDING
    assert payout.processed_at is None

    summary = earnings_service.get_earnings_summary(db, mentor.id)
    assert summary["pending_payouts"] == Decimal("85.00")
    assert summary["available_for_payout"] == Decimal("170.00")

    failed = payout_service.apply_payout_event(db, payout.id, "FAILED", failure_reason="account closed")
    assert failed.status == PayoutStatus.FAILED
    assert failed.failure_reason == "account closed"
    # Failed payouts keep their transactions reserved.
    assert earnings_service.get_unsettled_earnings(db, mentor.id).total_available == Decimal("170.00")

    retried = payout_service.retry_payout(db, payout.id, mentor_id=mentor.id)
    assert retried.status == PayoutStatus.PENDING
    assert retried.failure_reason is None

    completed = payout_service.apply_payout_event(db, payout.id, "COMPLETED", now=at(12))
    assert completed.status == PayoutStatus.COMPLETED
    assert completed.processed_at == at(12)

    assert payout_service.apply_payout_event(db, payout.id, "COMPLETED").status == PayoutStatus.COMPLETED
    with pytest.raises(InvalidTransition):
        payout_service.apply_payout_event(db, payout.id, "FAILED")
    with pytest.raises(InvalidTransition):
        payout_service.retry_payout(db, payout.id)

    events = [n.event_type for n in db.query(models.Notification).filter(
        models.Notification.payout_id == payout.id
    ).order_by(models.Notification.id)]
    assert events == ["payout_failed", "payout_completed"]


def test_retry_requires_owner(db, mentor, user_factory, three_paid_sessions):
    payout = payout_service.request_payout(
        db, mentor.id, "85.00", payout_method=PayoutMethod.BANK_TRANSFER, now=NOW
    )
    payout_service.apply_payout_event(db, payout.id, "FAILED")
    other = user_factory("Other Mentor", roles=("MENTOR",))

    with pytest.raises(PermissionDenied):
        payout_service.retry_payout(db, payout.id, mentor_id=other.id)


def test_payout_event_rejects_pending_outcome(db, mentor, three_paid_sessions):
    payout = payout_service.request_payout(db, mentor.id, "85.00", payout_method="stripe", now=NOW)

    with pytest.raises(ValidationError):
        payout_service.apply_payout_event(db, payout.id, "PENDING")


def test_list_payouts_paginates(db, mentor, three_paid_sessions):
    for _ in range(3):
        payout_service.request_payout(db, mentor.id, "85.00", now=NOW)

    page = payout_service.list_payouts(db, mentor.id, page=1, limit=2)
    assert page["total"] == 3
    assert len(page["items"]) == 2
    assert payout_service.list_payouts(db, mentor.id, status="pending")["total"] == 0

    with pytest.raises(ValidationError):
        payout_service.list_payouts(db, mentor.id, status="LOST")


# =====================================
# AUTOMATIC PAYOUTS
# =====================================

def test_completion_triggers_one_payout_per_session(db, mentor, three_paid_sessions):
    booked = three_paid_sessions[0]
    _complete(db, mentor, booked.session.id, 9)

    payout = payout_service.trigger_automatic_payout(db, booked.session.id, now=at(11))
    again = payout_service.trigger_automatic_payout(db, booked.session.id, now=at(12))

    assert payout.id == again.id
    assert payout.trigger_type == payout_service.SESSION_COMPLETED_TRIGGER
    assert payout.payout_method == PayoutMethod.AUTOMATIC.value
    assert payout.transaction_ids == {booked.transaction.id}
    assert payout.amount == Decimal("85.00")
    assert db.query(models.MentorPayout).count() == 1
    assert db.query(models.PayoutItem).filter(
        models.PayoutItem.transaction_id == booked.transaction.id
    ).count() == 1


def test_auto_payout_respects_switch(db, mentor, three_paid_sessions):
    booked = three_paid_sessions[0]
    session_lifecycle.start_session(db, booked.session.id, actor=mentor, now=at(9))
    session_lifecycle.complete_session(
        db, booked.session.id, actor=mentor, end_time=at(10), now=at(10),
        payout_policy=PayoutPolicy(auto_payout_enabled=False),
    )

    assert db.query(models.MentorPayout).count() == 0
    assert payout_service.trigger_automatic_payout(
        db, booked.session.id, policy=PayoutPolicy(auto_payout_enabled=False)
    ) is None


def test_auto_payout_skips_unfinished_sessions(db, mentor, three_paid_sessions):
    assert payout_service.trigger_automatic_payout(db, three_paid_sessions[0].session.id, now=NOW) is None


def test_auto_payout_after_manual_settlement_returns_existing(db, mentor, three_paid_sessions):
    booked = three_paid_sessions[0]
    manual = payout_service.request_payout(db, mentor.id, "85.00", now=NOW)

    _complete(db, mentor, booked.session.id, 9)

    assert payout_service.trigger_automatic_payout(db, booked.session.id).id == manual.id
    assert db.query(models.MentorPayout).count() == 1


# =====================================
# EARNINGS REPORTS
# =====================================

def test_earnings_summary(db, mentor, three_paid_sessions):
    _complete(db, mentor, three_paid_sessions[0].session.id, 9)

    summary = earnings_service.get_earnings_summary(db, mentor.id)

    assert summary["total_earnings"] == Decimal("255.00")
    assert summary["processed_payouts"] == Decimal("85.00")
    assert summary["available_for_payout"] == Decimal("170.00")
    assert summary["pending_payouts"] == Decimal("0.00")
    assert summary["sessions_completed"] == 1
    assert summary["average_session_earnings"] == Decimal("85.00")


def test_earnings_history_marks_settled(db, mentor, mentee, pricing_factory, three_paid_sessions):
    hourly = pricing_factory(mentor, pricing_type=PricingType.HOURLY, price="60.00")
    _book(db, mentee, mentor, hourly, at(15), estimated_minutes=30)
    payout_service.request_payout(db, mentor.id, "85.00", now=NOW)

    history = earnings_service.get_earnings_history(db, mentor.id, page=1, limit=10)
    assert history["total"] == 4
    settled = {item["transaction_id"] for item in history["items"] if item["settled"]}
    assert settled == {three_paid_sessions[0].transaction.id}

    hourly_only = earnings_service.get_earnings_history(db, mentor.id, pricing_type=PricingType.HOURLY)
    assert [item["mentor_earnings"] for item in hourly_only["items"]] == [Decimal("25.50")]


def test_tax_report_totals(db, mentor, three_paid_sessions):
    report = earnings_service.generate_tax_report(db, mentor.id, 2030, 1)

    assert report["period_start"] == datetime(2030, 1, 1)
    assert report["period_end"] == datetime(2030, 2, 1)
    assert report["transaction_count"] == 3
    assert report["gross_amount"] == Decimal("300.00")
    assert report["platform_fees"] == Decimal("45.00")
    assert report["net_earnings"] == Decimal("255.00")

    assert earnings_service.generate_tax_report(db, mentor.id, 2030, 2)["transaction_count"] == 0
    assert earnings_service.generate_tax_report(db, mentor.id, 2030)["transaction_count"] == 3
    with pytest.raises(ValidationError):
        earnings_service.generate_tax_report(db, mentor.id, 2030, 13)
