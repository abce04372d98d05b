import hashlib
import hmac
import json
import random
from decimal import Decimal

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models
from app.api import payment as payment_api
from app.config import settings
from app.database import Base, get_db
from app.errors import AlreadyPaid, InvalidTransition, NotFound, ValidationError
from app.models.pricing import PricingType
from app.models.session import SessionStatus
from app.models.transaction import TransactionStatus
from app.services import booking_service, earnings_service, payment_service, session_lifecycle
from app.services.payment_service import FeePolicy, split_fee
from app.services.pricing_models import PricingDecision
from app.utils.clock import quantize_money

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


def _decision(session, amount="100.00"):
    return PricingDecision(
        pricing_type=PricingType.ONE_TIME,
        pricing_model_id=session.pricing_model_id,
        amount=Decimal(amount),
        start=session.start_time,
        end=session.scheduled_end,
    )


# =====================================
# FEE SPLIT
# =====================================

def test_split_fee_default_rate():
    assert split_fee(Decimal("100.00"), FeePolicy()) == (Decimal("100.00"), Decimal("15.00"), Decimal("85.00"))
    assert split_fee(Decimal("33.33"), FeePolicy()) == (Decimal("33.33"), Decimal("5.00"), Decimal("28.33"))


def test_split_fee_parts_always_sum_to_amount():
    rng = random.Random(85)
    for _ in range(500):
        amount = Decimal(rng.randrange(1, 10_000_00)) / 100
        rate = Decimal(rng.choice(["0", "0.05", "0.125", "0.15", "0.1999", "0.3"]))
        gross, fee, earnings = split_fee(amount, FeePolicy(platform_fee_percentage=rate))

        assert gross == amount
        assert fee == quantize_money(amount * rate)
        assert fee + earnings == gross
        assert fee >= 0 and earnings >= 0


# =====================================
# PROCESS PAYMENT
# =====================================

def test_platform_credit_completes_immediately(db, mentor, mentee, pricing_factory):
    result = _book(db, mentee, mentor, pricing_factory(mentor), at(10))
    transaction = result.transaction

    assert transaction.status == TransactionStatus.COMPLETED
    assert transaction.completed_at == NOW
    assert transaction.platform_fee == Decimal("15.00")
    assert transaction.mentor_earnings == Decimal("85.00")
    assert transaction.currency == "USD"


def test_paying_twice_is_rejected(db, mentor, mentee, pricing_factory):
    result = _book(db, mentee, mentor, pricing_factory(mentor), at(10))

    with pytest.raises(AlreadyPaid):
        payment_service.process_payment(
            db, result.session.id, _decision(result.session), payment_service.PLATFORM_CREDIT, now=NOW
        )

    assert db.query(models.Transaction).count() == 1


def test_payment_for_unknown_session(db):
    with pytest.raises(NotFound):
        payment_service.process_payment(db, 999, _decision(models.Session()), "card", now=NOW)


def test_fee_is_frozen_at_creation(db, mentor, mentee, pricing_factory):
    result = _book(
        db, mentee, mentor, pricing_factory(mentor), at(10),
        fee_policy=FeePolicy(platform_fee_percentage=Decimal("0.20")),
    )

    assert result.transaction.platform_fee == Decimal("20.00")
    assert result.transaction.mentor_earnings == Decimal("80.00")


# =====================================
# GATEWAY EVENTS
# =====================================

def test_gateway_success_completes_pending_transaction(db, mentor, mentee, pricing_factory):
    result = _book(db, mentee, mentor, pricing_factory(mentor), at(10), payment_method="card")
    assert result.transaction.status == TransactionStatus.PENDING
    assert earnings_service.get_unsettled_earnings(db, mentor.id).total_available == Decimal("0.00")

    transaction = payment_service.apply_gateway_event(
        db, result.transaction.id, "payment.success", gateway_reference="gw_123", now=at(9)
    )

    assert transaction.status == TransactionStatus.COMPLETED
    assert transaction.completed_at == at(9)
    assert transaction.gateway_reference == "gw_123"
    assert earnings_service.get_unsettled_earnings(db, mentor.id).total_available == Decimal("85.00")


def test_repeated_gateway_event_is_a_no_op(db, mentor, mentee, pricing_factory):
    result = _book(db, mentee, mentor, pricing_factory(mentor), at(10), payment_method="card")
    payment_service.apply_gateway_event(db, result.transaction.id, "payment.success", now=at(9))

    again = payment_service.apply_gateway_event(db, result.transaction.id, "payment.success", now=at(9, 30))

    assert again.status == TransactionStatus.COMPLETED
    assert again.completed_at == at(9)
    entries = db.query(models.AuditLog).filter(models.AuditLog.action == "transaction.status_changed").count()
    assert entries == 1


def test_contradicting_gateway_event_is_rejected(db, mentor, mentee, pricing_factory):
    result = _book(db, mentee, mentor, pricing_factory(mentor), at(10), payment_method="card")
    payment_service.apply_gateway_event(db, result.transaction.id, "payment.success", now=at(9))

    with pytest.raises(InvalidTransition):
        payment_service.apply_gateway_event(db, result.transaction.id, "payment.failed")


def test_pending_event_leaves_transaction_unchanged(db, mentor, mentee, pricing_factory):
    result = _book(db, mentee, mentor, pricing_factory(mentor), at(10), payment_method="card")

    transaction = payment_service.apply_gateway_event(db, result.transaction.id, "payment.pending")

    assert transaction.status == TransactionStatus.PENDING


def test_unknown_gateway_event(db, mentor, mentee, pricing_factory):
    result = _book(db, mentee, mentor, pricing_factory(mentor), at(10), payment_method="card")

    with pytest.raises(ValidationError):
        payment_service.apply_gateway_event(db, result.transaction.id, "payment.refunded")


def test_failed_payment_keeps_session_and_can_be_retried(db, mentor, mentee, pricing_factory):
    result = _book(db, mentee, mentor, pricing_factory(mentor), at(10), payment_method="card")

    failed = payment_service.apply_gateway_event(db, result.transaction.id, "payment.failed")
    db.refresh(result.session)
    assert failed.status == TransactionStatus.FAILED
    assert result.session.status == SessionStatus.SCHEDULED

    retried = payment_service.process_payment(
        db, result.session.id, _decision(result.session), payment_service.PLATFORM_CREDIT, now=NOW
    )

    assert retried.id == failed.id
    assert retried.status == TransactionStatus.COMPLETED
    assert retried.payment_method == payment_service.PLATFORM_CREDIT
    assert db.query(models.Transaction).count() == 1


def test_pending_transaction_is_returned_unchanged(db, mentor, mentee, pricing_factory):
    result = _book(db, mentee, mentor, pricing_factory(mentor), at(10), payment_method="card")

    again = payment_service.process_payment(db, result.session.id, _decision(result.session), "card", now=NOW)

    assert again.id == result.transaction.id
    assert again.status == TransactionStatus.PENDING


def test_late_payment_of_completed_session_triggers_payout(db, mentor, mentee, pricing_factory):
    result = _book(db, mentee, mentor, pricing_factory(mentor), at(10), payment_method="card")
    session_lifecycle.start_session(db, result.session.id, actor=mentor, now=at(10))
    session_lifecycle.complete_session(db, result.session.id, actor=mentor, end_time=at(11), now=at(11))
    assert db.query(models.MentorPayout).count() == 0

    payment_service.apply_gateway_event(db, result.transaction.id, "payment.success", now=at(12))

    payout = db.query(models.MentorPayout).one()
    assert payout.transaction_ids == {result.transaction.id}
    assert payout.amount == Decimal("85.00")


# =====================================
# WEBHOOK
# =====================================

def _sign(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def test_verify_webhook_signature():
    body = b'{"eventType": "payment.success", "transactionId": 1}'
    signature = _sign(body, "whsec")

    assert payment_api.verify_webhook_signature(body, signature, "whsec")
    assert payment_api.verify_webhook_signature(body, signature.upper(), "whsec")
    assert not payment_api.verify_webhook_signature(body, signature, "other")
    assert not payment_api.verify_webhook_signature(body + b" ", signature, "whsec")
    assert not payment_api.verify_webhook_signature(body, None, "whsec")
    assert payment_api.verify_webhook_signature(body, None, None)


@pytest.fixture
def webhook_client(monkeypatch):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app = FastAPI()
    app.include_router(payment_api.router)
    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(settings, "PAYMENT_WEBHOOK_SECRET", "whsec")

    db = TestingSessionLocal()
    try:
        yield TestClient(app), db
    finally:
        db.close()
        engine.dispose()


def _seed_pending_booking(db):
    mentor = models.User(name="Mentor", email="mentor@example.com", password_hash="x", roles=["MENTOR"])
    mentee = models.User(name="Mentee", email="mentee@example.com", password_hash="x", roles=["MENTEE"])
    db.add_all([mentor, mentee])
    db.commit()
    pricing_model = models.PricingModel(
        mentor_id=mentor.id, type=PricingType.ONE_TIME, price=Decimal("100.00"), duration=60, is_active=True
    )
    db.add(pricing_model)
    db.commit()
    return _book(db, mentee, mentor, pricing_model, at(10), payment_method="card")


def test_webhook_applies_signed_event(webhook_client):
    client, db = webhook_client
    result = _seed_pending_booking(db)
    body = json.dumps({
        "eventType": "payment.success",
        "transactionId": result.transaction.id,
        "gatewayTransactionId": "gw_789",
    }).encode("utf-8")

    response = client.post(
        "/payments/webhook",
        content=body,
        headers={"X-Webhook-Signature": _sign(body, "whsec"), "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json() == {"received": True, "transaction_id": result.transaction.id, "status": "COMPLETED"}
    db.refresh(result.transaction)
    assert result.transaction.gateway_reference == "gw_789"


def test_webhook_rejects_bad_signature(webhook_client):
    client, db = webhook_client
    result = _seed_pending_booking(db)
    body = json.dumps({"eventType": "payment.success", "transactionId": result.transaction.id}).encode("utf-8")

    response = client.post("/payments/webhook", content=body, headers={"X-Webhook-Signature": "deadbeef"})

    assert response.status_code == 401
    db.refresh(result.transaction)
    assert result.transaction.status == TransactionStatus.PENDING


def test_webhook_rejects_malformed_payload(webhook_client):
    client, _ = webhook_client
    body = b'{"eventType": "payment.success"}'

    response = client.post("/payments/webhook", content=body, headers={"X-Webhook-Signature": _sign(body, "whsec")})

    assert response.status_code == 400


def test_webhook_unknown_transaction(webhook_client):
    client, _ = webhook_client
    body = json.dumps({"eventType": "payment.failed", "transactionId": 4242}).encode("utf-8")

    response = client.post("/payments/webhook", content=body, headers={"X-Webhook-Signature": _sign(body, "whsec")})

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "not_found"
