"""Pytest bootstrap for project imports and shared marketplace fixtures."""

from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
import sys

import pytest

# Ensure project root is on sys.path so `import app` works
PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app import models  # noqa: E402,F401
from app.database import Base  # noqa: E402
from app.models.pricing import PricingType  # noqa: E402

# Monday 2030-01-07 08:00 UTC; every test passes this as "now".
NOW = datetime(2030, 1, 7, 8, 0, 0)


def at(hour: int, minute: int = 0, days: int = 1) -> datetime:
    """A time `days` after NOW's date at hour:minute."""
    return datetime(2030, 1, 7, hour, minute) + timedelta(days=days)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def db():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def user_factory(db):
    counter = {"n": 0}

    def _create(name: str = None, roles=("MENTEE",)) -> models.User:
        counter["n"] += 1
        user = models.User(
            name=name or f"User {counter['n']}",
            email=f"user{counter['n']}@example.com",
            password_hash="hash",
            roles=list(roles),
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _create


@pytest.fixture
def mentor(user_factory):
    return user_factory("Mentor", roles=("MENTOR",))


@pytest.fixture
def mentee(user_factory):
    return user_factory("Mentee", roles=("MENTEE",))


@pytest.fixture
def pricing_factory(db):
    def _create(mentor, pricing_type=PricingType.ONE_TIME, price="100.00", duration=60, is_active=True):
        pricing_model = models.PricingModel(
            mentor_id=mentor.id,
            type=pricing_type,
            price=Decimal(price),
            duration=duration,
            is_active=is_active,
        )
        db.add(pricing_model)
        db.commit()
        db.refresh(pricing_model)
        return pricing_model

    return _create
