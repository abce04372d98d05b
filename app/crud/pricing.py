# app/crud/pricing.py
"""
Pricing model and subscription repository.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app import models
from app.models.pricing import SubscriptionStatus


# =====================================
# PRICING MODELS
# =====================================

def get_pricing_model(db: Session, pricing_model_id: int) -> Optional[models.PricingModel]:
    return db.query(models.PricingModel).filter(models.PricingModel.id == pricing_model_id).first()


def get_active_pricing_model(
    db: Session,
    pricing_model_id: int,
    mentor_id: int,
) -> Optional[models.PricingModel]:
    """
    Fetch a pricing model that can be used for a new booking.

    Args:
        db: Database session
        pricing_model_id: Pricing model ID
        mentor_id: Mentor the booking is for; models of other mentors never match

    Returns:
        Active PricingModel or None
    """
    return db.query(models.PricingModel).filter(
        models.PricingModel.id == pricing_model_id,
        models.PricingModel.mentor_id == mentor_id,
        models.PricingModel.is_active.is_(True),
    ).first()


def list_pricing_models(
    db: Session,
    mentor_id: int,
    active_only: bool = True,
) -> List[models.PricingModel]:
    query = db.query(models.PricingModel).filter(models.PricingModel.mentor_id == mentor_id)
    if active_only:
        query = query.filter(models.PricingModel.is_active.is_(True))
    return query.order_by(models.PricingModel.created_at.asc(), models.PricingModel.id.asc()).all()


def create_pricing_model(
    db: Session,
    *,
    mentor_id: int,
    type,
    price,
    duration: Optional[int] = None,
    description: Optional[str] = None,
) -> models.PricingModel:
    pricing_model = models.PricingModel(
        mentor_id=mentor_id,
        type=type,
        price=price,
        duration=duration,
        description=description,
        is_active=True,
    )
    db.add(pricing_model)
    db.flush()
    return pricing_model


# =====================================
# SUBSCRIPTIONS
# =====================================

def get_subscription(db: Session, subscription_id: int) -> Optional[models.Subscription]:
    return db.query(models.Subscription).filter(models.Subscription.id == subscription_id).first()


def find_active_subscription(
    db: Session,
    mentee_id: int,
    mentor_id: int,
    now: datetime,
) -> Optional[models.Subscription]:
    """
    Active, unexpired subscription of a mentee with a mentor.

    Args:
        db: Database session
        mentee_id: Mentee user ID
        mentor_id: Mentor user ID
        now: Reference time; subscriptions ending at or before it are expired

    Returns:
        Subscription or None
    """
    return db.query(models.Subscription).filter(
        models.Subscription.mentee_id == mentee_id,
        models.Subscription.mentor_id == mentor_id,
        models.Subscription.status == SubscriptionStatus.ACTIVE,
        models.Subscription.end_date > now,
    ).first()


def list_active_subscriptions(db: Session, mentee_id: int, now: datetime) -> List[models.Subscription]:
    return db.query(models.Subscription).filter(
        models.Subscription.mentee_id == mentee_id,
        models.Subscription.status == SubscriptionStatus.ACTIVE,
        models.Subscription.end_date > now,
    ).order_by(models.Subscription.start_date.desc()).all()


def create_subscription(
    db: Session,
    *,
    mentee_id: int,
    mentor_id: int,
    pricing_model_id: Optional[int],
    session_id: Optional[int],
    amount,
    start_date: datetime,
    end_date: datetime,
) -> models.Subscription:
    subscription = models.Subscription(
        mentee_id=mentee_id,
        mentor_id=mentor_id,
        pricing_model_id=pricing_model_id,
        session_id=session_id,
        amount=amount,
        status=SubscriptionStatus.ACTIVE,
        start_date=start_date,
        end_date=end_date,
    )
    db.add(subscription)
    db.flush()
    return subscription
