import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app import models
from app.crud import pricing as pricing_crud
from app.errors import InternalError, InvalidTransition, NotFound
from app.models.pricing import SubscriptionStatus
from app.services import audit_service
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def list_user_subscriptions(db: Session, mentee_id: int, now: Optional[datetime] = None) -> List[models.Subscription]:
    """Active, unexpired subscriptions of a mentee."""
    return pricing_crud.list_active_subscriptions(db, mentee_id, now or utcnow())


def cancel_subscription(
    db: Session,
    subscription_id: int,
    mentee: models.User,
    *,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.Subscription:
    subscription = pricing_crud.get_subscription(db, subscription_id)
    if subscription is None or subscription.mentee_id != mentee.id:
        raise NotFound("Subscription not found")
    if subscription.status != SubscriptionStatus.ACTIVE:
        raise InvalidTransition(subscription.status, SubscriptionStatus.CANCELLED)

    try:
        subscription.status = SubscriptionStatus.CANCELLED
        subscription.cancelled_at = now or utcnow()
        subscription.cancellation_reason = reason
        db.commit()
        db.refresh(subscription)
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Failed to cancel subscription: {str(e)}")

    audit_service.record_audit(
        db,
        actor_id=mentee.id,
        action="subscription.cancelled",
        resource="subscription",
        resource_id=subscription.id,
        details={"reason": reason},
    )
    return subscription
