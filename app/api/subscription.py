from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import MarketplaceError, to_http_exception
from app.models.user import Role, User
from app.schemas.pricing import SubscriptionCancel, SubscriptionResponse
from app.services import subscription_service
from app.utils.security import require_role

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


@router.get("/my", response_model=List[SubscriptionResponse])
def get_my_subscriptions(
    current_user: User = Depends(require_role(Role.MENTEE)),
    db: Session = Depends(get_db),
):
    return subscription_service.list_user_subscriptions(db, current_user.id)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionResponse)
def cancel_subscription(
    subscription_id: int,
    payload: Optional[SubscriptionCancel] = None,
    current_user: User = Depends(require_role(Role.MENTEE)),
    db: Session = Depends(get_db),
):
    try:
        return subscription_service.cancel_subscription(
            db,
            subscription_id,
            current_user,
            reason=payload.reason if payload else None,
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc)
