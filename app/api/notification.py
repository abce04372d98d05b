from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.notification import MarkedRead, NotificationResponse, UnreadCount
from app.services import notification_service
from app.utils.security import get_current_user

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/my", response_model=List[NotificationResponse])
def get_my_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Booking, cancellation and payout notices for the current user, newest first."""
    return notification_service.list_user_notifications(
        db, user_id=current_user.id, unread_only=unread_only, limit=limit
    )


@router.get("/unread-count", response_model=UnreadCount)
def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return UnreadCount(unread=notification_service.get_unread_count(db, user_id=current_user.id))


@router.patch("/read-all", response_model=MarkedRead)
def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return MarkedRead(updated=notification_service.mark_all_notifications_read(db, user_id=current_user.id))


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = notification_service.mark_notification_read(
        db, user_id=current_user.id, notification_id=notification_id
    )
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification
