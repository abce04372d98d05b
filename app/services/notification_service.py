# app/services/notification_service.py
"""
Mentor and mentee notifications.

Services call `notify` after their own commit: the row is written in a
separate commit and the email goes out on a daemon thread, so neither can
undo or delay the booking, transition or payout that triggered it.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app import models
from app.models.notification import Notification
from app.utils.email import is_email_enabled, send_email

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "New notification from MentorMarket"

EMAIL_SUBJECT_BY_EVENT = {
    "booking_created": "New session booked on MentorMarket",
    "session_cancelled": "Session cancelled on MentorMarket",
    "session_completed": "Session marked completed on MentorMarket",
    "payout_completed": "Your payout was processed on MentorMarket",
    "payout_failed": "Payout update on MentorMarket",
}


# =====================================
# INBOX
# =====================================

def _inbox(db: Session, user_id: int, unread_only: bool = False):
    query = db.query(Notification).filter(Notification.recipient_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query


def list_user_notifications(
    db: Session,
    *,
    user_id: int,
    unread_only: bool = False,
    limit: int = 50,
) -> List[Notification]:
    return _inbox(db, user_id, unread_only).order_by(
        Notification.created_at.desc(), Notification.id.desc()
    ).limit(limit).all()


def get_unread_count(db: Session, *, user_id: int) -> int:
    return _inbox(db, user_id, unread_only=True).count()


def mark_notification_read(
    db: Session,
    *,
    user_id: int,
    notification_id: int,
) -> Optional[Notification]:
    """Returns None when the notification does not exist or belongs to someone else."""
    notification = _inbox(db, user_id).filter(Notification.id == notification_id).first()
    if notification is None:
        return None
    if not notification.is_read:
        notification.is_read = True
        db.commit()
    return notification


def mark_all_notifications_read(db: Session, *, user_id: int) -> int:
    updated = _inbox(db, user_id, unread_only=True).update(
        {"is_read": True}, synchronize_session=False
    )
    db.commit()
    return int(updated)


# =====================================
# WRITES
# =====================================

def create_notification(
    db: Session,
    *,
    recipient_id: int,
    actor_id: Optional[int],
    event_type: str,
    message: str,
    session_id: Optional[int] = None,
    payout_id: Optional[int] = None,
) -> Notification:
    """Add a notification to the current transaction; the caller commits."""
    notification = Notification(
        recipient_id=recipient_id,
        actor_id=actor_id,
        session_id=session_id,
        payout_id=payout_id,
        event_type=event_type,
        message=message,
    )
    db.add(notification)
    db.flush()
    return notification


def notify(
    db: Session,
    *,
    recipient_id: int,
    actor_id: Optional[int],
    event_type: str,
    message: str,
    session_id: Optional[int] = None,
    payout_id: Optional[int] = None,
) -> Optional[Notification]:
    """
    Store and email a notification. Never raises; returns None when the
    write failed.
    """
    try:
        notification = create_notification(
            db,
            recipient_id=recipient_id,
            actor_id=actor_id,
            event_type=event_type,
            message=message,
            session_id=session_id,
            payout_id=payout_id,
        )
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.warning(
            "Notification write failed (event_type=%s, recipient_id=%s): %s",
            event_type,
            recipient_id,
            exc,
        )
        return None
    dispatch_email_for_notification(db, notification)
    return notification


# =====================================
# EMAIL
# =====================================

def render_email(notification: Notification, recipient: models.User) -> Tuple[str, str]:
    subject = EMAIL_SUBJECT_BY_EVENT.get(notification.event_type, DEFAULT_SUBJECT)
    greeting = (recipient.name or "").strip() or "there"
    lines = [f"Hi {greeting},", "", notification.message, ""]
    if notification.session_id:
        lines.append(f"Session: #{notification.session_id}")
    if notification.payout_id:
        lines.append(f"Payout: #{notification.payout_id}")
    lines.extend(["", "Open MentorMarket to view details."])
    return subject, "\n".join(lines)


def _send_in_background(to_email: str, subject: str, body_text: str, notification_id: Optional[int]) -> None:
    if not send_email(to_email=to_email, subject=subject, body_text=body_text):
        logger.info("Notification email not sent (notification_id=%s)", notification_id)


def dispatch_email_for_notification(db: Session, notification: Notification) -> bool:
    """
    Queue the email for a committed notification.

    Returns True once the send is scheduled. Never raises.
    """
    try:
        if not is_email_enabled():
            return False
        recipient = db.get(models.User, notification.recipient_id)
        if recipient is None or not recipient.email:
            return False

        subject, body_text = render_email(notification, recipient)
        threading.Thread(
            target=_send_in_background,
            args=(recipient.email, subject, body_text, notification.id),
            daemon=True,
        ).start()
        return True
    except Exception as exc:
        logger.warning(
            "Notification email dispatch failed (notification_id=%s): %s",
            getattr(notification, "id", None),
            exc,
        )
        return False
