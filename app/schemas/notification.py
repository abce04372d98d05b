from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    id: int
    recipient_id: int
    actor_id: Optional[int] = None
    session_id: Optional[int] = None
    payout_id: Optional[int] = None
    event_type: str
    message: str
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UnreadCount(BaseModel):
    unread: int


class MarkedRead(BaseModel):
    updated: int
