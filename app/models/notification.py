from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, TIMESTAMP, Index, func
from sqlalchemy.orm import relationship
from app.database import Base


class Notification(Base):
    """In-app message about a booking, a status change or a payout."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # None for system events (payout processing, gateway callbacks).
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True)
    payout_id = Column(Integer, ForeignKey("mentor_payouts.id", ondelete="SET NULL"), nullable=True)
    event_type = Column(String(50), nullable=False)
    message = Column(String(500), nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_notifications_recipient_unread", "recipient_id", "is_read"),
    )

    recipient = relationship("User", foreign_keys=[recipient_id])
    actor = relationship("User", foreign_keys=[actor_id])
    session = relationship("Session")
    payout = relationship("MentorPayout")
