# app/models/availability.py
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, TIMESTAMP, CheckConstraint, Index, func
from sqlalchemy.orm import relationship
from app.database import Base


class AvailabilitySlot(Base):
    """Weekly recurring window; day_of_week 0 = Sunday, times are "HH:MM"."""

    __tablename__ = "availability_slots"

    id = Column(Integer, primary_key=True, index=True)
    mentor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="check_day_of_week_range"),
        CheckConstraint("start_time < end_time", name="check_slot_start_before_end"),
        Index("ix_availability_mentor_day", "mentor_id", "day_of_week"),
    )

    mentor = relationship("User", back_populates="availability_slots")
