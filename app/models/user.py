import enum

from sqlalchemy import Column, Integer, String, Boolean, JSON, TIMESTAMP, func
from sqlalchemy.orm import relationship
from app.database import Base


class Role(str, enum.Enum):
    MENTOR = "MENTOR"
    MENTEE = "MENTEE"
    ADMIN = "ADMIN"


# ---------------- USER (AUTH TABLE) ----------------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    # Role set, e.g. ["MENTOR", "MENTEE"]; a user may hold both.
    roles = Column(JSON, default=list, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    mentor_sessions = relationship("Session", foreign_keys="Session.mentor_id", back_populates="mentor")
    mentee_sessions = relationship("Session", foreign_keys="Session.mentee_id", back_populates="mentee")
    availability_slots = relationship("AvailabilitySlot", back_populates="mentor", cascade="all, delete-orphan")
    pricing_models = relationship("PricingModel", back_populates="mentor", cascade="all, delete-orphan")

    def has_role(self, role) -> bool:
        wanted = getattr(role, "value", role)
        return wanted in (self.roles or [])
