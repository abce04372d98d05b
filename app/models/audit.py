from sqlalchemy import Column, Integer, String, JSON, ForeignKey, TIMESTAMP, func
from app.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(60), nullable=False, index=True)
    resource = Column(String(40), nullable=False)
    resource_id = Column(String(64), nullable=True)
    details = Column(JSON, default=dict)
    created_at = Column(TIMESTAMP, server_default=func.now(), nullable=False)
