"""
Audit trail for admin console actions. Rows are only ever inserted.
"""
from sqlalchemy import Column, Integer, String, JSON, ForeignKey, DateTime
from datetime import datetime
from enum import Enum
from app.db.base import Base


class AdminAction(str, Enum):
    """Admin actions that are recorded."""
    COIN_ADJUSTMENT = "coin_adjustment"
    PLAN_OVERRIDE = "plan_override"
    ROLE_CHANGE = "role_change"
    PERMISSION_CHANGE = "permission_change"


class AdminLog(Base):
    __tablename__ = "admin_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    actor_email = Column(String, nullable=False)
    actor_role = Column(String, nullable=False)
    action = Column(String, nullable=False, index=True)
    target_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    target_email = Column(String, nullable=True)
    description = Column(String, nullable=False)
    before_state = Column(JSON, nullable=True)
    after_state = Column(JSON, nullable=True)
    severity = Column(String, default="info", nullable=False)  # info / warning / critical
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actorEmail": self.actor_email,
            "actorRole": self.actor_role,
            "action": self.action,
            "targetEmail": self.target_email,
            "description": self.description,
            "beforeState": self.before_state,
            "afterState": self.after_state,
            "severity": self.severity,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AdminLog(id={self.id}, action={self.action}, actor={self.actor_email})>"
