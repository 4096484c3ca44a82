from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base import Base


class DeployedSite(Base):
    __tablename__ = "deployed_sites"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subdomain = Column(String(50), unique=True, nullable=False, index=True)  # Unique across all accounts
    title = Column(String, nullable=True)
    has_badge = Column(Boolean, default=True, nullable=False)
    is_pwa = Column(Boolean, default=False, nullable=False)
    file_size = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="deployed_sites")

    def to_dict(self) -> dict:
        return {
            "subdomain": self.subdomain,
            "title": self.title,
            "hasBadge": self.has_badge,
            "isPWA": self.is_pwa,
            "fileSize": self.file_size,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }
