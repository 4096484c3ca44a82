from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base

class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("bl_coins >= 0", name="ck_users_bl_coins_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=True)  # Null for social logins
    name = Column(String, nullable=False)
    provider = Column(String, default="local", nullable=False)  # local / google / github / apple
    github_token = Column(String, nullable=True)
    preferred_ai = Column(String, default="groq", nullable=False)

    # Role system; capabilities per role live in app.core.roles
    role = Column(String, default="user", nullable=False)
    permissions = Column(JSON, default=dict, nullable=False)  # Extra per-user grants
    status = Column(String, default="active", nullable=False)  # active / suspended / banned

    # Subscription & billing
    plan = Column(String, default="free", nullable=False)
    billing_interval = Column(String, nullable=True)  # monthly / yearly
    subscription_start = Column(DateTime, nullable=True)
    stripe_customer_id = Column(String, index=True, nullable=True)
    stripe_subscription_id = Column(String, index=True, nullable=True)

    # Denormalized from the tier table; rewritten together with plan
    scans_limit = Column(Integer, default=5, nullable=False)  # Repository scans, -1 means unlimited
    builds_limit = Column(Integer, default=3, nullable=False)
    max_sites = Column(Integer, default=1, nullable=False)

    # Repository scans so far, checked against scans_limit
    scans_used = Column(Integer, default=0, nullable=False)

    # BL coin economy
    bl_coins = Column(Integer, default=0, nullable=False)
    signup_bonus_claimed = Column(Boolean, default=False, nullable=False)
    last_daily_claim = Column(DateTime, nullable=True)  # UTC

    # Daily usage, reset lazily when usage_date is not today (UTC)
    usage_date = Column(String(10), nullable=True)  # YYYY-MM-DD
    daily_generations = Column(Integer, default=0, nullable=False)
    daily_code_fixes = Column(Integer, default=0, nullable=False)
    daily_github_pushes = Column(Integer, default=0, nullable=False)

    # Referrals
    referral_code = Column(String, unique=True, index=True, nullable=True)
    referred_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    referral_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    deployed_sites = relationship(
        "DeployedSite",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="DeployedSite.created_at",
    )
