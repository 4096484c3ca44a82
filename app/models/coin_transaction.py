"""
BL coin ledger entries. Each row carries the balance right after the operation,
so the newest row always matches users.bl_coins. Only the newest
MAX_TRANSACTIONS_PER_USER rows are kept per user.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Index
from datetime import datetime
from app.db.base import Base

MAX_TRANSACTIONS_PER_USER = 100

TRANSACTION_KINDS = (
    "claim",
    "signup_bonus",
    "referral_bonus",
    "generation",
    "code_fix",
    "github_push",
    "pwa_build",
    "badge_removal",
    "topup",
    "admin_adjustment",
)


class CoinTransaction(Base):
    __tablename__ = "coin_transactions"
    __table_args__ = (
        Index("ix_coin_transactions_user_id_id", "user_id", "id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    kind = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)  # Signed: negative for debits
    balance = Column(Integer, nullable=False)  # Snapshot after this entry
    description = Column(String, nullable=True)
    ai_model = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "amount": self.amount,
            "balance": self.balance,
            "description": self.description,
            "aiModel": self.ai_model,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<CoinTransaction(user_id={self.user_id}, kind={self.kind}, amount={self.amount}, balance={self.balance})>"
