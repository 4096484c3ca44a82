"""
BL coin ledger: balance mutations, the bounded transaction log, daily claims
and referral bonuses.

Balance changes are conditional UPDATEs evaluated by the database
(bl_coins = bl_coins - :amount WHERE bl_coins >= :amount), so two parallel
debits can never both pass on the same coins. Every change appends one
CoinTransaction holding the post-operation balance, then the log is trimmed to
the newest MAX_TRANSACTIONS_PER_USER rows.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.core.errors import AlreadyClaimed, InsufficientFunds
from app.core.roles import bypasses_coin_costs
from app.core.tiers import REFERRAL_BONUS, SIGNUP_BONUS, resolve_tier
from app.models.coin_transaction import MAX_TRANSACTIONS_PER_USER, TRANSACTION_KINDS, CoinTransaction
from app.models.user import User

logger = logging.getLogger(__name__)

CLAIM_INTERVAL = timedelta(hours=24)


def _current_balance(db: Session, user_id: int) -> int:
    return db.query(User.bl_coins).filter(User.id == user_id).scalar() or 0


def _append(
    db: Session,
    user_id: int,
    kind: str,
    amount: int,
    balance: int,
    description: str,
    ai_model: Optional[str] = None,
) -> CoinTransaction:
    if kind not in TRANSACTION_KINDS:
        raise ValueError(f"Unknown transaction kind: {kind}")

    entry = CoinTransaction(
        user_id=user_id,
        kind=kind,
        amount=amount,
        balance=balance,
        description=description,
        ai_model=ai_model,
        created_at=datetime.utcnow(),
    )
    db.add(entry)
    db.flush()

    # Drop everything older than the newest MAX_TRANSACTIONS_PER_USER rows
    cutoff_id = (
        db.query(CoinTransaction.id)
        .filter(CoinTransaction.user_id == user_id)
        .order_by(CoinTransaction.id.desc())
        .offset(MAX_TRANSACTIONS_PER_USER)
        .limit(1)
        .scalar()
    )
    if cutoff_id is not None:
        db.query(CoinTransaction).filter(
            CoinTransaction.user_id == user_id,
            CoinTransaction.id <= cutoff_id,
        ).delete(synchronize_session=False)

    return entry


def _apply_credit(
    db: Session,
    user: User,
    amount: int,
    kind: str,
    description: str,
) -> CoinTransaction:
    """Add coins and record them without committing."""
    db.execute(
        update(User)
        .where(User.id == user.id)
        .values(bl_coins=User.bl_coins + amount)
        .execution_options(synchronize_session=False)
    )
    balance = _current_balance(db, user.id)
    return _append(db, user.id, kind, amount, balance, description)


def debit(
    db: Session,
    user: User,
    amount: int,
    kind: str,
    description: str,
    ai_model: Optional[str] = None,
) -> Optional[CoinTransaction]:
    """
    Spend `amount` coins. Raises InsufficientFunds when the balance is short.

    Returns the new ledger entry, or None when nothing was charged (roles
    exempt from coin costs, or a zero amount).
    """
    if amount < 0:
        raise ValueError("Debit amount must be non-negative")
    if amount == 0 or bypasses_coin_costs(user):
        return None

    result = db.execute(
        update(User)
        .where(User.id == user.id, User.bl_coins >= amount)
        .values(bl_coins=User.bl_coins - amount)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        balance = _current_balance(db, user.id)
        db.refresh(user)
        logger.info("Debit rejected for user %s: needs %s BL, has %s BL", user.id, amount, balance)
        raise InsufficientFunds(required=amount, balance=balance)

    balance = _current_balance(db, user.id)
    entry = _append(db, user.id, kind, -amount, balance, description, ai_model)
    db.commit()
    db.refresh(user)
    logger.info("User %s spent %s BL on %s (balance %s)", user.id, amount, kind, balance)
    return entry


def credit(db: Session, user: User, amount: int, kind: str, description: str) -> CoinTransaction:
    """Add coins. Always succeeds; used for grants, top-ups and refunds."""
    if amount < 0:
        raise ValueError("Credit amount must be non-negative")
    entry = _apply_credit(db, user, amount, kind, description)
    db.commit()
    db.refresh(user)
    logger.info("User %s credited %s BL (%s), balance %s", user.id, amount, kind, entry.balance)
    return entry


def adjust(db: Session, user: User, amount: int, description: str) -> CoinTransaction:
    """Signed admin adjustment. Negative amounts are debits and may not overdraw."""
    if amount >= 0:
        return credit(db, user, amount, "admin_adjustment", description)

    result = db.execute(
        update(User)
        .where(User.id == user.id, User.bl_coins >= -amount)
        .values(bl_coins=User.bl_coins + amount)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        balance = _current_balance(db, user.id)
        raise InsufficientFunds(required=-amount, balance=balance)
    balance = _current_balance(db, user.id)
    entry = _append(db, user.id, "admin_adjustment", amount, balance, description)
    db.commit()
    db.refresh(user)
    return entry


def can_claim(user: User, now: Optional[datetime] = None) -> bool:
    if not user.last_daily_claim:
        return True
    return (now or datetime.utcnow()) - user.last_daily_claim >= CLAIM_INTERVAL


def claim_countdown(user: User, now: Optional[datetime] = None) -> int:
    """Seconds until the next claim is allowed (0 when claimable)."""
    if not user.last_daily_claim:
        return 0
    remaining = (user.last_daily_claim + CLAIM_INTERVAL) - (now or datetime.utcnow())
    return max(0, math.ceil(remaining.total_seconds()))


def claim(db: Session, user: User, now: Optional[datetime] = None) -> dict:
    """
    Daily BL claim: credits the tier's daily_claim once per rolling 24 hours.
    The very first claim also pays the one-time signup bonus.
    """
    now = now or datetime.utcnow()
    if not can_claim(user, now):
        raise AlreadyClaimed(claim_countdown(user, now), user.bl_coins)

    # Stamp the claim first; the WHERE clause makes a parallel second claim miss
    result = db.execute(
        update(User)
        .where(
            User.id == user.id,
            or_(User.last_daily_claim.is_(None), User.last_daily_claim <= now - CLAIM_INTERVAL),
        )
        .values(last_daily_claim=now)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        db.refresh(user)
        raise AlreadyClaimed(claim_countdown(user, now), user.bl_coins)

    bonus = 0
    result = db.execute(
        update(User)
        .where(User.id == user.id, User.signup_bonus_claimed.is_(False))
        .values(signup_bonus_claimed=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        bonus = SIGNUP_BONUS
        _apply_credit(db, user, bonus, "signup_bonus", "Welcome to ZapCodes!")

    tier = resolve_tier(user.plan)
    claimed = tier.daily_claim
    entry = _apply_credit(db, user, claimed, "claim", f"Daily {tier.plan} claim: {claimed:,} BL")
    db.commit()
    db.refresh(user)

    logger.info("User %s claimed %s BL (bonus %s), balance %s", user.id, claimed, bonus, entry.balance)
    return {"claimed": claimed, "bonus": bonus, "balance": entry.balance}


def grant_referral_bonus(db: Session, referrer: User, referee: User) -> None:
    """Pay both sides of a referral and link the new account to its referrer."""
    referee.referred_by_id = referrer.id
    referrer.referral_count = (referrer.referral_count or 0) + 1
    db.flush()
    _apply_credit(db, referee, REFERRAL_BONUS, "referral_bonus", f"Referred by {referrer.name}")
    _apply_credit(db, referrer, REFERRAL_BONUS, "referral_bonus", f"Referred {referee.name}")
    db.commit()
    db.refresh(referee)
    db.refresh(referrer)
    logger.info("Referral bonus paid: %s -> %s (%s BL each)", referrer.email, referee.email, REFERRAL_BONUS)


def transaction_log(db: Session, user: User) -> List[CoinTransaction]:
    """Full retained log, oldest first."""
    return (
        db.query(CoinTransaction)
        .filter(CoinTransaction.user_id == user.id)
        .order_by(CoinTransaction.id.asc())
        .all()
    )


def recent_transactions(db: Session, user: User, limit: int = 50) -> List[CoinTransaction]:
    """Newest first, for the wallet screen."""
    return (
        db.query(CoinTransaction)
        .filter(CoinTransaction.user_id == user.id)
        .order_by(CoinTransaction.id.desc())
        .limit(limit)
        .all()
    )
