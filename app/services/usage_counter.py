"""
Per-user daily usage counters for generations, code fixes and GitHub pushes,
plus the repository scan allowance (scans_used against scans_limit).

There is no reset job. A stored usage_date that is not today (UTC) means every
counter reads as zero; the row itself is only rewritten by the next
record_usage call. Writes are single conditional UPDATE statements so parallel
requests from the same user cannot lose increments.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.core.errors import DailyLimitReached, ScanLimitReached
from app.core.roles import bypasses_daily_caps
from app.core.tiers import UNLIMITED, Cap, is_unlimited, resolve_tier, within_cap
from app.models.user import User

logger = logging.getLogger(__name__)

# Daily action kind -> User column
COUNTER_COLUMNS = {
    "generation": "daily_generations",
    "codeFix": "daily_code_fixes",
    "githubPush": "daily_github_pushes",
}


def today(now: Optional[datetime] = None) -> str:
    """Current UTC calendar day as YYYY-MM-DD."""
    return (now or datetime.utcnow()).strftime("%Y-%m-%d")


def current_count(user: User, action: str, day: Optional[str] = None) -> int:
    """Counter value as seen today; a stale usage_date reads as zero."""
    if user.usage_date != (day or today()):
        return 0
    return getattr(user, COUNTER_COLUMNS[action]) or 0


def can_perform(user: User, action: str, day: Optional[str] = None) -> bool:
    """
    Check whether the user may perform one more `action` today.
    Never writes anything. A cap of zero denies even at a zero count.
    """
    if action not in COUNTER_COLUMNS:
        return False
    if bypasses_daily_caps(user):
        return True
    cap = resolve_tier(user.plan).cap_for(action)
    return within_cap(current_count(user, action, day), cap)


def usage_snapshot(user: User, day: Optional[str] = None) -> dict:
    day = day or today()
    return {
        "date": day,
        "generations": current_count(user, "generation", day),
        "codeFixes": current_count(user, "codeFix", day),
        "githubPushes": current_count(user, "githubPush", day),
    }


def record_usage(db: Session, user: User, action: str, cap: Cap = UNLIMITED, day: Optional[str] = None) -> None:
    """
    Increment today's counter for `action`, starting a fresh day when the
    stored date is stale. With a finite `cap` the increment only happens while
    the counter is below it; otherwise DailyLimitReached is raised.
    """
    column_name = COUNTER_COLUMNS[action]
    column = getattr(User, column_name)
    day = day or today()

    if not within_cap(0, cap):
        raise DailyLimitReached(action, cap, 0)

    for _ in range(2):
        same_day = update(User).where(User.id == user.id, User.usage_date == day)
        if not is_unlimited(cap):
            same_day = same_day.where(column < cap)
        result = db.execute(
            same_day.values({column: column + 1}).execution_options(synchronize_session=False)
        )
        if result.rowcount:
            break

        fresh = {
            User.usage_date: day,
            User.daily_generations: 0,
            User.daily_code_fixes: 0,
            User.daily_github_pushes: 0,
        }
        fresh[column] = 1
        result = db.execute(
            update(User)
            .where(User.id == user.id, or_(User.usage_date.is_(None), User.usage_date != day))
            .values(fresh)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            break
        # Another request started the day between the two statements; retry once
    else:
        db.refresh(user)
        raise DailyLimitReached(action, cap, current_count(user, action, day))

    db.commit()
    db.refresh(user)


def release_usage(db: Session, user: User, action: str, day: Optional[str] = None) -> None:
    """Undo one increment from today's counter, never going below zero."""
    column = getattr(User, COUNTER_COLUMNS[action])
    day = day or today()
    db.execute(
        update(User)
        .where(User.id == user.id, User.usage_date == day, column > 0)
        .values({column: column - 1})
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(user)
    logger.info("Released one %s for user %s", action, user.id)


def reserve_scan(db: Session, user: User) -> None:
    """
    Take one repository scan out of scans_limit (-1 is unlimited). Not a daily
    counter: scans_used only grows, apart from release_scan after a failed scan.
    """
    stmt = update(User).where(User.id == user.id)
    if not bypasses_daily_caps(user):
        stmt = stmt.where(or_(User.scans_limit < 0, User.scans_used < User.scans_limit))
    result = db.execute(
        stmt.values(scans_used=User.scans_used + 1).execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        db.refresh(user)
        raise ScanLimitReached(user.scans_used, user.scans_limit)
    db.commit()
    db.refresh(user)


def release_scan(db: Session, user: User) -> None:
    db.execute(
        update(User)
        .where(User.id == user.id, User.scans_used > 0)
        .values(scans_used=User.scans_used - 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(user)
