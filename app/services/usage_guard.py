"""
The metered-action sequence shared by every coin-consuming endpoint:

1. resolve the tier for the user's plan
2. check the daily cap                 -> DailyLimitReached
3. pick the model and its cost
4. debit the cost                      -> InsufficientFunds
5. record the daily usage
6. run the external operation
7. on an exception or an empty result, credit the exact debit back, release the
   daily counter and raise ExternalProviderFailure
8. otherwise return the result with the new balance and usage snapshot

Step 7's compensation leaves balance and counters exactly as they were
before the attempt.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from app.core.errors import DailyLimitReached, ExternalProviderFailure, PlanFeatureLocked
from app.core.roles import bypasses_daily_caps, can_use_any_model
from app.core.tiers import BL_COSTS, UNLIMITED, TierConfig, action_cost, resolve_tier
from app.models.user import User
from app.services import coin_ledger, usage_counter

logger = logging.getLogger(__name__)

# Action kind -> ledger transaction kind
TRANSACTION_KIND = {
    "generation": "generation",
    "codeFix": "code_fix",
    "githubPush": "github_push",
    "pwaBuild": "pwa_build",
    "badgeRemoval": "badge_removal",
}

ACTION_LABELS = {
    "generation": "generation",
    "codeFix": "code fix",
    "githubPush": "GitHub push",
    "pwaBuild": "PWA build",
    "badgeRemoval": "badge removal",
}

# Actions gated by a tier flag instead of a daily counter
FEATURE_FLAGS = {
    "pwaBuild": ("can_pwa", "PWA requires Gold or Diamond plan"),
    "badgeRemoval": ("can_remove_badge", "Badge removal requires Gold or Diamond plan"),
}


@dataclass
class MeteredResult:
    result: Any
    model: Optional[str]
    cost: int
    balance: int
    daily_usage: dict


def effective_model(user: User, requested: Optional[str] = None, tier: Optional[TierConfig] = None) -> str:
    """Requested model if the tier (or role) allows it, otherwise the tier default."""
    tier = tier or resolve_tier(user.plan)
    if can_use_any_model(user):
        model_costs = BL_COSTS["generation"]
        if requested in model_costs:
            return requested
        return "haiku"
    if requested and requested in tier.ai_models:
        return requested
    return tier.default_model


def _is_empty(result: Any) -> bool:
    if result is None:
        return True
    if isinstance(result, (str, list, tuple, dict)) and len(result) == 0:
        return True
    return False


def run_metered_action(
    db: Session,
    user: User,
    action: str,
    operation: Callable[[Optional[str]], Any],
    requested_model: Optional[str] = None,
    description: Optional[str] = None,
) -> MeteredResult:
    """Run `operation(model)` under the coin and daily-cap rules for `action`."""
    tier = resolve_tier(user.plan)
    label = ACTION_LABELS[action]
    daily = action in usage_counter.COUNTER_COLUMNS

    if daily:
        if not usage_counter.can_perform(user, action):
            raise DailyLimitReached(action, tier.cap_for(action), usage_counter.current_count(user, action))
    else:
        flag, message = FEATURE_FLAGS[action]
        if not getattr(tier, flag):
            raise PlanFeatureLocked(label, tier.plan, message)

    model_priced = isinstance(BL_COSTS[action], dict)
    model = effective_model(user, requested_model, tier) if model_priced else None
    cost = action_cost(action, model)

    kind = TRANSACTION_KIND[action]
    description = description or (f"{label.capitalize()} ({model})" if model else label.capitalize())
    entry = coin_ledger.debit(db, user, cost, kind, description, ai_model=model)
    charged = cost if entry is not None else 0

    if daily:
        cap = UNLIMITED if bypasses_daily_caps(user) else tier.cap_for(action)
        try:
            usage_counter.record_usage(db, user, action, cap=cap)
        except DailyLimitReached:
            # Lost a race for the last slot of the day
            if charged:
                coin_ledger.credit(db, user, charged, kind, f"Refund: {label} not started")
            raise

    try:
        result = operation(model)
        failure_reason = "empty result" if _is_empty(result) else None
    except Exception as e:
        logger.exception("%s failed for user %s", label, user.id)
        result = None
        failure_reason = str(e) or e.__class__.__name__

    if failure_reason:
        if charged:
            suffix = f" ({model})" if model else ""
            coin_ledger.credit(db, user, charged, kind, f"Refund: {label} failed{suffix}")
        if daily:
            usage_counter.release_usage(db, user, action)
        logger.warning("%s failed for user %s (%s); refunded %s BL", label, user.id, failure_reason, charged)
        raise ExternalProviderFailure(label, refunded=charged, reason=failure_reason)

    return MeteredResult(
        result=result,
        model=model,
        cost=charged,
        balance=user.bl_coins,
        daily_usage=usage_counter.usage_snapshot(user),
    )
