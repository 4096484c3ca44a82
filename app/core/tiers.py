"""
Tier configuration - single source of truth for plan capabilities and BL coin prices.

Plans follow the coin-economy revision: free / bronze / silver / gold / diamond.
Anything that is not a known plan resolves to the free tier.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union


class _Unlimited:
    """Sentinel for caps with no upper bound. Any count is below it."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __gt__(self, other):
        return not isinstance(other, _Unlimited)

    def __ge__(self, other):
        return True

    def __lt__(self, other):
        return False

    def __le__(self, other):
        return isinstance(other, _Unlimited)

    def __eq__(self, other):
        return isinstance(other, _Unlimited)

    def __hash__(self):
        return hash("UNLIMITED")

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __repr__(self):
        return "UNLIMITED"

    def __str__(self):
        return "∞"


UNLIMITED = _Unlimited()

Cap = Union[int, _Unlimited]


def is_unlimited(value) -> bool:
    return isinstance(value, _Unlimited)


def format_cap(value: Cap) -> str:
    """Human readable cap, e.g. for error messages and pricing tables."""
    if is_unlimited(value):
        return "∞"
    return f"{value:,}"


def cap_to_json(value: Cap) -> Optional[int]:
    # JSON has no infinity; clients render null as "∞"
    return None if is_unlimited(value) else value


@dataclass(frozen=True)
class TierConfig:
    plan: str
    daily_claim: int
    daily_gen_cap: Cap
    daily_fix_cap: Cap
    daily_push_cap: Cap
    max_sites: Cap
    max_chars: Cap
    max_file_size: Cap
    ai_models: Tuple[str, ...]
    can_pwa: bool
    can_remove_badge: bool
    can_pro_dev: bool

    @property
    def default_model(self) -> str:
        return self.ai_models[0]

    def cap_for(self, action: str) -> Cap:
        return {
            "generation": self.daily_gen_cap,
            "codeFix": self.daily_fix_cap,
            "githubPush": self.daily_push_cap,
        }.get(action, 0)

    def to_json(self) -> dict:
        """Client-facing shape (camelCase, unlimited caps as null)."""
        return {
            "plan": self.plan,
            "dailyClaim": self.daily_claim,
            "dailyGenCap": cap_to_json(self.daily_gen_cap),
            "dailyFixCap": cap_to_json(self.daily_fix_cap),
            "dailyPushCap": cap_to_json(self.daily_push_cap),
            "maxSites": cap_to_json(self.max_sites),
            "maxChars": cap_to_json(self.max_chars),
            "maxFileSize": cap_to_json(self.max_file_size),
            "aiModels": list(self.ai_models),
            "canPWA": self.can_pwa,
            "canRemoveBadge": self.can_remove_badge,
            "canProDev": self.can_pro_dev,
        }


KIB = 1024
MIB = 1024 * 1024

TIERS: Dict[str, TierConfig] = {
    "free": TierConfig(
        plan="free", daily_claim=2_000,
        daily_gen_cap=1, daily_fix_cap=0, daily_push_cap=0,
        max_sites=1, max_chars=1_500, max_file_size=0,
        ai_models=("groq",), can_pwa=False, can_remove_badge=False, can_pro_dev=False,
    ),
    "bronze": TierConfig(
        plan="bronze", daily_claim=20_000,
        daily_gen_cap=5, daily_fix_cap=3, daily_push_cap=3,
        max_sites=3, max_chars=3_000, max_file_size=200 * KIB,
        ai_models=("groq",), can_pwa=False, can_remove_badge=False, can_pro_dev=False,
    ),
    "silver": TierConfig(
        plan="silver", daily_claim=80_000,
        daily_gen_cap=7, daily_fix_cap=10, daily_push_cap=10,
        max_sites=5, max_chars=4_000, max_file_size=500 * KIB,
        ai_models=("haiku",), can_pwa=False, can_remove_badge=False, can_pro_dev=False,
    ),
    "gold": TierConfig(
        plan="gold", daily_claim=250_000,
        daily_gen_cap=15, daily_fix_cap=50, daily_push_cap=50,
        max_sites=15, max_chars=5_000, max_file_size=1 * MIB,
        ai_models=("haiku",), can_pwa=True, can_remove_badge=True, can_pro_dev=True,
    ),
    "diamond": TierConfig(
        plan="diamond", daily_claim=500_000,
        daily_gen_cap=UNLIMITED, daily_fix_cap=UNLIMITED, daily_push_cap=UNLIMITED,
        max_sites=UNLIMITED, max_chars=UNLIMITED, max_file_size=UNLIMITED,
        ai_models=("haiku", "opus"), can_pwa=True, can_remove_badge=True, can_pro_dev=True,
    ),
}

PLANS = tuple(TIERS.keys())
PAID_PLANS = tuple(plan for plan in PLANS if plan != "free")

# BL coin cost per action; model-priced actions are keyed by AI model
BL_COSTS: Dict[str, Union[int, Dict[str, int]]] = {
    "generation": {"groq": 5_000, "haiku": 10_000, "opus": 50_000},
    "codeFix": {"groq": 5_000, "haiku": 10_000, "opus": 50_000},
    "githubPush": 2_000,
    "pwaBuild": 20_000,
    "badgeRemoval": 100_000,
    "deploy": 0,
}

SIGNUP_BONUS = 50_000
REFERRAL_BONUS = 50_000

# Prices in cents; yearly billing is ten months
PLAN_PRICES: Dict[str, int] = {
    "bronze": 499,
    "silver": 1_499,
    "gold": 2_999,
    "diamond": 9_999,
}

TOPUP_PACKAGES: Dict[str, Dict[str, Union[int, str]]] = {
    "30k": {"coins": 30_000, "price": 499, "label": "30,000 BL"},
    "80k": {"coins": 80_000, "price": 999, "label": "80,000 BL"},
    "400k": {"coins": 400_000, "price": 1_499, "label": "400,000 BL"},
    "1m": {"coins": 1_000_000, "price": 2_999, "label": "1,000,000 BL"},
}

# Legacy scan/build counters still shown by older clients
LEGACY_LIMITS: Dict[str, Dict[str, int]] = {
    "free": {"scans_limit": 5, "builds_limit": 3},
    "bronze": {"scans_limit": 25, "builds_limit": 15},
    "silver": {"scans_limit": 100, "builds_limit": 50},
    "gold": {"scans_limit": 500, "builds_limit": 250},
    "diamond": {"scans_limit": -1, "builds_limit": -1},  # -1 means unlimited
}


def resolve_tier(plan_id: Optional[str]) -> TierConfig:
    """Get the capability table for a plan. Unknown plans get the free table."""
    return TIERS.get(plan_id or "free", TIERS["free"])


def denormalized_limits(plan_id: Optional[str]) -> Dict[str, int]:
    """Limit columns stored next to User.plan; must be rewritten on every plan change."""
    tier = resolve_tier(plan_id)
    limits = dict(LEGACY_LIMITS[tier.plan])
    limits["max_sites"] = -1 if is_unlimited(tier.max_sites) else tier.max_sites
    return limits


def action_cost(action: str, model: Optional[str] = None) -> int:
    cost = BL_COSTS[action]
    if isinstance(cost, dict):
        return cost[model or "groq"]
    return cost


def within_cap(count: int, cap: Cap) -> bool:
    """True if one more unit is allowed. A zero cap never allows anything."""
    return count < cap
