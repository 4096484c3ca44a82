"""
Role policy table. Which roles skip caps, skip coin costs, or reach the admin
console is data here, not a hardcoded identity check at the call sites.
"""
from typing import Dict, FrozenSet

ROLES = ("user", "moderator", "co-admin", "super-admin")

PERMISSIONS = (
    "viewAnalytics",
    "moderateUsers",
    "viewFinancials",
    "adjustPricing",
    "adjustCoins",
    "viewSecurityLogs",
    "manageAI",
    "manageRoles",
    "globalSettings",
)

ROLE_POLICIES: Dict[str, dict] = {
    "user": {
        "bypass_daily_caps": False,
        "bypass_coin_costs": False,
        "any_model": False,
        "is_admin": False,
        "permissions": frozenset(),
    },
    "moderator": {
        "bypass_daily_caps": False,
        "bypass_coin_costs": False,
        "any_model": False,
        "is_admin": False,
        "permissions": frozenset({"viewAnalytics", "moderateUsers"}),
    },
    "co-admin": {
        "bypass_daily_caps": False,
        "bypass_coin_costs": False,
        "any_model": False,
        "is_admin": True,
        "permissions": frozenset({
            "viewAnalytics", "moderateUsers", "viewFinancials",
            "adjustCoins", "viewSecurityLogs",
        }),
    },
    "super-admin": {
        "bypass_daily_caps": True,
        "bypass_coin_costs": True,
        "any_model": True,
        "is_admin": True,
        "permissions": frozenset(PERMISSIONS),
    },
}


def policy_for(role: str) -> dict:
    return ROLE_POLICIES.get(role or "user", ROLE_POLICIES["user"])


def bypasses_daily_caps(user) -> bool:
    return policy_for(user.role)["bypass_daily_caps"]


def bypasses_coin_costs(user) -> bool:
    return policy_for(user.role)["bypass_coin_costs"]


def can_use_any_model(user) -> bool:
    return policy_for(user.role)["any_model"]


def is_admin(user) -> bool:
    return policy_for(user.role)["is_admin"]


def granted_permissions(user) -> FrozenSet[str]:
    extra = {name for name, allowed in (user.permissions or {}).items() if allowed}
    return policy_for(user.role)["permissions"] | frozenset(extra)


def has_permission(user, permission: str) -> bool:
    return permission in granted_permissions(user)
