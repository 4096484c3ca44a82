"""
Entitlement errors. They are HTTPExceptions so services can raise them and
FastAPI renders the structured detail without extra handlers in each route.
"""
from fastapi import HTTPException, status


class EntitlementError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Request rejected"

    def __init__(self, message: str = None, **fields):
        self.message = message or self.error
        self.fields = fields
        detail = {"error": self.error, "message": self.message}
        detail.update(fields)
        super().__init__(status_code=self.status_code, detail=detail)


class InsufficientFunds(EntitlementError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    error = "Insufficient BL coins"

    def __init__(self, required: int, balance: int):
        self.required = required
        self.balance = balance
        super().__init__(
            f"This action costs {required:,} BL but your balance is {balance:,} BL.",
            required=required,
            balance=balance,
            topup=True,
        )


class DailyLimitReached(EntitlementError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Daily limit reached"

    def __init__(self, action: str, limit, used: int):
        self.action = action
        self.limit = limit
        self.used = used
        super().__init__(
            f"Daily {action} limit reached ({used}/{limit}). Upgrade for more.",
            action=action,
            limit=limit,
            used=used,
            upgrade=True,
        )


class AlreadyClaimed(EntitlementError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Daily claim not ready"

    def __init__(self, next_claim_in: int, balance: int):
        self.next_claim_in = next_claim_in
        super().__init__(
            f"Next claim available in {next_claim_in} seconds.",
            nextClaimIn=next_claim_in,
            canClaim=False,
            balance=balance,
        )


class PlanFeatureLocked(EntitlementError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Upgrade required"

    def __init__(self, feature: str, plan: str, message: str = None):
        super().__init__(
            message or f"{feature} is not available on the {plan} plan.",
            feature=feature,
            plan=plan,
            upgrade=True,
        )


class ExternalProviderFailure(EntitlementError):
    status_code = status.HTTP_502_BAD_GATEWAY
    error = "External provider failed"

    def __init__(self, action: str, refunded: int = 0, reason: str = None):
        self.action = action
        self.refunded = refunded
        message = f"{action} failed."
        if refunded:
            message += " Coins refunded."
        super().__init__(message, action=action, refunded=refunded, reason=reason)


class InvalidSubdomain(EntitlementError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid subdomain"


class SubdomainTaken(EntitlementError):
    status_code = status.HTTP_409_CONFLICT
    error = "Subdomain already taken"


class SiteLimitReached(EntitlementError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Site limit reached"

    def __init__(self, max_sites):
        super().__init__(f"Site limit reached ({max_sites}). Upgrade for more.", maxSites=max_sites, upgrade=True)


class ScanLimitReached(EntitlementError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Scan limit reached"

    def __init__(self, used: int, limit: int):
        super().__init__(
            f"You have used {used} of {limit} repository scans. Upgrade for more.",
            scansUsed=used,
            scansLimit=limit,
            upgrade=True,
        )
