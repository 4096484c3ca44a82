from pydantic import BaseModel, Field
from typing import Dict, Optional


class CheckoutRequest(BaseModel):
    plan: str
    interval: str = "monthly"


class TopupRequest(BaseModel):
    package: str
    provider: str = "stripe"


class CoinAdjustmentRequest(BaseModel):
    amount: int  # Signed; negative removes coins
    reason: str = Field(..., min_length=1)


class PlanOverrideRequest(BaseModel):
    plan: str
    reason: Optional[str] = None


class RoleChangeRequest(BaseModel):
    role: str
    permissions: Optional[Dict[str, bool]] = None
