"""
BL coin wallet routes: balance, daily claim, transaction history and top-ups.
"""
import logging
import os
import stripe
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.core.tiers import TOPUP_PACKAGES, resolve_tier
from app.db.session import get_db
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.schemas.billing import TopupRequest
from app.services import coin_ledger, usage_counter

logger = logging.getLogger(__name__)

router = APIRouter()

stripe.api_key = os.getenv("STRIPE_SECRET_KEY")
WEB_URL = os.getenv("WEB_URL", "http://localhost:3000")


@router.get("/balance")
def get_balance(user: User = Depends(get_current_user)):
    tier = resolve_tier(user.plan)
    return {
        "balance": user.bl_coins,
        "plan": tier.plan,
        "canClaim": coin_ledger.can_claim(user),
        "nextClaimInSeconds": coin_ledger.claim_countdown(user),
        "dailyUsage": usage_counter.usage_snapshot(user),
        "tierConfig": tier.to_json(),
        "signupBonusClaimed": bool(user.signup_bonus_claimed),
    }


@router.post("/claim")
def claim_daily(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Claim the plan's daily BL. The first claim also pays the signup bonus."""
    result = coin_ledger.claim(db, user)
    parts = [f"Claimed {result['claimed']:,} BL"]
    if result["bonus"]:
        parts.append(f"+ {result['bonus']:,} BL welcome bonus")
    return {
        **result,
        "plan": resolve_tier(user.plan).plan,
        "canClaim": False,
        "nextClaimIn": coin_ledger.claim_countdown(user),
        "message": " ".join(parts) + "!",
    }


@router.get("/transactions")
def get_transactions(
    limit: int = 50,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    limit = max(1, min(limit, 100))
    entries = coin_ledger.recent_transactions(db, user, limit)
    return {"transactions": [entry.to_dict() for entry in entries], "balance": user.bl_coins}


@router.get("/packages")
def get_packages():
    return {
        "packages": [
            {"id": package_id, "coins": p["coins"], "price": p["price"], "label": p["label"]}
            for package_id, p in TOPUP_PACKAGES.items()
        ]
    }


@router.post("/topup")
def create_topup(
    request: TopupRequest,
    user: User = Depends(get_current_user),
):
    """
    Start a one-off Stripe checkout for a coin package.
    Coins are credited by the checkout.session.completed webhook, never here.
    """
    package = TOPUP_PACKAGES.get(request.package)
    if not package:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown package: {request.package}"
        )
    if request.provider != "stripe":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported payment provider: {request.provider}"
        )
    if not stripe.api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe is not configured"
        )

    try:
        session = stripe.checkout.Session.create(
            mode="payment",
            payment_method_types=["card"],
            customer=user.stripe_customer_id or None,
            customer_email=None if user.stripe_customer_id else user.email,
            line_items=[{
                "price_data": {
                    "currency": "usd",
                    "product_data": {"name": f"ZapCodes {package['label']}"},
                    "unit_amount": package["price"],
                },
                "quantity": 1,
            }],
            success_url=f"{WEB_URL}/dashboard?topup=success",
            cancel_url=f"{WEB_URL}/pricing?topup=cancelled",
            metadata={"type": "topup", "user_id": str(user.id), "package": request.package},
        )
    except stripe.StripeError as e:
        logger.error("Stripe top-up checkout failed for %s: %s", user.email, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to create checkout session: {str(e)}"
        )
    except Exception as e:
        logger.exception("Unexpected error creating top-up checkout for %s", user.email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create checkout session: {str(e)}"
        )

    logger.info("Top-up checkout %s created for %s (%s)", session.id, user.email, request.package)
    return {"checkout_url": session.url, "session_id": session.id}
