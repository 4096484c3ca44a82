"""
Stripe Checkout Session Routes
Handles subscription checkout and the customer billing portal
"""
import logging
import os
import stripe
from fastapi import APIRouter, Depends, HTTPException, status
from app.core.tiers import PAID_PLANS, PLAN_PRICES, resolve_tier
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.schemas.billing import CheckoutRequest

logger = logging.getLogger(__name__)

router = APIRouter()

# Initialize Stripe
stripe.api_key = os.getenv("STRIPE_SECRET_KEY")
WEB_URL = os.getenv("WEB_URL", "http://localhost:3000")

BILLING_INTERVALS = ("monthly", "yearly")


def plan_price(plan: str, interval: str) -> int:
    """Price in cents; a year costs ten months."""
    monthly = PLAN_PRICES[plan]
    return monthly * 10 if interval == "yearly" else monthly


def _price_id(plan: str, interval: str) -> str:
    return os.getenv(f"STRIPE_PRICE_{plan.upper()}_{interval.upper()}", "")


def _line_item(plan: str, interval: str) -> dict:
    price_id = _price_id(plan, interval)
    if price_id:
        return {"price": price_id, "quantity": 1}
    # No configured price; describe it inline
    return {
        "price_data": {
            "currency": "usd",
            "product_data": {"name": f"ZapCodes {plan.capitalize()}"},
            "unit_amount": plan_price(plan, interval),
            "recurring": {"interval": "year" if interval == "yearly" else "month"},
        },
        "quantity": 1,
    }


@router.get("/plans")
def get_plans():
    return {
        "plans": [
            {
                "id": plan,
                "monthly": plan_price(plan, "monthly") if plan in PLAN_PRICES else 0,
                "yearly": plan_price(plan, "yearly") if plan in PLAN_PRICES else 0,
                "tierConfig": resolve_tier(plan).to_json(),
            }
            for plan in ("free",) + PAID_PLANS
        ]
    }


@router.post("/create-checkout")
def create_checkout_session(
    request: CheckoutRequest,
    user: User = Depends(get_current_user),
):
    """
    Create a Stripe Checkout Session for a plan upgrade.
    The plan itself is applied by the checkout.session.completed webhook.
    """
    if request.plan not in PAID_PLANS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown plan: {request.plan}"
        )
    if request.interval not in BILLING_INTERVALS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown billing interval: {request.interval}"
        )
    if not stripe.api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe is not configured"
        )
    if user.plan == request.plan and user.stripe_subscription_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Already subscribed to {request.plan}"
        )

    metadata = {"user_id": str(user.id), "plan": request.plan, "interval": request.interval}
    try:
        # Create or reuse the Stripe customer
        customer_id = user.stripe_customer_id
        if not customer_id:
            customer = stripe.Customer.create(
                email=user.email,
                metadata={"user_id": str(user.id), "user_email": user.email}
            )
            customer_id = customer.id

        checkout_session = stripe.checkout.Session.create(
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[_line_item(request.plan, request.interval)],
            mode="subscription",
            success_url=f"{WEB_URL}/dashboard?upgraded={request.plan}&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{WEB_URL}/pricing?canceled=true",
            metadata=metadata,
            subscription_data={"metadata": metadata},
        )
    except stripe.StripeError as e:
        logger.error("Stripe error creating checkout session for %s: %s", user.email, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to create checkout session: {str(e)}"
        )
    except Exception as e:
        logger.exception("Unexpected error creating checkout session for %s", user.email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create checkout session: {str(e)}"
        )

    logger.info("Created Stripe Checkout Session %s for user %s (%s)", checkout_session.id, user.id, request.plan)
    return {
        "checkout_url": checkout_session.url,
        "session_id": checkout_session.id
    }


@router.post("/portal")
def create_portal_session(user: User = Depends(get_current_user)):
    """Billing portal for managing or cancelling the subscription."""
    if not user.stripe_customer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No billing account yet"
        )
    try:
        portal = stripe.billing_portal.Session.create(
            customer=user.stripe_customer_id,
            return_url=f"{WEB_URL}/dashboard",
        )
    except stripe.StripeError as e:
        logger.error("Stripe error creating portal session for %s: %s", user.email, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to open billing portal: {str(e)}"
        )
    except Exception as e:
        logger.exception("Unexpected error creating portal session for %s", user.email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to open billing portal: {str(e)}"
        )
    return {"url": portal.url}
