"""
Keeps User.plan, its denormalized limit columns and the Subscription row in
step with billing events.

Every plan write goes through _set_plan so the limit columns are re-derived
from the tier table in the same commit as the plan itself.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.tiers import PLANS, TOPUP_PACKAGES, denormalized_limits
from app.models.processed_webhook_event import ProcessedWebhookEvent
from app.models.subscription import Subscription
from app.models.user import User
from app.services import coin_ledger

logger = logging.getLogger(__name__)


def _set_plan(user: User, plan: str) -> None:
    user.plan = plan
    for column, value in denormalized_limits(plan).items():
        setattr(user, column, value)


def _upsert_subscription(db: Session, user: User, **values) -> Subscription:
    subscription = db.query(Subscription).filter(Subscription.user_id == user.id).first()
    if not subscription:
        subscription = Subscription(user_id=user.id)
        db.add(subscription)
    for key, value in values.items():
        setattr(subscription, key, value)
    return subscription


def apply_plan_change(
    db: Session,
    user: User,
    new_plan: str,
    external_subscription_id: Optional[str],
    interval: str = "monthly",
    customer_id: Optional[str] = None,
) -> bool:
    """
    Move the user onto `new_plan`. Returns False when the user is already on
    that plan with that subscription, in which case nothing is written.
    """
    if new_plan not in PLANS:
        raise ValueError(f"Unknown plan: {new_plan}")

    if (
        user.plan == new_plan
        and user.stripe_subscription_id == external_subscription_id
        and user.billing_interval == interval
    ):
        return False

    previous = user.plan
    _set_plan(user, new_plan)
    user.stripe_subscription_id = external_subscription_id
    user.billing_interval = interval
    user.subscription_start = datetime.utcnow()
    if customer_id:
        user.stripe_customer_id = customer_id

    _upsert_subscription(
        db,
        user,
        stripe_subscription_id=external_subscription_id,
        stripe_customer_id=customer_id or user.stripe_customer_id,
        plan=new_plan,
        status="active",
        billing_interval=interval,
    )
    db.commit()
    db.refresh(user)
    logger.info("Plan change: %s %s -> %s (%s)", user.email, previous, new_plan, interval)
    return True


def revert_to_free(db: Session, user: User) -> bool:
    """Subscription ended: back to free. Returns False if there was nothing to revert."""
    if user.plan == "free" and not user.stripe_subscription_id:
        return False

    previous = user.plan
    _set_plan(user, "free")
    user.stripe_subscription_id = None
    user.billing_interval = None

    subscription = db.query(Subscription).filter(Subscription.user_id == user.id).first()
    if subscription:
        subscription.status = "canceled"
        subscription.plan = "free"
    db.commit()
    db.refresh(user)
    logger.info("Cancel: %s %s -> free", user.email, previous)
    return True


def override_plan(db: Session, user: User, new_plan: str) -> str:
    """Admin override outside of billing. Returns the previous plan."""
    if new_plan not in PLANS:
        raise ValueError(f"Unknown plan: {new_plan}")
    previous = user.plan
    _set_plan(user, new_plan)
    db.commit()
    db.refresh(user)
    logger.info("Plan override: %s %s -> %s", user.email, previous, new_plan)
    return previous


def _user_from_metadata(db: Session, metadata: dict) -> Optional[User]:
    user_id = metadata.get("user_id") or metadata.get("userId")
    if user_id is None:
        return None
    try:
        return db.query(User).filter(User.id == int(user_id)).first()
    except (TypeError, ValueError):
        return None


def _handle_checkout_completed(db: Session, session: dict) -> None:
    metadata = session.get("metadata") or {}
    user = _user_from_metadata(db, metadata)
    if not user:
        logger.warning("checkout.session.completed without a known user: %s", metadata)
        return

    if metadata.get("type") == "topup":
        package = TOPUP_PACKAGES.get(metadata.get("package"))
        coins = package["coins"] if package else 0
        if coins > 0:
            coin_ledger.credit(db, user, coins, "topup", f"Top-up: {coins:,} BL")
            logger.info("Top-up: %s +%s BL", user.email, coins)
        return

    plan = metadata.get("plan")
    if plan not in PLANS or plan == "free":
        logger.warning("checkout.session.completed with unknown plan %r for %s", plan, user.email)
        return
    apply_plan_change(
        db,
        user,
        plan,
        session.get("subscription"),
        interval=metadata.get("interval") or "monthly",
        customer_id=session.get("customer"),
    )


def _handle_subscription_deleted(db: Session, subscription: dict) -> None:
    user = db.query(User).filter(User.stripe_subscription_id == subscription.get("id")).first()
    if user:
        revert_to_free(db, user)


def _handle_subscription_updated(db: Session, subscription: dict) -> None:
    if subscription.get("cancel_at_period_end"):
        user = db.query(User).filter(User.stripe_subscription_id == subscription.get("id")).first()
        if user:
            logger.info("Cancellation scheduled: %s", user.email)


def _handle_payment_failed(db: Session, invoice: dict) -> None:
    user = db.query(User).filter(User.stripe_customer_id == invoice.get("customer")).first()
    if user:
        logger.warning("Payment failed: %s", user.email)


EVENT_HANDLERS = {
    "checkout.session.completed": _handle_checkout_completed,
    "customer.subscription.deleted": _handle_subscription_deleted,
    "customer.subscription.updated": _handle_subscription_updated,
    "invoice.payment_failed": _handle_payment_failed,
}


def handle_billing_event(db: Session, event: dict) -> bool:
    """
    Apply a Stripe-shaped event once. Returns False for replays and for event
    types nobody handles.
    """
    event_id = event.get("id")
    event_type = event.get("type")
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        return False

    if event_id and db.get(ProcessedWebhookEvent, event_id):
        logger.info("Skipping replayed webhook %s (%s)", event_id, event_type)
        return False

    if event_id:
        # Claim the id up front; a concurrent delivery of the same event fails here
        db.add(ProcessedWebhookEvent(event_id=event_id, event_type=event_type))
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            logger.info("Webhook %s already being processed", event_id)
            return False

    obj = (event.get("data") or {}).get("object") or {}
    handler(db, obj)
    db.commit()
    return True
