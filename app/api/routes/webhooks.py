"""
Inbound billing webhooks (Stripe).
"""
import json
import logging
import os
import stripe
from fastapi import APIRouter, Request, HTTPException, status, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.services.plan_sync import handle_billing_event

logger = logging.getLogger(__name__)

router = APIRouter()

STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")


@router.post("/stripe")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Stripe webhook. Register this URL in the Stripe dashboard:
    https://your-backend.com/webhooks/stripe

    Without STRIPE_WEBHOOK_SECRET the payload is trusted as-is (local testing only).
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if STRIPE_WEBHOOK_SECRET:
        try:
            stripe.Webhook.construct_event(payload, sig_header, STRIPE_WEBHOOK_SECRET)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")
        except stripe.SignatureVerificationError:
            logger.warning("Rejected Stripe webhook with an invalid signature")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid webhook signature"
            )

    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")

    if not isinstance(event, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid event")

    logger.info("[Stripe webhook] id=%s type=%s", event.get("id"), event.get("type"))
    try:
        processed = handle_billing_event(db, event)
    except ValueError as e:
        db.rollback()
        logger.error("Stripe webhook %s could not be applied: %s", event.get("id"), e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {"received": True, "processed": processed}
