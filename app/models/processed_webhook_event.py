"""
Billing webhook events that have already been applied.
Stripe retries deliveries, so the event id is recorded in the same commit as
the state change it caused and replays become no-ops.
"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from app.db.base import Base


class ProcessedWebhookEvent(Base):
    __tablename__ = "processed_webhook_events"

    event_id = Column(String(255), primary_key=True, nullable=False)
    event_type = Column(String, nullable=False)
    processed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
