from app.models.user import User
from app.models.subscription import Subscription
from app.models.coin_transaction import CoinTransaction
from app.models.deployed_site import DeployedSite
from app.models.processed_webhook_event import ProcessedWebhookEvent
from app.models.admin_log import AdminLog, AdminAction

__all__ = [
    "User",
    "Subscription",
    "CoinTransaction",
    "DeployedSite",
    "ProcessedWebhookEvent",
    "AdminLog",
    "AdminAction",
]
