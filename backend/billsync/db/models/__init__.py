# backend/billsync/db/models/__init__.py
from billsync.db.models.tenant import Tenant
from billsync.db.models.user import User
from billsync.db.models.subscription import Subscription
from billsync.db.models.webhook_delivery import WebhookDelivery

__all__ = ["Tenant", "User", "Subscription", "WebhookDelivery"]
