from billsync.billing.dispatcher import WebhookDispatcher
from billsync.billing.ledger import DeliveryLedger
from billsync.billing.resolver import TenantResolver
from billsync.billing.upserter import SubscriptionUpserter
from billsync.billing.verifier import EventVerifier

__all__ = [
    "DeliveryLedger",
    "EventVerifier",
    "SubscriptionUpserter",
    "TenantResolver",
    "WebhookDispatcher",
]
