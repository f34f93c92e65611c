from billsync.client.api import BillingApiClient
from billsync.client.clock import AsyncioScheduler, SystemClock
from billsync.client.session_issuer import SessionIssuer
from billsync.client.status_cache import CacheState, SubscriptionStatusCache

__all__ = [
    "AsyncioScheduler",
    "BillingApiClient",
    "CacheState",
    "SessionIssuer",
    "SubscriptionStatusCache",
    "SystemClock",
]
