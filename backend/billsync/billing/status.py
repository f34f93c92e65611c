# backend/billsync/billing/status.py
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.core.constants import ACTIVE_SUBSCRIPTION_STATUSES
from billsync.db.repositories.subscription_repository import SubscriptionRepository
from billsync.schemas.billing import SubscriptionStatusResponse


async def get_subscription_status(session: AsyncSession, tenant_id: int) -> SubscriptionStatusResponse:
    """Current entitlement of a tenant, read from the local mirror only"""
    subscription = await SubscriptionRepository(session).get_current_for_tenant(
        tenant_id, ACTIVE_SUBSCRIPTION_STATUSES
    )
    if subscription is None:
        return SubscriptionStatusResponse(subscribed=False)

    return SubscriptionStatusResponse(
        subscribed=True,
        status=subscription.status,
        subscription_tier=subscription.stripe_price_id,
        subscription_end=subscription.current_period_end,
    )
