# backend/billsync/billing/upserter.py
from datetime import datetime
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.core.exceptions import PersistenceError
from billsync.core.logging import get_logger
from billsync.db.models.subscription import Subscription
from billsync.db.repositories.subscription_repository import SubscriptionRepository
from billsync.db.repositories.tenant_repository import TenantRepository
from billsync.schemas.billing import SubscriptionSnapshot

logger = get_logger("upserter")


class SubscriptionUpserter:
    """Writes provider subscription snapshots into the local mirror."""

    def __init__(self, session: AsyncSession):
        self.subscriptions = SubscriptionRepository(session)
        self.tenants = TenantRepository(session)

    async def upsert(
        self,
        snapshot: SubscriptionSnapshot,
        tenant_id: int,
        customer_id: Optional[str],
        event_at: datetime,
    ) -> Subscription:
        """
        Apply a full snapshot, keyed on the Stripe subscription id.

        Replaying the same snapshot any number of times yields the same row.
        Completes tenant/customer linkage when the tenant has none yet.
        """
        customer_id = customer_id or snapshot.customer_id
        values = {
            "tenant_id": tenant_id,
            "stripe_subscription_id": snapshot.subscription_id,
            "stripe_customer_id": customer_id,
            "stripe_price_id": snapshot.price_id,
            "status": snapshot.status,
            "current_period_start": snapshot.current_period_start,
            "current_period_end": snapshot.current_period_end,
            "cancel_at_period_end": snapshot.cancel_at_period_end,
            "last_event_at": event_at,
        }
        log_extra = {
            "tenant_id": tenant_id,
            "customer_id": customer_id,
            "subscription_id": snapshot.subscription_id,
        }

        try:
            row = await self.subscriptions.upsert(values)
            if customer_id:
                linked = await self.tenants.link_customer_if_unset(tenant_id, customer_id)
                if linked:
                    logger.info("Tenant linked to Stripe customer", extra=log_extra)
        except SQLAlchemyError as e:
            logger.error(f"Subscription upsert failed: {e}", extra=log_extra)
            raise PersistenceError(
                f"Could not upsert subscription {snapshot.subscription_id}: {e}",
                context={"subscription_id": snapshot.subscription_id},
            ) from e

        if row.last_event_at is not None and row.last_event_at > event_at:
            logger.warning(
                f"Stale snapshot ignored; row holds a write from {row.last_event_at.isoformat()}",
                extra=log_extra,
            )
        else:
            logger.info(f"Subscription upserted with status {snapshot.status}", extra=log_extra)
        return row

    async def set_status(
        self,
        subscription_id: str,
        status: str,
        event_at: datetime,
        terminal: bool = False,
    ) -> bool:
        """Update only the status column; False when no row was changed"""
        log_extra = {"subscription_id": subscription_id}
        try:
            changed = await self.subscriptions.update_status(
                subscription_id, status, event_at, terminal=terminal
            )
        except SQLAlchemyError as e:
            logger.error(f"Subscription status update failed: {e}", extra=log_extra)
            raise PersistenceError(
                f"Could not set status of subscription {subscription_id}: {e}",
                context={"subscription_id": subscription_id},
            ) from e

        if changed:
            logger.info(f"Subscription status set to {status}", extra=log_extra)
        else:
            logger.warning(
                f"No subscription row updated to {status} (unknown id, newer write or already canceled)",
                extra=log_extra,
            )
        return bool(changed)
