# backend/billsync/billing/resolver.py
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.core.exceptions import ResolutionError
from billsync.core.logging import get_logger
from billsync.db.repositories.subscription_repository import SubscriptionRepository
from billsync.db.repositories.tenant_repository import TenantRepository
from billsync.db.repositories.user_repository import UserRepository

logger = get_logger("resolver")


class TenantResolver:
    """Maps Stripe identifiers to the internal tenant id."""

    def __init__(self, session: AsyncSession):
        self.tenants = TenantRepository(session)
        self.subscriptions = SubscriptionRepository(session)
        self.users = UserRepository(session)

    async def resolve_by_customer_id(self, customer_id: Optional[str]) -> Optional[int]:
        if not customer_id:
            return None
        tenant = await self.tenants.get_by_customer_id(customer_id)
        return tenant.id if tenant else None

    async def resolve_by_subscription_id(self, subscription_id: Optional[str]) -> Optional[int]:
        if not subscription_id:
            return None
        return await self.subscriptions.get_tenant_id(subscription_id)

    async def resolve_by_user_reference(self, auth_user_id: Optional[str]) -> Optional[int]:
        """Tenant of the user named in checkout metadata"""
        if not auth_user_id:
            return None
        user = await self.users.get_by_auth_user_id(auth_user_id)
        return user.tenant_id if user else None

    async def resolve(self, customer_id: Optional[str], subscription_id: Optional[str]) -> int:
        """
        Resolve a subscription-lifecycle event to its tenant.

        The tenant's stored customer id is tried first; an existing
        subscription row covers tenants whose customer link is not yet
        backfilled.

        Raises:
            ResolutionError: neither lookup found a tenant
        """
        tenant_id = await self.resolve_by_customer_id(customer_id)
        if tenant_id is not None:
            return tenant_id

        tenant_id = await self.resolve_by_subscription_id(subscription_id)
        if tenant_id is not None:
            logger.info(
                "Tenant resolved through existing subscription row",
                extra={"tenant_id": tenant_id, "customer_id": customer_id, "subscription_id": subscription_id},
            )
            return tenant_id

        raise ResolutionError(
            f"Could not find tenant for customer {customer_id} or subscription {subscription_id}",
            customer_id=customer_id,
            subscription_id=subscription_id,
        )
