# backend/billsync/db/repositories/tenant_repository.py
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.db.models.tenant import Tenant
from billsync.db.repositories.base import BaseRepository


class TenantRepository(BaseRepository[Tenant]):
    """Repository for Tenant operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Tenant, session)

    async def get_by_id(self, tenant_id: int) -> Optional[Tenant]:
        """Get tenant by ID"""
        return await self.get(tenant_id)

    async def get_by_customer_id(self, customer_id: str) -> Optional[Tenant]:
        """Get tenant linked to a Stripe customer"""
        result = await self.session.execute(
            select(Tenant).where(Tenant.stripe_customer_id == customer_id)
        )
        return result.scalar_one_or_none()

    async def link_customer_if_unset(self, tenant_id: int, customer_id: str) -> bool:
        """Set the tenant's Stripe customer id unless one is already stored.

        Returns True when the link was written by this call.
        """
        result = await self.session.execute(
            update(Tenant)
            .where(Tenant.id == tenant_id)
            .where(Tenant.stripe_customer_id.is_(None))
            .values(stripe_customer_id=customer_id)
        )
        return result.rowcount > 0
