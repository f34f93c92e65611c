# backend/billsync/db/repositories/webhook_delivery_repository.py
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.core.constants import DeliveryStatus
from billsync.db.base import utcnow
from billsync.db.models.webhook_delivery import WebhookDelivery
from billsync.db.repositories.base import BaseRepository


class WebhookDeliveryRepository(BaseRepository[WebhookDelivery]):
    """Repository for the webhook delivery ledger"""

    def __init__(self, session: AsyncSession):
        super().__init__(WebhookDelivery, session)

    async def get_by_event_id(self, event_id: str) -> Optional[WebhookDelivery]:
        result = await self.session.execute(
            select(WebhookDelivery).where(WebhookDelivery.event_id == event_id)
        )
        return result.scalar_one_or_none()

    async def _touch(self, event_id: str, event_type: str) -> WebhookDelivery:
        delivery = await self.get_by_event_id(event_id)
        if delivery is None:
            delivery = WebhookDelivery(event_id=event_id, event_type=event_type, attempts=0)
            self.session.add(delivery)
        delivery.attempts = (delivery.attempts or 0) + 1
        return delivery

    async def record_success(self, event_id: str, event_type: str, outcome: str) -> WebhookDelivery:
        delivery = await self._touch(event_id, event_type)
        delivery.status = DeliveryStatus.PROCESSED.value
        delivery.outcome = outcome
        delivery.last_error = None
        delivery.processed_at = utcnow()
        await self.session.flush()
        return delivery

    async def record_failure(self, event_id: str, event_type: str, error: str) -> WebhookDelivery:
        """Count a failed attempt; returns the row with the updated attempt total"""
        delivery = await self._touch(event_id, event_type)
        delivery.status = DeliveryStatus.FAILED.value
        delivery.last_error = error[:2000]
        await self.session.flush()
        return delivery
