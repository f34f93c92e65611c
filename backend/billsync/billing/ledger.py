# backend/billsync/billing/ledger.py
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.core.config import settings
from billsync.core.constants import DispatchOutcome
from billsync.core.logging import get_logger
from billsync.db.models.webhook_delivery import WebhookDelivery
from billsync.db.repositories.webhook_delivery_repository import WebhookDeliveryRepository
from billsync.schemas.billing import BillingEvent

logger = get_logger("webhooks")


class DeliveryLedger:
    """
    Records the outcome of every webhook delivery attempt.

    Ledger writes are best-effort and run in their own transaction after the
    event's unit of work has been committed or rolled back; a ledger failure
    is logged and never changes the webhook response.
    """

    def __init__(self, session: AsyncSession, alert_threshold: Optional[int] = None):
        self.session = session
        self.repository = WebhookDeliveryRepository(session)
        self.alert_threshold = alert_threshold or settings.WEBHOOK_FAILURE_ALERT_THRESHOLD

    async def processed(self, event: BillingEvent, outcome: DispatchOutcome) -> Optional[WebhookDelivery]:
        try:
            delivery = await self.repository.record_success(event.id, event.type, outcome.value)
            await self.session.commit()
            return delivery
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Could not record processed delivery: {e}",
                extra={"event_id": event.id, "event_type": event.type},
            )
            return None

    async def failed(self, event: BillingEvent, error: Exception) -> Optional[WebhookDelivery]:
        """Count a failed attempt and raise an alert once the threshold is reached"""
        log_extra = {"event_id": event.id, "event_type": event.type}
        try:
            delivery = await self.repository.record_failure(event.id, event.type, str(error))
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Could not record failed delivery: {e}", extra=log_extra)
            return None

        if delivery.attempts >= self.alert_threshold:
            logger.error(
                f"Webhook event failed {delivery.attempts} times",
                extra={**log_extra, "alert": True, "attempts": delivery.attempts},
            )
        return delivery
