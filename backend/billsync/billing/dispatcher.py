# backend/billsync/billing/dispatcher.py
from typing import Any, Dict, Mapping, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.billing.resolver import TenantResolver
from billsync.billing.upserter import SubscriptionUpserter
from billsync.core.constants import (
    BILLING_REASON_SUBSCRIPTION_CYCLE,
    METADATA_USER_ID,
    BillingEventType,
    CheckoutMode,
    DispatchOutcome,
    StripeSubscriptionStatus,
)
from billsync.core.exceptions import BillingError, EventProcessingError, PersistenceError, ResolutionError
from billsync.core.logging import get_logger
from billsync.schemas.billing import BillingEvent, SubscriptionSnapshot, expandable_id
from billsync.services.account_provisioner import AccountProvisioner
from billsync.services.stripe_gateway import StripeGateway

logger = get_logger("webhooks")


def _invoice_subscription_id(invoice: Mapping[str, Any]) -> Optional[str]:
    """Subscription of an invoice; newer API versions nest it under ``parent``"""
    subscription_id = expandable_id(invoice.get("subscription"))
    if subscription_id:
        return subscription_id
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return expandable_id(details.get("subscription"))


class WebhookDispatcher:
    """
    Routes a verified billing event to its handler.

    One dispatch is one unit of work: the session is committed after the
    handler returns and rolled back when it raises.
    """

    HANDLERS: Dict[BillingEventType, str] = {
        BillingEventType.CHECKOUT_COMPLETED: "_on_checkout_completed",
        BillingEventType.SUBSCRIPTION_CREATED: "_on_subscription_changed",
        BillingEventType.SUBSCRIPTION_UPDATED: "_on_subscription_changed",
        BillingEventType.SUBSCRIPTION_RESUMED: "_on_subscription_changed",
        BillingEventType.SUBSCRIPTION_TRIAL_WILL_END: "_on_subscription_changed",
        BillingEventType.SUBSCRIPTION_DELETED: "_on_subscription_deleted",
        BillingEventType.INVOICE_PAYMENT_SUCCEEDED: "_on_invoice_paid",
        BillingEventType.INVOICE_PAYMENT_FAILED: "_on_invoice_payment_failed",
    }

    def __init__(
        self,
        session: AsyncSession,
        gateway: StripeGateway,
        provisioner: AccountProvisioner,
    ):
        self.session = session
        self.gateway = gateway
        self.provisioner = provisioner
        self.resolver = TenantResolver(session)
        self.upserter = SubscriptionUpserter(session)

    async def dispatch(self, event: BillingEvent) -> DispatchOutcome:
        """
        Apply one event to the store.

        Returns:
            What was done; unknown event types are IGNORED

        Raises:
            BillingError: the event could not be applied and should be redelivered
        """
        log_extra = {"event_id": event.id, "event_type": event.type}
        kind = event.kind
        if kind is None:
            logger.info("Unhandled event type", extra=log_extra)
            return DispatchOutcome.IGNORED

        handler = getattr(self, self.HANDLERS[kind])
        try:
            outcome = await handler(event)
            await self.session.commit()
        except BillingError as e:
            await self.session.rollback()
            logger.error(f"Event processing failed: {e.message}", extra={**log_extra, **e.context})
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Event processing failed in the store: {e}", extra=log_extra)
            raise PersistenceError(f"Could not apply event {event.id}: {e}") from e
        except Exception as e:
            # Malformed payloads still need a 500 and a ledger entry
            await self.session.rollback()
            logger.exception(f"Event processing failed unexpectedly: {e!r}", extra=log_extra)
            raise EventProcessingError(f"Could not apply event {event.id}: {e!r}") from e

        logger.info(f"Event processed: {outcome.value}", extra=log_extra)
        return outcome

    # ==================== Handlers ====================

    async def _on_checkout_completed(self, event: BillingEvent) -> DispatchOutcome:
        session_obj = event.data_object
        subscription_id = expandable_id(session_obj.get("subscription"))
        customer_id = expandable_id(session_obj.get("customer"))

        if session_obj.get("mode") != CheckoutMode.SUBSCRIPTION.value or not subscription_id or not customer_id:
            logger.info(
                "Checkout session is not a subscription checkout, skipping",
                extra={"event_id": event.id},
            )
            return DispatchOutcome.SKIPPED

        metadata = session_obj.get("metadata") or {}
        user_reference = metadata.get(METADATA_USER_ID)

        if not user_reference:
            # Signup on the marketing site: no account exists yet
            details = session_obj.get("customer_details") or {}
            price_id = await self.gateway.retrieve_checkout_price_id(session_obj["id"])
            await self.provisioner.provision_from_checkout(
                customer_email=details.get("email") or session_obj.get("customer_email"),
                customer_name=details.get("name"),
                customer_id=customer_id,
                subscription_id=subscription_id,
                price_id=price_id,
            )
            return DispatchOutcome.PROVISIONED

        tenant_id = await self.resolver.resolve_by_user_reference(user_reference)
        if tenant_id is None:
            raise ResolutionError(
                f"No tenant for checkout user {user_reference}",
                customer_id=customer_id,
                subscription_id=subscription_id,
            )

        subscription = await self.gateway.retrieve_subscription(subscription_id)
        snapshot = SubscriptionSnapshot.from_stripe(subscription)
        await self.upserter.upsert(snapshot, tenant_id, customer_id, event.created)
        return DispatchOutcome.UPSERTED

    async def _on_subscription_changed(self, event: BillingEvent) -> DispatchOutcome:
        snapshot = SubscriptionSnapshot.from_stripe(event.data_object)
        tenant_id = await self.resolver.resolve(snapshot.customer_id, snapshot.subscription_id)
        await self.upserter.upsert(snapshot, tenant_id, snapshot.customer_id, event.created)
        return DispatchOutcome.UPSERTED

    async def _on_subscription_deleted(self, event: BillingEvent) -> DispatchOutcome:
        subscription = event.data_object
        status = subscription.get("status") or StripeSubscriptionStatus.CANCELED.value
        changed = await self.upserter.set_status(
            subscription["id"], status, event.created, terminal=True
        )
        return DispatchOutcome.STATUS_UPDATED if changed else DispatchOutcome.SKIPPED

    async def _on_invoice_paid(self, event: BillingEvent) -> DispatchOutcome:
        invoice = event.data_object
        subscription_id = _invoice_subscription_id(invoice)
        customer_id = expandable_id(invoice.get("customer"))

        if invoice.get("billing_reason") != BILLING_REASON_SUBSCRIPTION_CYCLE or not subscription_id:
            return DispatchOutcome.SKIPPED

        subscription = await self.gateway.retrieve_subscription(subscription_id)
        snapshot = SubscriptionSnapshot.from_stripe(subscription)
        customer_id = customer_id or snapshot.customer_id
        tenant_id = await self.resolver.resolve(customer_id, subscription_id)
        await self.upserter.upsert(snapshot, tenant_id, customer_id, event.created)
        return DispatchOutcome.UPSERTED

    async def _on_invoice_payment_failed(self, event: BillingEvent) -> DispatchOutcome:
        subscription_id = _invoice_subscription_id(event.data_object)
        if not subscription_id:
            return DispatchOutcome.SKIPPED

        changed = await self.upserter.set_status(
            subscription_id, StripeSubscriptionStatus.PAST_DUE.value, event.created
        )
        return DispatchOutcome.STATUS_UPDATED if changed else DispatchOutcome.SKIPPED


_unhandled = [kind.value for kind in BillingEventType if kind not in WebhookDispatcher.HANDLERS]
if _unhandled:
    raise RuntimeError(f"Billing event types without a handler: {', '.join(_unhandled)}")
for _method in set(WebhookDispatcher.HANDLERS.values()):
    if not callable(getattr(WebhookDispatcher, _method, None)):
        raise RuntimeError(f"Billing event handler {_method} is not defined")
