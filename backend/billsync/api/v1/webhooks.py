# backend/billsync/api/v1/webhooks.py
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.api.dependencies import get_account_provisioner, get_event_verifier, get_stripe_gateway
from billsync.billing.dispatcher import WebhookDispatcher
from billsync.billing.ledger import DeliveryLedger
from billsync.billing.verifier import EventVerifier
from billsync.core.exceptions import BillingError, ConfigurationError
from billsync.core.logging import get_logger
from billsync.db.database import get_db
from billsync.schemas.billing import WebhookAck
from billsync.services.account_provisioner import AccountProvisioner
from billsync.services.stripe_gateway import StripeGateway

router = APIRouter()
logger = get_logger("webhooks")


def _error_response(exc: BillingError) -> JSONResponse:
    body = {"error": exc.message, "error_code": exc.error_code}
    if isinstance(exc, ConfigurationError):
        body["error"] = "Stripe configuration error"
    return JSONResponse(status_code=exc.status_code, content=body)


@router.post("/stripe-webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    verifier: EventVerifier = Depends(get_event_verifier),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    provisioner: AccountProvisioner = Depends(get_account_provisioner),
):
    """
    Receive Stripe events.

    2xx acknowledges the event; 4xx rejects it for good; 5xx asks Stripe to
    redeliver it later.
    """
    # Signature covers the exact bytes received
    body = await request.body()
    signature = request.headers.get("stripe-signature")

    if not gateway.configured:
        logger.error("Stripe API key is not configured")
        return _error_response(ConfigurationError("Stripe API key is not configured"))

    try:
        event = verifier.verify(body, signature)
    except BillingError as e:
        logger.warning(f"Webhook rejected: {e.message}")
        return _error_response(e)

    logger.info(
        f"Webhook received (livemode={event.livemode})",
        extra={"event_id": event.id, "event_type": event.type},
    )

    dispatcher = WebhookDispatcher(db, gateway, provisioner)
    ledger = DeliveryLedger(db)
    try:
        outcome = await dispatcher.dispatch(event)
    except BillingError as e:
        logger.exception(
            f"Webhook processing failed: {e.message}",
            extra={"event_id": event.id, "event_type": event.type},
        )
        await ledger.failed(event, e)
        return _error_response(e)

    await ledger.processed(event, outcome)
    return WebhookAck()
