# backend/billsync/billing/verifier.py
import json
from typing import Optional

import stripe

from billsync.core.config import settings
from billsync.core.exceptions import ConfigurationError, VerificationError
from billsync.core.logging import get_logger
from billsync.schemas.billing import BillingEvent

logger = get_logger("webhooks")


class EventVerifier:
    """Authenticates a raw webhook body against the shared signing secret."""

    def __init__(self, secret: Optional[str] = None, tolerance: Optional[int] = None):
        self.secret = secret if secret is not None else settings.stripe_webhook_secret
        self.tolerance = tolerance if tolerance is not None else settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS

    def verify(self, payload: bytes, signature: Optional[str]) -> BillingEvent:
        """
        Check the ``stripe-signature`` header and parse the envelope.

        Args:
            payload: Raw request body, exactly as received
            signature: ``stripe-signature`` header value

        Returns:
            BillingEvent built from the verified body

        Raises:
            ConfigurationError: no signing secret configured
            VerificationError: header missing, signature mismatch, stale
                timestamp or a body that is not an event envelope
        """
        if not self.secret:
            raise ConfigurationError("Stripe webhook secret is not configured")
        if not signature:
            raise VerificationError("Missing stripe-signature header")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise VerificationError("Webhook body is not valid UTF-8") from e

        try:
            stripe.WebhookSignature.verify_header(body, signature, self.secret, self.tolerance)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise VerificationError(f"Webhook signature verification failed: {e}") from e

        try:
            return BillingEvent.from_payload(json.loads(body))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise VerificationError(f"Invalid webhook payload: {e}") from e
