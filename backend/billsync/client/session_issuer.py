# backend/billsync/client/session_issuer.py
from typing import Optional

from billsync.client.api import BillingApiClient
from billsync.client.clock import AsyncioScheduler, Scheduler, with_timeout
from billsync.core.config import settings
from billsync.core.exceptions import BillingError
from billsync.core.logging import get_logger

logger = get_logger("client.sessions")


class SessionIssuer:
    """Requests hosted checkout and billing-portal sessions.

    Unlike status checks these calls fail loudly: the caller is about to
    redirect and needs to know the URL could not be obtained.
    """

    def __init__(
        self,
        api_client: BillingApiClient,
        scheduler: Optional[Scheduler] = None,
        checkout_timeout: Optional[float] = None,
        portal_timeout: Optional[float] = None,
    ):
        self.api_client = api_client
        self.scheduler = scheduler or AsyncioScheduler()
        self.checkout_timeout = checkout_timeout or settings.CHECKOUT_TIMEOUT_SECONDS
        self.portal_timeout = portal_timeout or settings.PORTAL_TIMEOUT_SECONDS

    async def start_checkout(self, price_id: str) -> str:
        """
        Create a checkout session for ``price_id``

        Returns:
            Redirect URL of the hosted checkout page

        Raises:
            ClientTimeoutError: no answer within the checkout timeout
            ClientFetchError: the request failed
        """
        try:
            return await with_timeout(
                self.scheduler,
                self.api_client.create_checkout(price_id),
                self.checkout_timeout,
                "Checkout session creation",
            )
        except BillingError as e:
            logger.warning(f"Checkout session creation failed: {e.message}")
            raise

    async def open_portal(self, return_url: Optional[str] = None) -> str:
        """Billing portal URL for the signed-in user's tenant"""
        try:
            return await with_timeout(
                self.scheduler,
                self.api_client.customer_portal(return_url),
                self.portal_timeout,
                "Customer portal session creation",
            )
        except BillingError as e:
            logger.warning(f"Customer portal session creation failed: {e.message}")
            raise
