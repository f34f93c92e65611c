# backend/billsync/services/stripe_gateway.py
import asyncio
import functools
from typing import Any, Callable, Dict, Optional

import stripe

from billsync.core.config import settings
from billsync.core.exceptions import ProviderError
from billsync.core.logging import get_logger

logger = get_logger("stripe")


class StripeGateway:
    """Service for Stripe API calls.

    The Stripe SDK is synchronous; every call runs in the default executor
    so the event loop never blocks on the network.
    """

    def __init__(self, api_key: Optional[str] = None, api_version: Optional[str] = None):
        self.api_key = api_key or settings.stripe_api_key
        self.api_version = api_version or settings.STRIPE_API_VERSION

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _call(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        if not self.api_key:
            raise ProviderError("Stripe API key is not configured", context={"operation": operation})

        kwargs.setdefault("api_key", self.api_key)
        kwargs.setdefault("stripe_version", self.api_version)

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))
        except stripe.StripeError as e:
            logger.error(f"Stripe {operation} failed: {e}", extra={"operation": operation})
            raise ProviderError(
                f"Stripe {operation} failed: {getattr(e, 'user_message', None) or str(e)}",
                context={"operation": operation, "stripe_error": e.__class__.__name__},
            ) from e

    async def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        """Fetch the full subscription object"""
        subscription = await self._call(
            "subscription.retrieve", stripe.Subscription.retrieve, subscription_id
        )
        if not subscription:
            raise ProviderError(
                f"Could not retrieve subscription {subscription_id} from Stripe",
                context={"subscription_id": subscription_id},
            )
        return subscription

    async def retrieve_checkout_price_id(self, session_id: str) -> Optional[str]:
        """Price of the first line item of a checkout session"""
        session = await self._call(
            "checkout_session.retrieve",
            stripe.checkout.Session.retrieve,
            session_id,
            expand=["line_items"],
        )
        line_items = ((session.get("line_items") or {}).get("data")) or []
        if not line_items:
            return None
        price = line_items[0].get("price") or {}
        return price.get("id")

    async def find_customer_by_email(self, email: str) -> Optional[str]:
        customers = await self._call(
            "customer.list", stripe.Customer.list, email=email, limit=1
        )
        data = customers.get("data") or []
        return data[0]["id"] if data else None

    async def customer_exists(self, customer_id: str) -> bool:
        """False when the customer was deleted on the Stripe side"""
        customer = await self._call("customer.retrieve", stripe.Customer.retrieve, customer_id)
        return bool(customer) and not customer.get("deleted", False)

    async def create_customer(self, email: str, metadata: Optional[Dict[str, str]] = None) -> str:
        customer = await self._call(
            "customer.create",
            stripe.Customer.create,
            email=email,
            metadata=metadata or {},
        )
        logger.info(f"Created Stripe customer: {customer['id']}", extra={"customer_id": customer["id"]})
        return customer["id"]

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Create a subscription-mode checkout session

        Args:
            customer_id: Stripe customer the subscription is billed to
            price_id: Recurring price to subscribe to
            success_url: Redirect target after payment
            cancel_url: Redirect target when the customer backs out
            metadata: Copied onto the session and the resulting subscription

        Returns:
            Hosted checkout URL
        """
        session = await self._call(
            "checkout_session.create",
            stripe.checkout.Session.create,
            mode="subscription",
            customer=customer_id,
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata or {},
            subscription_data={"metadata": metadata or {}},
        )
        logger.info(
            f"Created checkout session: {session.get('id')}",
            extra={"customer_id": customer_id},
        )
        return session["url"]

    async def create_portal_session(self, customer_id: str, return_url: str) -> str:
        portal = await self._call(
            "billing_portal_session.create",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )
        return portal["url"]
