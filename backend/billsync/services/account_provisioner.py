# backend/billsync/services/account_provisioner.py
import httpx
from typing import Dict, Optional

from billsync.core.config import settings
from billsync.core.exceptions import ProvisioningError
from billsync.core.logging import get_logger
from billsync.schemas.billing import ProvisioningRequest, ProvisionResult

logger = get_logger("provisioning")


class AccountProvisioner:
    """Delegates first-time account creation to the main application.

    Writes nothing locally: the main application creates tenant, user and
    subscription in one transaction on its side.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.PROVISIONING_URL
        self.api_key = api_key if api_key is not None else settings.PROVISIONING_API_KEY
        self.timeout = timeout or settings.PROVISIONING_TIMEOUT_SECONDS
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def provision_from_checkout(
        self,
        customer_email: str,
        customer_name: Optional[str],
        customer_id: str,
        subscription_id: str,
        price_id: Optional[str],
    ) -> ProvisionResult:
        """
        Create tenant + user + subscription in the main application

        Args:
            customer_email: Email captured at checkout
            customer_name: Name captured at checkout; the email stands in when absent
            customer_id: Stripe customer id
            subscription_id: Stripe subscription id
            price_id: Subscribed price

        Returns:
            ProvisionResult with the created tenant_id and user_id

        Raises:
            ProvisioningError: non-2xx answer, unreadable body or network failure
        """
        if not customer_email:
            raise ProvisioningError(
                "Customer email not found in checkout session",
                context={"subscription_id": subscription_id},
            )

        body = ProvisioningRequest(
            customer_email=customer_email,
            customer_name=customer_name or customer_email,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
            stripe_price_id=price_id,
        )

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.url,
                    json=body.model_dump(),
                    headers=self._headers(),
                )
        except httpx.HTTPError as e:
            logger.error(f"Account provisioning request failed: {e}", extra={"customer_id": customer_id})
            raise ProvisioningError(
                f"Account creation request failed: {e}",
                context={"customer_id": customer_id},
            ) from e

        if not response.is_success:
            logger.error(
                f"Account provisioning returned {response.status_code}",
                extra={"customer_id": customer_id, "subscription_id": subscription_id},
            )
            raise ProvisioningError(
                f"Account creation failed: {response.status_code} - {response.text[:500]}",
                upstream_status=response.status_code,
                context={"customer_id": customer_id},
            )

        try:
            result = ProvisionResult.model_validate(response.json())
        except ValueError as e:
            raise ProvisioningError(
                f"Account creation returned an unreadable body: {e}",
                upstream_status=response.status_code,
                context={"customer_id": customer_id},
            ) from e

        logger.info(
            "Account created in main application",
            extra={
                "tenant_id": result.tenant_id,
                "customer_id": customer_id,
                "subscription_id": subscription_id,
            },
        )
        return result
