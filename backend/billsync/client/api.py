# backend/billsync/client/api.py
import inspect
import httpx
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from billsync.core.config import settings
from billsync.core.exceptions import ClientFetchError
from billsync.core.logging import get_logger

logger = get_logger("client")

TokenProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


class BillingApiClient:
    """HTTP client for the billing operations served by the API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self._transport = transport

    async def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token_provider is not None:
            token = self.token_provider()
            if inspect.isawaitable(token):
                token = await token
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"
        headers = await self._headers()

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.request(method, url, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise ClientFetchError(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            raise ClientFetchError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                upstream_status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ClientFetchError(
                f"{method} {path} returned invalid JSON",
                upstream_status=response.status_code,
            ) from e

    async def check_subscription(self) -> Dict[str, Any]:
        return await self._request("POST", "check-subscription")

    async def create_checkout(self, price_id: str) -> str:
        data = await self._request("POST", "create-checkout", json={"priceId": price_id})
        return self._url(data, "create-checkout")

    async def customer_portal(self, return_url: Optional[str] = None) -> str:
        body = {"return_url": return_url} if return_url else None
        data = await self._request("POST", "customer-portal", json=body)
        return self._url(data, "customer-portal")

    @staticmethod
    def _url(data: Dict[str, Any], operation: str) -> str:
        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            raise ClientFetchError(f"{operation} response has no url")
        return url
