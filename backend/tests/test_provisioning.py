# tests/test_provisioning.py
"""
Account provisioning tests
Tests: request body, auth header, failure mapping
"""

import json
import httpx
import pytest

from billsync.core.exceptions import ProvisioningError
from billsync.services.account_provisioner import AccountProvisioner

PROVISIONING_URL = "https://app.example.com/api/create-account-from-marketing-site"


def provisioner_for(handler, api_key="prov-key") -> AccountProvisioner:
    return AccountProvisioner(
        url=PROVISIONING_URL,
        api_key=api_key,
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestAccountProvisioner:

    @pytest.mark.asyncio
    async def test_posts_checkout_details(self):
        """Test the main application receives the documented body"""

        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(201, json={"tenant_id": 7, "user_id": "user-7", "extra": "ignored"})

        result = await provisioner_for(handler).provision_from_checkout(
            customer_email="buyer@example.com",
            customer_name=None,
            customer_id="cus_1",
            subscription_id="sub_1",
            price_id="price_basic",
        )

        assert result.tenant_id == 7
        assert result.user_id == "user-7"
        assert seen["auth"] == "Bearer prov-key"
        assert seen["body"] == {
            "customer_email": "buyer@example.com",
            "customer_name": "buyer@example.com",
            "stripe_customer_id": "cus_1",
            "stripe_subscription_id": "sub_1",
            "stripe_price_id": "price_basic",
        }

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, text="account exists")

        with pytest.raises(ProvisioningError) as exc_info:
            await provisioner_for(handler).provision_from_checkout(
                "buyer@example.com", "Buyer", "cus_1", "sub_1", "price_basic"
            )

        assert exc_info.value.upstream_status == 409
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ProvisioningError):
            await provisioner_for(handler).provision_from_checkout(
                "buyer@example.com", "Buyer", "cus_1", "sub_1", "price_basic"
            )

    @pytest.mark.asyncio
    async def test_unreadable_body_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"ok": True})

        with pytest.raises(ProvisioningError):
            await provisioner_for(handler).provision_from_checkout(
                "buyer@example.com", "Buyer", "cus_1", "sub_1", "price_basic"
            )

    @pytest.mark.asyncio
    async def test_missing_email_raises_without_request(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"tenant_id": 1, "user_id": 1})

        with pytest.raises(ProvisioningError):
            await provisioner_for(handler).provision_from_checkout(
                None, None, "cus_1", "sub_1", "price_basic"
            )

        assert calls == []
