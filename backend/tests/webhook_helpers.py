# tests/webhook_helpers.py
"""Signed Stripe event payloads for webhook tests"""

import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional
from httpx import AsyncClient

WEBHOOK_SECRET = "whsec_billsync_test"


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a stripe-signature header for ``payload``"""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_event(
    event_type: str,
    obj: Dict[str, Any],
    event_id: str = "evt_1",
    created: int = 1_700_000_000,
) -> Dict[str, Any]:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": created,
        "livemode": False,
        "data": {"object": obj},
    }


def subscription_object(
    subscription_id: str = "sub_1",
    customer: str = "cus_linked",
    status: str = "active",
    price_id: str = "price_basic",
    period_start: int = 1_700_000_000,
    period_end: int = 1_702_592_000,
    cancel_at_period_end: bool = False,
    **extra: Any,
) -> Dict[str, Any]:
    obj = {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "current_period_start": period_start,
        "current_period_end": period_end,
        "cancel_at_period_end": cancel_at_period_end,
        "items": {"data": [{"id": f"si_{subscription_id}", "price": {"id": price_id}}]},
    }
    obj.update(extra)
    return obj


async def post_event(client: AsyncClient, event: Dict[str, Any], signature: Optional[str] = None):
    payload = json.dumps(event)
    headers = {
        "content-type": "application/json",
        "stripe-signature": signature if signature is not None else sign_payload(payload),
    }
    return await client.post("/stripe-webhook", content=payload, headers=headers)
