# backend/billsync/schemas/billing.py
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from billsync.core.constants import BillingEventType
from billsync.db.base import utc_from_timestamp


def expandable_id(value: Any) -> Optional[str]:
    """Stripe expandable field: either the id string or the expanded object."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return value.get("id")
    return getattr(value, "id", None)


# ==================== Provider objects ====================

class BillingEvent(BaseModel):
    """Verified webhook envelope"""
    id: str
    type: str
    created: datetime
    livemode: bool = False
    data_object: Dict[str, Any] = Field(default_factory=dict)

    @property
    def kind(self) -> Optional[BillingEventType]:
        """Routed event type, or None for types nobody handles"""
        try:
            return BillingEventType(self.type)
        except ValueError:
            return None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "BillingEvent":
        data = payload.get("data") or {}
        return cls(
            id=payload["id"],
            type=payload["type"],
            created=utc_from_timestamp(payload.get("created")) or datetime.now(timezone.utc).replace(tzinfo=None),
            livemode=bool(payload.get("livemode", False)),
            data_object=dict(data.get("object") or {}),
        )


class SubscriptionSnapshot(BaseModel):
    """Full state of a Stripe subscription at one point in time"""
    model_config = ConfigDict(frozen=True)

    subscription_id: str
    customer_id: Optional[str] = None
    price_id: Optional[str] = None
    status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False

    @classmethod
    def from_stripe(cls, obj: Mapping[str, Any]) -> "SubscriptionSnapshot":
        items = (obj.get("items") or {}).get("data") or []
        first_item = items[0] if items else {}
        price = first_item.get("price") or {}

        # Newer API versions report the billing period per item
        period_start = obj.get("current_period_start") or first_item.get("current_period_start")
        period_end = obj.get("current_period_end") or first_item.get("current_period_end")

        return cls(
            subscription_id=obj["id"],
            customer_id=expandable_id(obj.get("customer")),
            price_id=expandable_id(price) if price else None,
            status=obj.get("status") or "incomplete",
            current_period_start=utc_from_timestamp(period_start),
            current_period_end=utc_from_timestamp(period_end),
            cancel_at_period_end=bool(obj.get("cancel_at_period_end", False)),
        )


# ==================== Webhook ====================

class WebhookAck(BaseModel):
    received: bool = True


# ==================== Client-facing operations ====================

class SubscriptionStatusResponse(BaseModel):
    """check-subscription response"""
    subscribed: bool
    status: Optional[str] = None
    subscription_tier: Optional[str] = None
    subscription_end: Optional[datetime] = None


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    price_id: str = Field(alias="priceId", min_length=1)


class PortalRequest(BaseModel):
    return_url: Optional[str] = None


class SessionUrlResponse(BaseModel):
    url: str


# ==================== Account provisioning ====================

class ProvisioningRequest(BaseModel):
    """Body of the main application's create-account-from-marketing-site call"""
    customer_email: str
    customer_name: str
    stripe_customer_id: str
    stripe_subscription_id: str
    stripe_price_id: Optional[str] = None


class ProvisionResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tenant_id: int
    user_id: Union[int, str]


# ==================== Client cache projection ====================

class SubscriptionStatus(BaseModel):
    """Point-in-time subscription projection held by the client cache.

    Frozen: the cache replaces it wholesale on every fetch.
    """
    model_config = ConfigDict(frozen=True)

    subscribed: bool
    plan_id: Optional[str] = None
    period_end: Optional[datetime] = None
    fetched_at: float
    is_fallback: bool = False

    @classmethod
    def from_response(cls, data: Mapping[str, Any], fetched_at: float) -> "SubscriptionStatus":
        return cls(
            subscribed=bool(data.get("subscribed", False)),
            plan_id=data.get("subscription_tier") or data.get("plan_id"),
            period_end=data.get("subscription_end") or data.get("current_period_end"),
            fetched_at=fetched_at,
        )
