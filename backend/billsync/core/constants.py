# backend/billsync/core/constants.py
from enum import Enum
from typing import FrozenSet


class StripeSubscriptionStatus(str, Enum):
    """Subscription states as reported by the billing provider."""
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAUSED = "paused"


# Statuses that grant access when serving check-subscription
ACTIVE_SUBSCRIPTION_STATUSES: FrozenSet[str] = frozenset({
    StripeSubscriptionStatus.ACTIVE.value,
    StripeSubscriptionStatus.TRIALING.value,
})


class BillingEventType(str, Enum):
    """Provider event types the webhook dispatcher routes.

    Every member must have a handler in ``WebhookDispatcher.HANDLERS``;
    the dispatcher module refuses to import otherwise.
    """
    CHECKOUT_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_RESUMED = "customer.subscription.resumed"
    SUBSCRIPTION_TRIAL_WILL_END = "customer.subscription.trial_will_end"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


class CheckoutMode(str, Enum):
    PAYMENT = "payment"
    SETUP = "setup"
    SUBSCRIPTION = "subscription"


# Invoice billing_reason for a regular renewal
BILLING_REASON_SUBSCRIPTION_CYCLE = "subscription_cycle"


class DispatchOutcome(str, Enum):
    """What the dispatcher did with a verified event."""
    UPSERTED = "upserted"
    STATUS_UPDATED = "status_updated"
    PROVISIONED = "provisioned"
    SKIPPED = "skipped"
    IGNORED = "ignored"


class DeliveryStatus(str, Enum):
    PROCESSED = "processed"
    FAILED = "failed"


class UserRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


# Checkout session metadata keys
METADATA_USER_ID = "user_id"
METADATA_TENANT_ID = "tenant_id"
