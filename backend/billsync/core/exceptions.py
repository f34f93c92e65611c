# backend/billsync/core/exceptions.py
"""
Billing synchronization exceptions.

Server-side errors carry the HTTP status the webhook must answer with:
4xx means "do not retry", 5xx hands recovery to the provider's redelivery.
Client-side errors never reach UI code; the status cache absorbs them.
"""

from typing import Any, Dict, Optional


class BillingError(Exception):
    """
    Base billing error with response context.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for API responses
        status_code: HTTP status code for this error type
        context: Additional context data about the error
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: int = 500,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or "BILLING_ERROR"
        self.status_code = status_code
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class VerificationError(BillingError):
    """Missing or forged webhook signature, or an unparseable payload."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VERIFICATION_FAILED", status_code=400, context=context)


class ConfigurationError(BillingError):
    """Webhook secret or provider key is not configured."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", status_code=400, context=context)


class ResolutionError(BillingError):
    """No tenant could be linked to the event's customer or subscription."""

    def __init__(
        self,
        message: str,
        customer_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
    ):
        context = {}
        if customer_id:
            context["customer_id"] = customer_id
        if subscription_id:
            context["subscription_id"] = subscription_id
        super().__init__(message, "RESOLUTION_FAILED", status_code=500, context=context)


class PersistenceError(BillingError):
    """Store write or read failed."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, "PERSISTENCE_FAILED", status_code=500, context=context)


class ProvisioningError(BillingError):
    """Downstream account creation failed."""

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = dict(context or {})
        if upstream_status is not None:
            context["upstream_status"] = upstream_status
        super().__init__(message, "PROVISIONING_FAILED", status_code=500, context=context)
        self.upstream_status = upstream_status


class ProviderError(BillingError):
    """A billing-provider API call failed."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, "PROVIDER_ERROR", status_code=500, context=context)


class ClientFetchError(BillingError):
    """Client-side network or HTTP failure talking to the billing API."""

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        context = {"upstream_status": upstream_status} if upstream_status is not None else {}
        super().__init__(message, "CLIENT_FETCH_FAILED", status_code=502, context=context)
        self.upstream_status = upstream_status


class ClientTimeoutError(BillingError):
    """Client-side call did not finish within its timeout."""

    def __init__(self, message: str, timeout: Optional[float] = None):
        context = {"timeout_seconds": timeout} if timeout is not None else {}
        super().__init__(message, "CLIENT_TIMEOUT", status_code=504, context=context)
        self.timeout = timeout


class EventProcessingError(BillingError):
    """A verified event could not be applied, e.g. a required field is missing."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, "EVENT_PROCESSING_FAILED", status_code=500, context=context)
