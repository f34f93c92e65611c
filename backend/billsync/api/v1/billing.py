# backend/billsync/api/v1/billing.py
from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from billsync.api.dependencies import get_current_user, get_stripe_gateway
from billsync.billing.status import get_subscription_status
from billsync.core.config import settings
from billsync.core.constants import METADATA_TENANT_ID, METADATA_USER_ID
from billsync.core.exceptions import ProviderError
from billsync.core.logging import get_logger
from billsync.db.database import get_db
from billsync.db.models.tenant import Tenant
from billsync.db.models.user import User
from billsync.db.repositories.tenant_repository import TenantRepository
from billsync.schemas.billing import (
    CheckoutRequest,
    PortalRequest,
    SessionUrlResponse,
    SubscriptionStatusResponse,
)
from billsync.services.stripe_gateway import StripeGateway

router = APIRouter()
logger = get_logger("billing")


def _origin(request: Request) -> str:
    return (request.headers.get("origin") or settings.FRONTEND_URL).rstrip("/")


async def _get_tenant(db: AsyncSession, user: User) -> Optional[Tenant]:
    if not user.tenant_id:
        return None
    return await TenantRepository(db).get_by_id(user.tenant_id)


async def _ensure_customer(
    db: AsyncSession,
    gateway: StripeGateway,
    tenant: Tenant,
    user: User,
) -> str:
    """Tenant's Stripe customer: stored id, else lookup by email, else a new customer"""
    if tenant.stripe_customer_id:
        return tenant.stripe_customer_id

    customer_id = await gateway.find_customer_by_email(user.email)
    if not customer_id:
        customer_id = await gateway.create_customer(
            user.email,
            metadata={METADATA_USER_ID: user.auth_user_id or "", METADATA_TENANT_ID: str(tenant.id)},
        )

    if await TenantRepository(db).link_customer_if_unset(tenant.id, customer_id):
        await db.commit()
        logger.info("Tenant linked to Stripe customer", extra={"tenant_id": tenant.id, "customer_id": customer_id})
    return customer_id


@router.api_route(
    "/check-subscription",
    methods=["GET", "POST"],
    response_model=SubscriptionStatusResponse,
)
async def check_subscription(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Subscription status of the caller's tenant, from the local mirror"""
    if not current_user.tenant_id:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"subscribed": False, "error": "User is not associated with a tenant"},
        )

    result = await get_subscription_status(db, current_user.tenant_id)
    logger.info(
        f"Subscription status served: subscribed={result.subscribed}",
        extra={"tenant_id": current_user.tenant_id},
    )
    return result


@router.post("/create-checkout", response_model=SessionUrlResponse)
async def create_checkout(
    body: CheckoutRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """Create a Stripe subscription checkout session for the caller's tenant"""
    if settings.STRIPE_ALLOWED_PRICE_IDS and body.price_id not in settings.STRIPE_ALLOWED_PRICE_IDS:
        raise HTTPException(status_code=400, detail="Invalid price")

    tenant = await _get_tenant(db, current_user)
    if not tenant:
        raise HTTPException(status_code=403, detail="User is not associated with a tenant")

    origin = _origin(request)
    try:
        customer_id = await _ensure_customer(db, gateway, tenant, current_user)
        url = await gateway.create_checkout_session(
            customer_id=customer_id,
            price_id=body.price_id,
            success_url=f"{origin}/billing?success=true",
            cancel_url=f"{origin}/billing?canceled=true",
            metadata={
                METADATA_USER_ID: current_user.auth_user_id or "",
                METADATA_TENANT_ID: str(tenant.id),
            },
        )
    except ProviderError as e:
        logger.error(f"Checkout creation failed: {e.message}", extra={"tenant_id": tenant.id})
        raise HTTPException(status_code=502, detail=e.message)

    return SessionUrlResponse(url=url)


@router.post("/customer-portal", response_model=SessionUrlResponse)
async def customer_portal(
    request: Request,
    body: Optional[PortalRequest] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """Open the Stripe billing portal for the caller's tenant"""
    tenant = await _get_tenant(db, current_user)
    if not tenant:
        raise HTTPException(status_code=403, detail="User is not associated with a tenant")

    return_url = (body.return_url if body else None) or f"{_origin(request)}/billing"
    try:
        customer_id = tenant.stripe_customer_id
        if customer_id:
            if not await gateway.customer_exists(customer_id):
                logger.warning(
                    "Stored Stripe customer was deleted, cannot open portal",
                    extra={"tenant_id": tenant.id, "customer_id": customer_id},
                )
                raise HTTPException(status_code=404, detail="Stripe customer no longer exists")
        else:
            customer_id = await gateway.find_customer_by_email(current_user.email)
            if not customer_id:
                raise HTTPException(status_code=404, detail="No Stripe customer found for this user")

        url = await gateway.create_portal_session(customer_id, return_url)
    except ProviderError as e:
        logger.error(f"Portal session creation failed: {e.message}", extra={"tenant_id": tenant.id})
        raise HTTPException(status_code=502, detail=e.message)

    return SessionUrlResponse(url=url)
