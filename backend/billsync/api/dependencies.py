# backend/billsync/api/dependencies.py
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from billsync.billing.verifier import EventVerifier
from billsync.core.security import decode_token
from billsync.db.database import get_db
from billsync.db.models.user import User
from billsync.db.repositories.user_repository import UserRepository
from billsync.services.account_provisioner import AccountProvisioner
from billsync.services.stripe_gateway import StripeGateway

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )

    payload = decode_token(credentials.credentials)
    auth_user_id = payload.get("sub")
    if not auth_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    user = await UserRepository(db).get_by_auth_user_id(str(auth_user_id))
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )

    return user


def get_stripe_gateway() -> StripeGateway:
    return StripeGateway()


def get_account_provisioner() -> AccountProvisioner:
    return AccountProvisioner()


def get_event_verifier() -> EventVerifier:
    return EventVerifier()
