# backend/billsync/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import HTTPException, status

from billsync.core.config import settings

ACCESS_TOKEN_TTL = timedelta(hours=1)


def create_access_token(
    subject: str,
    claims: Optional[Dict[str, Any]] = None,
    ttl: Optional[timedelta] = None,
) -> str:
    """Issue a bearer token whose subject is the identity-provider user id."""
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = dict(claims or {})
    payload.update({
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + (ttl or ACCESS_TOKEN_TTL)).timestamp()),
    })
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
