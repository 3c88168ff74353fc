"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from stemquiz.auth.jwt import verify_token
from stemquiz.database import get_session
from stemquiz.db.models import User

_bearer = HTTPBearer()
_bearer_optional = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the bearer token to a User. Raises 401/403 on failure."""
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
        user_id = int(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail=str(e) or "Invalid token") from e

    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    if user.is_banned:
        raise HTTPException(status_code=403, detail="Account is banned")
    return user


async def get_current_user_optional(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer_optional),
    db: AsyncSession = Depends(get_session),
) -> User | None:
    """Resolve the bearer token if one is sent; anonymous or invalid tokens give None."""
    if credentials is None:
        return None
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
        user_id = int(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError):
        return None

    user = await db.get(User, user_id)
    if user is None or user.is_banned:
        return None
    return user
