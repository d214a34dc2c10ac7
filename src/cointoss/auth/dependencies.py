"""FastAPI authentication dependencies."""

from __future__ import annotations

from dataclasses import dataclass

import jwt
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.auth.admin_cache import AdminStatusCache
from cointoss.auth.jwt import verify_token
from cointoss.auth.service import get_user_by_id
from cointoss.database import get_session
from cointoss.errors import AuthError, ForbiddenError

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Caller identity resolved for one request."""

    id: int
    wallet_address: str | None
    username: str | None
    is_admin: bool


def get_admin_cache(request: Request) -> AdminStatusCache:
    return request.app.state.admin_cache


async def _resolve(
    request: Request,
    credentials: HTTPAuthorizationCredentials,
    db: AsyncSession,
) -> AuthenticatedUser:
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise AuthError(str(e) or "Invalid token") from e

    user = await get_user_by_id(db, int(payload["sub"]))
    if user is None:
        raise AuthError("User not found")

    cache = get_admin_cache(request)
    is_admin = cache.get(user.id)
    if is_admin is None:
        is_admin = bool(user.is_admin)
        cache.set(user.id, is_admin)

    request.state.user_id = user.id
    return AuthenticatedUser(
        id=user.id,
        wallet_address=user.wallet_address,
        username=user.username,
        is_admin=is_admin,
    )


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """
    Verify the bearer token and return the caller.

    Raises 401 when the header is missing, the token is invalid, or the
    user no longer exists.
    """
    if credentials is None:
        raise AuthError("Authentication required")
    return await _resolve(request, credentials, db)


async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> AuthenticatedUser | None:
    """Caller if a bearer token is present, None otherwise. A bad token is still a 401."""
    if credentials is None:
        return None
    return await _resolve(request, credentials, db)


async def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user
