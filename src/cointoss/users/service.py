"""Player profile business logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import IntegrityError

from cointoss.auth.service import get_user_by_id, get_user_by_wallet, normalize_wallet
from cointoss.db.models import User
from cointoss.errors import NotFoundError, ValidationError
from cointoss.timeutils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

USERNAME_MAX_LENGTH = 50


def clean_username(username: str | None, *, field: str = "Username") -> str:
    """Trim and validate a display username."""
    cleaned = (username or "").strip()
    if not cleaned:
        msg = f"{field} is required"
        raise ValidationError(msg)
    if len(cleaned) > USERNAME_MAX_LENGTH:
        msg = f"{field} must be {USERNAME_MAX_LENGTH} characters or less"
        raise ValidationError(msg)
    return cleaned


async def get_profile(db: AsyncSession, user_id: int) -> User:
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "Profile not found"
        raise NotFoundError(msg)
    return user


async def get_or_create_profile(db: AsyncSession, wallet_address: str) -> tuple[User, bool]:
    """
    Get the profile for a wallet, creating an empty one on first sight.

    Returns:
        Tuple of (user, created).
    """
    wallet_address = normalize_wallet(wallet_address)
    user = await get_user_by_wallet(db, wallet_address)
    if user is not None:
        return user, False

    user = User(wallet_address=wallet_address)
    try:
        async with db.begin_nested():
            db.add(user)
    except IntegrityError:
        # Lost the insert race to a concurrent request for the same wallet
        existing = await get_user_by_wallet(db, wallet_address)
        if existing is None:
            raise
        await db.commit()
        return existing, False

    await db.commit()
    logger.info("user_created", user_id=user.id, wallet=wallet_address)
    return user, True


async def update_username(db: AsyncSession, user_id: int, username: str | None) -> User:
    user = await get_profile(db, user_id)
    user.username = clean_username(username)
    user.updated_at = utcnow()
    await db.commit()
    return user


async def sync_farcaster_username(db: AsyncSession, user_id: int, farcaster_username: str | None) -> User:
    """Adopt the Farcaster username unless the profile already carries it."""
    cleaned = clean_username(farcaster_username, field="Farcaster username")
    user = await get_profile(db, user_id)
    if user.username != cleaned:
        user.username = cleaned
        user.updated_at = utcnow()
        await db.commit()
    return user
