"""
User lookups and admin-status management.

Identity itself is issued upstream; this module only resolves and
maintains the local ``users`` rows.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from cointoss.db.models import User
from cointoss.errors import NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from cointoss.auth.admin_cache import AdminStatusCache

logger = structlog.get_logger()

WALLET_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def normalize_wallet(wallet_address: str) -> str:
    """Validate an EVM wallet address and lower-case it."""
    wallet_address = wallet_address.strip()
    if not WALLET_RE.match(wallet_address):
        msg = "Invalid wallet address format"
        raise ValidationError(msg)
    return wallet_address.lower()


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_wallet(db: AsyncSession, wallet_address: str) -> User | None:
    """Fetch a user by wallet address (case-insensitive)."""
    result = await db.execute(
        select(User).where(func.lower(User.wallet_address) == wallet_address.lower())
    )
    return result.scalar_one_or_none()


async def list_admins(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).where(User.is_admin.is_(True)).order_by(User.id))
    return list(result.scalars().all())


async def set_admin_status(
    db: AsyncSession,
    wallet_address: str,
    is_admin: bool,
    cache: AdminStatusCache | None = None,
) -> User:
    """Grant or revoke admin for the user owning ``wallet_address``.

    Invalidates the cached flag for that user when a cache is given.
    """
    wallet_address = normalize_wallet(wallet_address)
    user = await get_user_by_wallet(db, wallet_address)
    if user is None:
        msg = f"No user found with wallet address {wallet_address}"
        raise NotFoundError(msg)

    user.is_admin = is_admin
    await db.commit()
    if cache is not None:
        cache.invalidate(user.id)

    logger.info("admin_status_changed", user_id=user.id, wallet=wallet_address, is_admin=is_admin)
    return user
