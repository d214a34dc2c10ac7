"""Player profile router: all /api/user/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.auth.dependencies import AuthenticatedUser, get_current_user
from cointoss.database import get_session
from cointoss.db.models import User
from cointoss.users.schemas import (
    FarcasterSyncRequest,
    FarcasterSyncResponse,
    ProfileOut,
    ProfileResponse,
    UsernameUpdateRequest,
)
from cointoss.users.service import (
    get_or_create_profile,
    get_profile,
    sync_farcaster_username,
    update_username,
)

router = APIRouter(prefix="/api/user", tags=["Users"])


def _profile_out(user: User) -> ProfileOut:
    return ProfileOut(
        id=user.id,
        wallet_address=user.wallet_address,
        username=user.username,
        avatar_url=user.avatar_url,
        is_admin=bool(user.is_admin),
    )


@router.get("/profile", response_model=ProfileResponse)
async def my_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Get own profile."""
    return ProfileResponse(profile=_profile_out(await get_profile(db, user.id)))


@router.put("/profile/username", response_model=ProfileResponse)
async def change_username(
    body: UsernameUpdateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    profile = await update_username(db, user.id, body.username)
    return ProfileResponse(profile=_profile_out(profile))


@router.post("/profile/sync-farcaster", response_model=FarcasterSyncResponse)
async def sync_farcaster(
    body: FarcasterSyncRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> FarcasterSyncResponse:
    profile = await sync_farcaster_username(db, user.id, body.farcaster_username)
    return FarcasterSyncResponse(profile=_profile_out(profile))


@router.get("/profile/{wallet_address}", response_model=ProfileResponse)
async def profile_by_wallet(
    wallet_address: str,
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Profile for a wallet, created on first access so the player can start flipping."""
    profile, _created = await get_or_create_profile(db, wallet_address)
    return ProfileResponse(profile=_profile_out(profile))
