"""Request/response models for player profiles."""

from __future__ import annotations

from cointoss.schemas import CamelModel


class ProfileOut(CamelModel):
    id: int
    wallet_address: str | None = None
    username: str | None = None
    avatar_url: str | None = None
    is_admin: bool = False


class ProfileResponse(CamelModel):
    success: bool = True
    profile: ProfileOut


class UsernameUpdateRequest(CamelModel):
    username: str | None = None


class FarcasterSyncRequest(CamelModel):
    farcaster_username: str | None = None


class FarcasterSyncResponse(ProfileResponse):
    synced: bool = True
