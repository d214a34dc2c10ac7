"""HTTP tests for player profiles."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import auth_headers
from cointoss.db.models import User
from cointoss.errors import NotFoundError
from cointoss.users.service import get_or_create_profile, get_profile

pytestmark = pytest.mark.asyncio

PROFILE = "/api/user/profile"
WALLET = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"


async def _users_with_wallet(db: AsyncSession, wallet: str) -> int:
    return await db.scalar(
        select(func.count()).select_from(User).where(User.wallet_address == wallet.lower())
    ) or 0


class TestOwnProfile:
    async def test_returns_profile(self, client: AsyncClient, player: User):
        resp = await client.get(PROFILE, headers=auth_headers(player))
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "profile": {
                "id": player.id,
                "walletAddress": player.wallet_address,
                "username": player.username,
                "avatarUrl": None,
                "isAdmin": False,
            },
        }

    async def test_admin_flag(self, client: AsyncClient, admin: User):
        data = (await client.get(PROFILE, headers=auth_headers(admin))).json()
        assert data["profile"]["isAdmin"] is True

    async def test_requires_auth(self, client: AsyncClient):
        resp = await client.get(PROFILE)
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Authentication required"}

    async def test_missing_row(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError, match="Profile not found"):
            await get_profile(db_session, 9999)


class TestProfileByWallet:
    async def test_created_on_first_sight(self, client: AsyncClient, db_session: AsyncSession):
        resp = await client.get(f"{PROFILE}/{WALLET}")
        assert resp.status_code == 200
        profile = resp.json()["profile"]
        assert profile["walletAddress"] == WALLET.lower()
        assert profile["username"] is None
        assert profile["isAdmin"] is False

        again = (await client.get(f"{PROFILE}/{WALLET.lower()}")).json()["profile"]
        assert again["id"] == profile["id"]
        assert await _users_with_wallet(db_session, WALLET) == 1

    async def test_existing_user(self, client: AsyncClient, player: User):
        profile = (await client.get(f"{PROFILE}/{player.wallet_address}")).json()["profile"]
        assert profile["id"] == player.id
        assert profile["username"] == player.username

    async def test_invalid_wallet(self, client: AsyncClient):
        resp = await client.get(f"{PROFILE}/not-a-wallet")
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Invalid wallet address format"}

    async def test_service_reports_creation(self, db_session: AsyncSession):
        user, created = await get_or_create_profile(db_session, WALLET)
        assert created is True
        same, created_again = await get_or_create_profile(db_session, WALLET.upper().replace("0X", "0x"))
        assert created_again is False
        assert same.id == user.id


class TestUpdateUsername:
    async def test_trimmed_and_stored(self, client: AsyncClient, db_session: AsyncSession, player: User):
        resp = await client.put(
            f"{PROFILE}/username", json={"username": "  satoshi  "}, headers=auth_headers(player),
        )
        assert resp.status_code == 200
        assert resp.json()["profile"]["username"] == "satoshi"

        stored = await db_session.get(User, player.id, populate_existing=True)
        assert stored.username == "satoshi"

    @pytest.mark.parametrize(
        ("username", "error"),
        [
            ("   ", "Username is required"),
            (None, "Username is required"),
            ("x" * 51, "Username must be 50 characters or less"),
        ],
    )
    async def test_rejected(self, client: AsyncClient, player: User, username: str | None, error: str):
        resp = await client.put(f"{PROFILE}/username", json={"username": username}, headers=auth_headers(player))
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": error}

    async def test_fifty_characters_allowed(self, client: AsyncClient, player: User):
        resp = await client.put(f"{PROFILE}/username", json={"username": "y" * 50}, headers=auth_headers(player))
        assert resp.status_code == 200

    async def test_requires_auth(self, client: AsyncClient):
        resp = await client.put(f"{PROFILE}/username", json={"username": "satoshi"})
        assert resp.status_code == 401


class TestFarcasterSync:
    async def test_adopts_username(self, client: AsyncClient, player: User):
        resp = await client.post(
            f"{PROFILE}/sync-farcaster", json={"farcasterUsername": " dwr.eth "}, headers=auth_headers(player),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["synced"] is True
        assert data["profile"]["username"] == "dwr.eth"

    async def test_username_required(self, client: AsyncClient, player: User):
        resp = await client.post(f"{PROFILE}/sync-farcaster", json={}, headers=auth_headers(player))
        assert resp.status_code == 400
        assert resp.json()["error"] == "Farcaster username is required"
