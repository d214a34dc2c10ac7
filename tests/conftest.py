"""Shared test fixtures.

Tests that touch the database get a fresh in-memory SQLite schema. Redis is never
initialized, so rate limiting is bypassed.
"""

from __future__ import annotations

import os

os.environ["COINTOSS_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["COINTOSS_EXPIRY_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["COINTOSS_LOG_FORMAT"] = "console"
os.environ["COINTOSS_JWT_SECRET"] = "test-secret-with-at-least-32-bytes-of-entropy"

from collections import deque  # noqa: E402
from collections.abc import AsyncGenerator, Callable, Iterable  # noqa: E402
from datetime import datetime, timedelta  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from cointoss.auth.jwt import create_access_token  # noqa: E402
from cointoss.config import get_settings  # noqa: E402
from cointoss.database import close_db, get_engine, get_session_factory, init_db  # noqa: E402
from cointoss.db import models  # noqa: E402, F401
from cointoss.db.base import Base  # noqa: E402
from cointoss.db.models import CoinTossSession, Competition, User  # noqa: E402
from cointoss.dependencies import get_coin_draw  # noqa: E402
from cointoss.game.streak import Outcome  # noqa: E402
from cointoss.main import create_app  # noqa: E402
from cointoss.timeutils import utcnow  # noqa: E402

get_settings.cache_clear()


class ScriptedCoin:
    """Deterministic draw: pops queued outcomes, heads once the queue is empty."""

    def __init__(self) -> None:
        self.queue: deque[Outcome] = deque()
        self.calls = 0

    def push(self, *outcomes: Outcome) -> None:
        self.queue.extend(outcomes)

    def __call__(self) -> Outcome:
        self.calls += 1
        if self.queue:
            return self.queue.popleft()
        return Outcome.HEADS


class FakeClock:
    """Manually advanced UTC clock for the flip engine."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or utcnow()

    def advance(self, seconds: float = 1.0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now

    def __call__(self) -> datetime:
        return self.now


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Fresh schema per test."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for setup and assertions."""
    async with get_session_factory()() as session:
        yield session


@pytest.fixture
def coin() -> ScriptedCoin:
    return ScriptedCoin()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app(database: None, coin: ScriptedCoin) -> FastAPI:
    application = create_app()
    application.dependency_overrides[get_coin_draw] = lambda: coin
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app without running its lifespan."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------


def wallet_for(n: int) -> str:
    return f"0x{n:040x}"


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, user.wallet_address)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory: ``await make_user(username=..., is_admin=...)``."""
    counter = {"n": 0}

    async def _make(username: str | None = None, *, is_admin: bool = False, wallet: str | None = None) -> User:
        counter["n"] += 1
        user = User(
            wallet_address=wallet or wallet_for(counter["n"]),
            username=username,
            is_admin=is_admin,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def player(make_user: Callable[..., Any]) -> User:
    return await make_user("player")


@pytest_asyncio.fixture
async def admin(make_user: Callable[..., Any]) -> User:
    return await make_user("admin", is_admin=True)


async def add_competition(
    db: AsyncSession,
    *,
    start: datetime | None = None,
    hours: float = 24,
    is_active: bool = True,
    **fields: Any,
) -> Competition:
    start = start or utcnow()
    competition = Competition(
        start_time=start,
        end_time=start + timedelta(hours=hours),
        is_active=is_active,
        **fields,
    )
    db.add(competition)
    await db.commit()
    return competition


async def add_sessions(
    db: AsyncSession,
    competition: Competition,
    users: Iterable[User],
    best_streaks: Iterable[int],
) -> list[CoinTossSession]:
    """One session per user with the given best heads streak, in order."""
    sessions = []
    for user, best in zip(users, best_streaks, strict=True):
        session = CoinTossSession(
            competition_id=competition.id,
            user_id=user.id,
            total_flips=best + 2,
            total_heads=best + 1,
            total_tails=1,
            current_streak=0,
            best_heads_streak=best,
            best_tails_streak=1,
        )
        db.add(session)
        await db.flush()
        sessions.append(session)
    await db.commit()
    return sessions
