"""Competition lifecycle: get-or-create, forced creation, manual end, expiry sweep."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import add_competition, add_sessions
from cointoss.competition import competition_service
from cointoss.competition.ranking import CompetitionStatus
from cointoss.competition.winner_service import get_winners
from cointoss.db.models import Competition
from cointoss.errors import ConflictError, NotFoundError
from cointoss.game.settings_service import update_game_settings
from cointoss.prizes.service import create_prize
from cointoss.timeutils import ensure_utc, utcnow

pytestmark = pytest.mark.asyncio


async def _reload(db: AsyncSession, competition_id: int) -> Competition:
    competition = await db.get(Competition, competition_id, populate_existing=True)
    assert competition is not None
    return competition


async def _active_count(db: AsyncSession) -> int:
    return await db.scalar(
        select(func.count()).select_from(Competition).where(Competition.is_active.is_(True))
    ) or 0


class TestGetOrCreateActive:
    async def test_creates_first_competition(self, db_session: AsyncSession):
        """With nothing active a competition of the configured duration is created."""
        now = utcnow()
        competition = await competition_service.get_or_create_active(db_session, now)

        assert competition.is_active is True
        assert ensure_utc(competition.end_time) - ensure_utc(competition.start_time) == timedelta(hours=24)
        assert competition.total_players == 0
        assert competition.prize_text is None

    async def test_returns_existing(self, db_session: AsyncSession):
        first = await competition_service.get_or_create_active(db_session)
        second = await competition_service.get_or_create_active(db_session)
        assert first.id == second.id
        assert await _active_count(db_session) == 1

    async def test_uses_configured_duration(self, db_session: AsyncSession):
        await update_game_settings(db_session, {"competition_duration_hours": 6})
        competition = await competition_service.get_or_create_active(db_session)
        assert ensure_utc(competition.end_time) - ensure_utc(competition.start_time) == timedelta(hours=6)

    async def test_stale_active_is_replaced(self, db_session: AsyncSession):
        """A competition still flagged active past its end is closed and a new one started."""
        stale = await add_competition(db_session, start=utcnow() - timedelta(hours=30), hours=24)

        current = await competition_service.get_or_create_active(db_session)

        assert current.id != stale.id
        assert (await _reload(db_session, stale.id)).is_active is False
        assert await _active_count(db_session) == 1

    async def test_attaches_default_prize(self, db_session: AsyncSession):
        await create_prize(
            db_session, name="USDC", description="Win 10 USDC",
            image_url="https://example.com/usdc.png", is_default=True, requires_address=True,
        )
        competition = await competition_service.get_or_create_active(db_session)
        assert competition.prize_text == "Win 10 USDC"
        assert competition.prize_image_url == "https://example.com/usdc.png"
        assert competition.requires_address is True

    async def test_inactive_default_prize_is_ignored(self, db_session: AsyncSession):
        await create_prize(db_session, name="Old", description="Retired", is_default=True, is_active=False)
        competition = await competition_service.get_or_create_active(db_session)
        assert competition.prize_text is None


class TestCreateNewCompetition:
    async def test_ends_previous_active(self, db_session: AsyncSession):
        old = await competition_service.get_or_create_active(db_session)
        new = await competition_service.create_new_competition(db_session, duration_hours=2)

        assert new.id != old.id
        assert (await _reload(db_session, old.id)).is_active is False
        assert ensure_utc(new.end_time) - ensure_utc(new.start_time) == timedelta(hours=2)
        assert await _active_count(db_session) == 1

    async def test_without_default_prize(self, db_session: AsyncSession):
        await create_prize(db_session, name="USDC", description="Win 10 USDC", is_default=True)
        competition = await competition_service.create_new_competition(db_session, use_default_prize=False)
        assert competition.prize_text is None


class TestEndCompetition:
    async def test_end_returns_standings(self, db_session: AsyncSession, make_user):
        competition = await add_competition(db_session)
        users = [await make_user(f"p{i}") for i in range(3)]
        await add_sessions(db_session, competition, users, [4, 9, 1])

        ended, standings = await competition_service.end_competition(db_session, competition.id)

        assert ended.is_active is False
        assert ensure_utc(ended.end_time) <= utcnow()
        assert [s.best_heads_streak for s in standings] == [9, 4, 1]

    async def test_end_twice_conflicts(self, db_session: AsyncSession):
        competition = await add_competition(db_session)
        await competition_service.end_competition(db_session, competition.id)
        with pytest.raises(ConflictError, match="already ended"):
            await competition_service.end_competition(db_session, competition.id)

    async def test_unknown_competition(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await competition_service.end_competition(db_session, 999)

    async def test_status_after_end(self, db_session: AsyncSession):
        competition = await add_competition(db_session)
        ended, _ = await competition_service.end_competition(db_session, competition.id)
        assert competition_service.competition_status(ended) == CompetitionStatus.ENDED


class TestProcessExpired:
    async def test_expired_competition_gets_winners(self, db_session: AsyncSession, make_user):
        """Best streaks [12, 9, 9, 5, 2]: the three winners are 12, the earlier 9, the later 9."""
        now = utcnow()
        competition = await add_competition(db_session, start=now - timedelta(hours=25), hours=24)
        users = [await make_user(f"p{i}") for i in range(5)]
        await add_sessions(db_session, competition, users, [12, 9, 9, 5, 2])

        result = await competition_service.process_expired(db_session, now)

        assert result.count == 1
        assert result.processed[0].id == competition.id
        assert result.processed[0].winners_selected is False
        winners = await get_winners(db_session, competition.id)
        assert [(w.position, w.user_id, w.final_streak) for w in winners] == [
            (1, users[0].id, 12),
            (2, users[1].id, 9),
            (3, users[2].id, 9),
        ]
        assert all(w.selected_by_id is None for w in winners)

        refreshed = await _reload(db_session, competition.id)
        assert refreshed.is_active is False
        assert refreshed.winners_selected is True
        assert refreshed.winner_user_id == users[0].id

    async def test_rerun_is_noop(self, db_session: AsyncSession, make_user):
        now = utcnow()
        competition = await add_competition(db_session, start=now - timedelta(hours=25), hours=24)
        users = [await make_user(f"p{i}") for i in range(2)]
        await add_sessions(db_session, competition, users, [8, 6])

        await competition_service.process_expired(db_session, now)
        again = await competition_service.process_expired(db_session, now)

        assert again.count == 0
        assert len(await get_winners(db_session, competition.id)) == 2

    async def test_no_eligible_players_closes_without_winners(self, db_session: AsyncSession, make_user):
        now = utcnow()
        competition = await add_competition(db_session, start=now - timedelta(hours=25), hours=24)
        users = [await make_user(f"p{i}") for i in range(2)]
        await add_sessions(db_session, competition, users, [2, 4])

        result = await competition_service.process_expired(db_session, now)

        assert result.count == 1
        assert result.no_eligible == [competition.id]
        assert result.processed[0].winners_selected is False
        refreshed = await _reload(db_session, competition.id)
        assert refreshed.is_active is False
        assert refreshed.winners_selected is False
        assert await get_winners(db_session, competition.id) == []

    async def test_reports_selection_made_before_the_sweep(self, db_session: AsyncSession, make_user):
        """A competition already flagged as decided is closed without a new pick and reported as selected."""
        now = utcnow()
        competition = await add_competition(db_session, start=now - timedelta(hours=25), hours=24)
        users = [await make_user(f"p{i}") for i in range(2)]
        await add_sessions(db_session, competition, users, [8, 6])
        competition.winners_selected = True
        await db_session.commit()

        result = await competition_service.process_expired(db_session, now)

        assert result.processed[0].winners_selected is True
        assert result.no_eligible == []
        assert await get_winners(db_session, competition.id) == []
        refreshed = await _reload(db_session, competition.id)
        assert refreshed.is_active is False

    async def test_live_competition_untouched(self, db_session: AsyncSession):
        competition = await add_competition(db_session)
        result = await competition_service.process_expired(db_session)
        assert result.count == 0
        assert (await _reload(db_session, competition.id)).is_active is True

    async def test_respects_top_count(self, db_session: AsyncSession, make_user):
        now = utcnow()
        competition = await add_competition(db_session, start=now - timedelta(hours=25), hours=24)
        users = [await make_user(f"p{i}") for i in range(4)]
        await add_sessions(db_session, competition, users, [10, 9, 8, 7])

        await competition_service.process_expired(db_session, now, top_count=1)

        winners = await get_winners(db_session, competition.id)
        assert [w.user_id for w in winners] == [users[0].id]
