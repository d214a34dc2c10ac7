"""Coin toss schema: users, competitions, sessions, flips, achievements,
settings, winners and preset prizes.

Revision ID: 001_cointoss_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_cointoss_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            wallet_address VARCHAR(42) UNIQUE,
            farcaster_fid INTEGER,
            username VARCHAR(50),
            avatar_url VARCHAR(255),
            is_admin BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_users_farcaster_fid ON users(farcaster_fid)")

    # --- Competitions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS coin_toss_competitions (
            id SERIAL PRIMARY KEY,
            start_time TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            end_time TIMESTAMPTZ NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            winner_user_id INTEGER REFERENCES users(id),
            total_players INTEGER NOT NULL DEFAULT 0,
            total_flips INTEGER NOT NULL DEFAULT 0,
            prize_text TEXT,
            prize_image_url TEXT,
            requires_address BOOLEAN NOT NULL DEFAULT false,
            winners_selected BOOLEAN NOT NULL DEFAULT false,
            prize_delivered BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_coin_toss_competitions_single_active
        ON coin_toss_competitions(is_active) WHERE is_active
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_coin_toss_competitions_end_time
        ON coin_toss_competitions(end_time)
    """)

    # --- Sessions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS coin_toss_sessions (
            id SERIAL PRIMARY KEY,
            competition_id INTEGER NOT NULL REFERENCES coin_toss_competitions(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL REFERENCES users(id),
            total_flips INTEGER NOT NULL DEFAULT 0,
            total_heads INTEGER NOT NULL DEFAULT 0,
            total_tails INTEGER NOT NULL DEFAULT 0,
            current_streak INTEGER NOT NULL DEFAULT 0,
            best_heads_streak INTEGER NOT NULL DEFAULT 0,
            best_tails_streak INTEGER NOT NULL DEFAULT 0,
            daily_fails_used INTEGER NOT NULL DEFAULT 0,
            last_flip_at TIMESTAMPTZ,
            version INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_coin_toss_sessions_competition_user UNIQUE (competition_id, user_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_coin_toss_sessions_best_heads
        ON coin_toss_sessions(best_heads_streak)
    """)

    # --- Flips ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS coin_toss_flips (
            id SERIAL PRIMARY KEY,
            session_id INTEGER NOT NULL REFERENCES coin_toss_sessions(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL REFERENCES users(id),
            result VARCHAR(5) NOT NULL,
            streak_count INTEGER NOT NULL DEFAULT 0,
            flipped_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_coin_toss_flips_session_id ON coin_toss_flips(session_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_coin_toss_flips_user_id ON coin_toss_flips(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_coin_toss_flips_flipped_at ON coin_toss_flips(flipped_at)")

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS coin_toss_achievements (
            id SERIAL PRIMARY KEY,
            session_id INTEGER NOT NULL REFERENCES coin_toss_sessions(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL REFERENCES users(id),
            achievement_type VARCHAR(16) NOT NULL,
            streak_value INTEGER NOT NULL,
            achieved_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_coin_toss_achievements_session_type UNIQUE (session_id, achievement_type)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_coin_toss_achievements_user_id
        ON coin_toss_achievements(user_id)
    """)

    # --- Settings (singleton) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS coin_toss_settings (
            id SERIAL PRIMARY KEY,
            singleton_key VARCHAR(16) NOT NULL DEFAULT 'global' UNIQUE,
            min_streak_for_leaderboard INTEGER NOT NULL DEFAULT 5,
            competition_duration_hours INTEGER NOT NULL DEFAULT 24,
            max_flips_per_minute INTEGER NOT NULL DEFAULT 240,
            daily_fail_limit INTEGER NOT NULL DEFAULT 3,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Winners ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS coin_toss_winners (
            id SERIAL PRIMARY KEY,
            competition_id INTEGER NOT NULL REFERENCES coin_toss_competitions(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL REFERENCES users(id),
            final_streak INTEGER NOT NULL,
            position INTEGER NOT NULL,
            selected_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            selected_by_id INTEGER REFERENCES users(id),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_coin_toss_winners_competition_position UNIQUE (competition_id, position)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_coin_toss_winners_competition_id
        ON coin_toss_winners(competition_id)
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_coin_toss_winners_user_id ON coin_toss_winners(user_id)")

    # --- Preset prizes ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS coin_toss_preset_prizes (
            id SERIAL PRIMARY KEY,
            name VARCHAR(100) NOT NULL,
            description TEXT NOT NULL,
            image_url TEXT,
            is_default BOOLEAN NOT NULL DEFAULT false,
            is_active BOOLEAN NOT NULL DEFAULT true,
            requires_address BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_coin_toss_preset_prizes_single_default
        ON coin_toss_preset_prizes(is_default) WHERE is_default
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS coin_toss_preset_prizes CASCADE")
    op.execute("DROP TABLE IF EXISTS coin_toss_winners CASCADE")
    op.execute("DROP TABLE IF EXISTS coin_toss_settings CASCADE")
    op.execute("DROP TABLE IF EXISTS coin_toss_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS coin_toss_flips CASCADE")
    op.execute("DROP TABLE IF EXISTS coin_toss_sessions CASCADE")
    op.execute("DROP TABLE IF EXISTS coin_toss_competitions CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
