"""ORM models for the coin toss schema.

Table layout mirrors the alembic migrations in ``alembic/versions``.
Python-side defaults are set alongside server defaults so that
``Base.metadata.create_all`` produces a usable schema for tests.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cointoss.db.base import Base
from cointoss.timeutils import utcnow

SETTINGS_SINGLETON_KEY = "global"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Player profile. Identity is supplied by the upstream auth provider."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet_address: Mapped[str | None] = mapped_column(String(42), unique=True, nullable=True)
    farcaster_fid: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    username: Mapped[str | None] = mapped_column(String(50), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=text("CURRENT_TIMESTAMP"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=text("CURRENT_TIMESTAMP"),
    )


# ---------------------------------------------------------------------------
# Competitions
# ---------------------------------------------------------------------------


class Competition(Base):
    """A time-boxed round of play with its own leaderboard and prize."""

    __tablename__ = "coin_toss_competitions"
    __table_args__ = (
        # At most one active competition at a time.
        Index(
            "uq_coin_toss_competitions_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
        Index("ix_coin_toss_competitions_end_time", "end_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    winner_user_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    total_players: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_flips: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    prize_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    prize_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    requires_address: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    winners_selected: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    prize_delivered: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=text("CURRENT_TIMESTAMP"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=text("CURRENT_TIMESTAMP"),
    )

    sessions: Mapped[list[CoinTossSession]] = relationship(
        "CoinTossSession", back_populates="competition", cascade="all, delete-orphan", passive_deletes=True,
    )
    winners: Mapped[list[Winner]] = relationship(
        "Winner", back_populates="competition", cascade="all, delete-orphan", passive_deletes=True,
        order_by="Winner.position",
    )


class CoinTossSession(Base):
    """A user's cumulative play record within one competition.

    ``current_streak`` is signed: positive for a heads run, negative for a
    tails run, zero before the first flip. ``version`` guards the
    read-modify-write in the flip engine.
    """

    __tablename__ = "coin_toss_sessions"
    __table_args__ = (
        UniqueConstraint("competition_id", "user_id", name="uq_coin_toss_sessions_competition_user"),
        Index("ix_coin_toss_sessions_best_heads", "best_heads_streak"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    competition_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("coin_toss_competitions.id", ondelete="CASCADE"), nullable=False,
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    total_flips: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_heads: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_tails: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    current_streak: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    best_heads_streak: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    best_tails_streak: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    daily_fails_used: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    last_flip_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=text("CURRENT_TIMESTAMP"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=text("CURRENT_TIMESTAMP"),
    )

    __mapper_args__ = {"version_id_col": version}

    competition: Mapped[Competition] = relationship("Competition", back_populates="sessions")
    user: Mapped[User] = relationship("User", lazy="joined")
    flips: Mapped[list[Flip]] = relationship(
        "Flip", back_populates="session", cascade="all, delete-orphan", passive_deletes=True,
    )
    achievements: Mapped[list[Achievement]] = relationship(
        "Achievement", back_populates="session", cascade="all, delete-orphan", passive_deletes=True,
    )


class Flip(Base):
    """Append-only record of a single coin flip."""

    __tablename__ = "coin_toss_flips"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("coin_toss_sessions.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    result: Mapped[str] = mapped_column(String(5), nullable=False)
    streak_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    flipped_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    session: Mapped[CoinTossSession] = relationship("CoinTossSession", back_populates="flips")


class Achievement(Base):
    """Heads-streak milestone unlocked within a session. One per type per session."""

    __tablename__ = "coin_toss_achievements"
    __table_args__ = (
        UniqueConstraint("session_id", "achievement_type", name="uq_coin_toss_achievements_session_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("coin_toss_sessions.id", ondelete="CASCADE"), nullable=False,
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    achievement_type: Mapped[str] = mapped_column(String(16), nullable=False)
    streak_value: Mapped[int] = mapped_column(Integer, nullable=False)
    achieved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    session: Mapped[CoinTossSession] = relationship("CoinTossSession", back_populates="achievements")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class GameSettings(Base):
    """Singleton row of tunable game parameters, keyed by a unique sentinel."""

    __tablename__ = "coin_toss_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    singleton_key: Mapped[str] = mapped_column(
        String(16), unique=True, nullable=False, default=SETTINGS_SINGLETON_KEY, server_default=SETTINGS_SINGLETON_KEY,
    )
    min_streak_for_leaderboard: Mapped[int] = mapped_column(Integer, nullable=False, default=5, server_default="5")
    competition_duration_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=24, server_default="24")
    max_flips_per_minute: Mapped[int] = mapped_column(Integer, nullable=False, default=240, server_default="240")
    daily_fail_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=3, server_default="3")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=text("CURRENT_TIMESTAMP"),
    )


# ---------------------------------------------------------------------------
# Winners & prizes
# ---------------------------------------------------------------------------


class Winner(Base):
    """Ranked winner of a closed competition. Positions are 1..N per competition."""

    __tablename__ = "coin_toss_winners"
    __table_args__ = (
        UniqueConstraint("competition_id", "position", name="uq_coin_toss_winners_competition_position"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    competition_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("coin_toss_competitions.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    final_streak: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    selected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    # NULL when selected by the expiry sweep rather than an admin.
    selected_by_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=text("CURRENT_TIMESTAMP"))

    competition: Mapped[Competition] = relationship("Competition", back_populates="winners")
    user: Mapped[User] = relationship("User", foreign_keys=[user_id], lazy="joined")


class PresetPrize(Base):
    """Reusable prize template. At most one row is the catalog default."""

    __tablename__ = "coin_toss_preset_prizes"
    __table_args__ = (
        Index(
            "uq_coin_toss_preset_prizes_single_default",
            "is_default",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    requires_address: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=text("CURRENT_TIMESTAMP"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=text("CURRENT_TIMESTAMP"),
    )
