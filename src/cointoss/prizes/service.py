"""Preset prize catalog with a single-default invariant."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.db.models import PresetPrize
from cointoss.errors import NotFoundError
from cointoss.timeutils import utcnow

logger = logging.getLogger(__name__)


async def list_prizes(db: AsyncSession, *, active_only: bool = False) -> list[PresetPrize]:
    """Default prize first, then newest first."""
    query = select(PresetPrize)
    if active_only:
        query = query.where(PresetPrize.is_active.is_(True))
    query = query.order_by(
        PresetPrize.is_default.desc(), PresetPrize.created_at.desc(), PresetPrize.id.desc(),
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_prize(db: AsyncSession, prize_id: int) -> PresetPrize:
    prize = await db.get(PresetPrize, prize_id)
    if prize is None:
        raise NotFoundError("Prize not found")
    return prize


async def get_default_prize(db: AsyncSession) -> PresetPrize | None:
    result = await db.execute(select(PresetPrize).where(PresetPrize.is_default.is_(True)))
    return result.scalar_one_or_none()


async def _clear_default(db: AsyncSession, except_id: int | None = None) -> None:
    stmt = update(PresetPrize).where(PresetPrize.is_default.is_(True))
    if except_id is not None:
        stmt = stmt.where(PresetPrize.id != except_id)
    await db.execute(stmt.values(is_default=False, updated_at=utcnow()))


async def create_prize(
    db: AsyncSession,
    *,
    name: str,
    description: str,
    image_url: str | None = None,
    is_default: bool = False,
    is_active: bool = True,
    requires_address: bool = False,
) -> PresetPrize:
    if is_default:
        await _clear_default(db)
    prize = PresetPrize(
        name=name,
        description=description,
        image_url=image_url,
        is_default=is_default,
        is_active=is_active,
        requires_address=requires_address,
    )
    db.add(prize)
    await db.commit()
    logger.info("Created prize %d (%s), default=%s", prize.id, name, is_default)
    return prize


async def update_prize(db: AsyncSession, prize_id: int, changes: dict[str, Any]) -> PresetPrize:
    """Apply the provided fields. Setting ``is_default`` clears every other default first."""
    prize = await get_prize(db, prize_id)
    if changes.get("is_default"):
        await _clear_default(db, except_id=prize.id)
    for field in ("name", "description", "is_default", "is_active", "requires_address"):
        if changes.get(field) is not None:
            setattr(prize, field, changes[field])
    if "image_url" in changes:
        prize.image_url = changes["image_url"]
    prize.updated_at = utcnow()
    await db.commit()
    return prize


async def delete_prize(db: AsyncSession, prize_id: int) -> None:
    prize = await get_prize(db, prize_id)
    await db.delete(prize)
    await db.commit()
    logger.info("Deleted prize %d", prize_id)


async def set_default_prize(db: AsyncSession, prize_id: int) -> PresetPrize:
    prize = await get_prize(db, prize_id)
    await _clear_default(db, except_id=prize.id)
    prize.is_default = True
    prize.updated_at = utcnow()
    await db.commit()
    logger.info("Prize %d is now the default", prize_id)
    return prize
