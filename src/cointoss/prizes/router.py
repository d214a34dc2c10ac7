"""Preset prize catalog endpoints (admin only)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.admin.audit import AdminAction, AuditLog
from cointoss.auth.dependencies import AuthenticatedUser, require_admin
from cointoss.database import get_session
from cointoss.dependencies import get_audit_log
from cointoss.middleware.rate_limit import admin_rate_limit, strict_admin_rate_limit
from cointoss.prizes import service
from cointoss.prizes.schemas import (
    DefaultPrizeResponse,
    PrizeCreate,
    PrizeListResponse,
    PrizeOut,
    PrizeResponse,
    PrizeUpdate,
)
from cointoss.schemas import MessageResponse

router = APIRouter(prefix="/api/cointoss/prizes", tags=["Prizes"])


@router.get("", response_model=PrizeListResponse, dependencies=[Depends(admin_rate_limit)])
async def list_prizes(
    active_only: bool = Query(False, alias="activeOnly"),
    _admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> PrizeListResponse:
    prizes = await service.list_prizes(db, active_only=active_only)
    return PrizeListResponse(prizes=[PrizeOut.model_validate(p) for p in prizes])


@router.get("/default", response_model=DefaultPrizeResponse, dependencies=[Depends(admin_rate_limit)])
async def default_prize(
    _admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> DefaultPrizeResponse:
    prize = await service.get_default_prize(db)
    return DefaultPrizeResponse(default_prize=PrizeOut.model_validate(prize) if prize else None)


@router.post("", response_model=PrizeResponse, dependencies=[Depends(strict_admin_rate_limit)])
async def create_prize(
    body: PrizeCreate,
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> PrizeResponse:
    with audit.track(
        AdminAction.CREATE_PRIZE, "prize", user_id=admin.id, request=request,
        details={"name": body.name, "isDefault": body.is_default},
    ) as details:
        prize = await service.create_prize(db, **body.model_dump())
        details["prizeId"] = prize.id
    return PrizeResponse(message="Preset prize created successfully", prize=PrizeOut.model_validate(prize))


@router.put("/{prize_id}", response_model=PrizeResponse, dependencies=[Depends(strict_admin_rate_limit)])
async def update_prize(
    prize_id: int,
    body: PrizeUpdate,
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> PrizeResponse:
    changes = body.model_dump(exclude_unset=True)
    with audit.track(
        AdminAction.UPDATE_PRIZE, "prize", prize_id, user_id=admin.id, request=request, details=changes,
    ):
        prize = await service.update_prize(db, prize_id, changes)
    return PrizeResponse(message="Preset prize updated successfully", prize=PrizeOut.model_validate(prize))


@router.delete("/{prize_id}", response_model=MessageResponse, dependencies=[Depends(strict_admin_rate_limit)])
async def delete_prize(
    prize_id: int,
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> MessageResponse:
    with audit.track(AdminAction.DELETE_PRIZE, "prize", prize_id, user_id=admin.id, request=request):
        await service.delete_prize(db, prize_id)
    return MessageResponse(message="Preset prize deleted successfully")


@router.post(
    "/{prize_id}/set-default",
    response_model=PrizeResponse,
    dependencies=[Depends(strict_admin_rate_limit)],
)
async def set_default(
    prize_id: int,
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> PrizeResponse:
    with audit.track(AdminAction.SET_DEFAULT_PRIZE, "prize", prize_id, user_id=admin.id, request=request):
        prize = await service.set_default_prize(db, prize_id)
    return PrizeResponse(message="Default prize set successfully", prize=PrizeOut.model_validate(prize))
