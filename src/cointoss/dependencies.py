"""Shared FastAPI dependencies."""

from fastapi import Request

from cointoss.admin.audit import AuditLog
from cointoss.game.flip_engine import CoinDraw, random_draw


def get_audit_log(request: Request) -> AuditLog:
    return request.app.state.audit_log


def get_coin_draw() -> CoinDraw:
    """Outcome source for flips. Overridden in tests for deterministic draws."""
    return random_draw
