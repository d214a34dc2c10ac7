"""Bounded in-memory audit trail for admin actions.

Entries are kept in a ring buffer (oldest evicted first) and mirrored to
the structured log as ``admin_audit`` events. Recording never raises.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import structlog
from starlette.requests import Request

from cointoss.errors import CoinTossError
from cointoss.timeutils import utcnow

logger = structlog.get_logger()


class AdminAction(str, Enum):
    CREATE_COMPETITION = "CREATE_COMPETITION"
    END_COMPETITION = "END_COMPETITION"
    SELECT_WINNERS = "SELECT_WINNERS"
    AUTO_SELECT_WINNERS = "AUTO_SELECT_WINNERS"
    MARK_PRIZE_DELIVERED = "MARK_PRIZE_DELIVERED"
    PROCESS_EXPIRED = "PROCESS_EXPIRED"
    CREATE_PRIZE = "CREATE_PRIZE"
    UPDATE_PRIZE = "UPDATE_PRIZE"
    DELETE_PRIZE = "DELETE_PRIZE"
    SET_DEFAULT_PRIZE = "SET_DEFAULT_PRIZE"
    UPDATE_SETTINGS = "UPDATE_SETTINGS"
    RESET_DAILY_FAILS = "RESET_DAILY_FAILS"


@dataclass(frozen=True)
class AuditEntry:
    user_id: int | None
    action: str
    resource: str
    resource_id: int | str | None
    details: dict[str, Any] = field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None
    timestamp: datetime = field(default_factory=utcnow)
    success: bool = True
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class AuditLog:
    """Append-only sink holding the most recent ``max_entries`` records."""

    def __init__(self, max_entries: int = 1000) -> None:
        self._entries: deque[AuditEntry] = deque(maxlen=max_entries)

    def record(
        self,
        action: AdminAction | str,
        resource: str,
        resource_id: int | str | None = None,
        *,
        user_id: int | None = None,
        details: dict[str, Any] | None = None,
        request: Request | None = None,
        success: bool = True,
        error_message: str | None = None,
    ) -> AuditEntry | None:
        try:
            ip_address = user_agent = None
            if request is not None:
                ip_address = request.client.host if request.client else None
                user_agent = request.headers.get("user-agent")
            entry = AuditEntry(
                user_id=user_id,
                action=action.value if isinstance(action, AdminAction) else str(action),
                resource=resource,
                resource_id=resource_id,
                details=dict(details or {}),
                ip_address=ip_address,
                user_agent=user_agent,
                success=success,
                error_message=error_message,
            )
            self._entries.append(entry)
            logger.info(
                "admin_audit",
                user_id=user_id,
                action=entry.action,
                resource=resource,
                resource_id=resource_id,
                success=success,
                error_message=error_message,
            )
            return entry
        except Exception:  # noqa: BLE001
            logger.exception("audit_record_failed", action=str(action), resource=resource)
            return None

    @contextmanager
    def track(
        self,
        action: AdminAction,
        resource: str,
        resource_id: int | str | None = None,
        *,
        user_id: int | None = None,
        request: Request | None = None,
        details: dict[str, Any] | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Record the wrapped operation as succeeded or failed, then re-raise any error.

        The yielded dict can be filled with details discovered during the operation.
        """
        collected: dict[str, Any] = dict(details or {})
        try:
            yield collected
        except Exception as e:
            message = e.message if isinstance(e, CoinTossError) else str(e)
            self.record(
                action, resource, resource_id, user_id=user_id, details=collected,
                request=request, success=False, error_message=message,
            )
            raise
        self.record(action, resource, resource_id, user_id=user_id, details=collected, request=request)

    def query(
        self,
        *,
        user_id: int | None = None,
        action: str | None = None,
        resource: str | None = None,
        limit: int = 100,
    ) -> list[AuditEntry]:
        """Matching entries, most recent first."""
        matches: list[AuditEntry] = []
        for entry in reversed(self._entries):
            if user_id is not None and entry.user_id != user_id:
                continue
            if action is not None and entry.action != action:
                continue
            if resource is not None and entry.resource != resource:
                continue
            matches.append(entry)
            if len(matches) >= limit:
                break
        return matches

    def __len__(self) -> int:
        return len(self._entries)
