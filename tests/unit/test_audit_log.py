"""Audit ring buffer: recording, querying and failure tracking."""

import pytest

from cointoss.admin.audit import AdminAction, AuditLog
from cointoss.errors import ConflictError


class TestRecord:
    def test_record_returns_entry(self):
        log = AuditLog()
        entry = log.record(AdminAction.END_COMPETITION, "competition", 4, user_id=1)
        assert entry is not None
        assert entry.action == "END_COMPETITION"
        assert entry.resource_id == 4
        assert entry.success is True
        assert len(log) == 1

    def test_oldest_entries_are_evicted(self):
        log = AuditLog(max_entries=3)
        for i in range(5):
            log.record(AdminAction.CREATE_PRIZE, "prize", i, user_id=1)
        assert len(log) == 3
        assert [e.resource_id for e in log.query()] == [4, 3, 2]

    def test_record_never_raises(self):
        """A details object that cannot be copied is logged and dropped."""
        log = AuditLog()
        assert log.record(AdminAction.UPDATE_SETTINGS, "settings", details=42) is None  # type: ignore[arg-type]
        assert len(log) == 0


class TestQuery:
    def test_filters_and_order(self):
        log = AuditLog()
        log.record(AdminAction.CREATE_PRIZE, "prize", 1, user_id=1)
        log.record(AdminAction.DELETE_PRIZE, "prize", 1, user_id=2)
        log.record(AdminAction.END_COMPETITION, "competition", 9, user_id=1)

        assert [e.action for e in log.query(user_id=1)] == ["END_COMPETITION", "CREATE_PRIZE"]
        assert [e.user_id for e in log.query(resource="prize")] == [2, 1]
        assert len(log.query(action="DELETE_PRIZE")) == 1
        assert len(log.query(limit=2)) == 2


class TestTrack:
    def test_success_records_collected_details(self):
        log = AuditLog()
        with log.track(AdminAction.CREATE_COMPETITION, "competition", user_id=1) as details:
            details["competitionId"] = 12
        (entry,) = log.query()
        assert entry.success is True
        assert entry.details == {"competitionId": 12}

    def test_failure_is_recorded_and_reraised(self):
        log = AuditLog()
        with pytest.raises(ConflictError):
            with log.track(AdminAction.END_COMPETITION, "competition", 3, user_id=1):
                raise ConflictError("Competition is already ended")
        (entry,) = log.query()
        assert entry.success is False
        assert entry.error_message == "Competition is already ended"
