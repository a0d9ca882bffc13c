"""Tests for the audit log."""

import pytest

from cronspine.core.errors import InvalidConfigError
from cronspine.core.scheduling.audit import (
    AuditEntry,
    AuditEventType,
    CronAuditLog,
    InMemoryCronAuditLog,
    parse_event_type,
)


def entry(job_id="job-1", event_type=AuditEventType.EXECUTED, **overrides) -> AuditEntry:
    fields = {
        "timestamp": 1_000,
        "event_type": event_type,
        "job_id": job_id,
        "job_name": f"{job_id}-name",
        "action": "tool.execute",
        "success": True,
    }
    fields.update(overrides)
    return AuditEntry(**fields)


class TestInMemoryCronAuditLog:
    """Recording and querying."""

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryCronAuditLog(), CronAuditLog)

    def test_entries_in_record_order(self):
        log = InMemoryCronAuditLog()
        log.record(entry("a", timestamp=1))
        log.record(entry("b", timestamp=2))
        log.record(entry("a", timestamp=3))

        assert [e.timestamp for e in log.get_entries()] == [1, 2, 3]
        assert [e.timestamp for e in log.get_entries("a")] == [1, 3]
        assert log.get_entries("missing") == []
        assert len(log) == 3

    def test_filter_by_type_accepts_enum_or_value(self):
        log = InMemoryCronAuditLog()
        log.record(entry(event_type=AuditEventType.CREATED))
        log.record(entry(event_type=AuditEventType.FAILED, success=False, error="boom"))

        by_enum = log.get_entries_by_type(AuditEventType.FAILED)
        by_value = log.get_entries_by_type("cron.failed")
        assert by_enum == by_value
        assert [e.error for e in by_enum] == ["boom"]

    def test_bare_event_name_matches(self):
        log = InMemoryCronAuditLog()
        log.record(entry(event_type=AuditEventType.EXECUTED))
        log.record(entry(event_type=AuditEventType.RATE_LIMITED, success=False))

        assert [e.event_type for e in log.get_entries_by_type("executed")] == [
            AuditEventType.EXECUTED
        ]
        assert len(log.get_entries_by_type("rate_limited")) == 1

    def test_unknown_event_type_matches_nothing(self):
        log = InMemoryCronAuditLog()
        log.record(entry())

        assert log.get_entries_by_type("cron.exploded") == []
        assert log.get_entries_by_type("exploded") == []

    def test_parse_event_type(self):
        assert parse_event_type("failed") is AuditEventType.FAILED
        assert parse_event_type("cron.paused") is AuditEventType.PAUSED
        assert parse_event_type(AuditEventType.CREATED) is AuditEventType.CREATED
        assert parse_event_type("nope") is None

    def test_reads_are_copies(self):
        log = InMemoryCronAuditLog()
        log.record(entry(metadata={"attempt": 1}))

        log.get_entries()[0].metadata["attempt"] = 99
        assert log.get_entries()[0].metadata == {"attempt": 1}

    def test_record_copies_input(self):
        log = InMemoryCronAuditLog()
        metadata = {"attempt": 1}
        log.record(entry(metadata=metadata))
        metadata["attempt"] = 2
        assert log.get_entries()[0].metadata == {"attempt": 1}

    def test_clear(self):
        log = InMemoryCronAuditLog()
        log.record(entry())
        log.clear()
        assert log.get_entries() == []


class TestRetention:
    """Bounded retention."""

    def test_oldest_dropped_first(self):
        log = InMemoryCronAuditLog(max_entries=2)
        for ts in (1, 2, 3):
            log.record(entry(timestamp=ts))
        assert [e.timestamp for e in log.get_entries()] == [2, 3]

    @pytest.mark.parametrize("max_entries", [0, -5])
    def test_non_positive_bound_rejected(self, max_entries):
        with pytest.raises(InvalidConfigError):
            InMemoryCronAuditLog(max_entries=max_entries)


class TestAuditEntry:
    """Entry serialization."""

    def test_to_dict_uses_event_value(self):
        data = entry(duration_ms=25).to_dict()
        assert data["event_type"] == "cron.executed"
        assert data["duration_ms"] == 25
        assert data["error"] is None
        assert data["metadata"] == {}

    def test_event_type_values(self):
        assert {e.value for e in AuditEventType} == {
            "cron.created",
            "cron.updated",
            "cron.deleted",
            "cron.executed",
            "cron.failed",
            "cron.paused",
            "cron.resumed",
            "cron.rate_limited",
        }
