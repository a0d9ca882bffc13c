"""Audit trail of cron lifecycle and execution events.

Every create/update/delete/pause/resume and every execution attempt
(executed, failed, rate limited) becomes one immutable ``AuditEntry``.
The log is append-only; readers always receive deep copies so that no
caller can rewrite history through a returned object.

Tags:
    cronspine, audit, scheduling, observability

Doc-Types:
    api-reference
"""

from __future__ import annotations

import copy
import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from cronspine.core.errors import InvalidConfigError


class AuditEventType(str, Enum):
    """Kinds of audited cron events."""

    CREATED = "cron.created"
    UPDATED = "cron.updated"
    DELETED = "cron.deleted"
    EXECUTED = "cron.executed"
    FAILED = "cron.failed"
    PAUSED = "cron.paused"
    RESUMED = "cron.resumed"
    RATE_LIMITED = "cron.rate_limited"


def parse_event_type(value: AuditEventType | str) -> AuditEventType | None:
    """Resolve ``"cron.executed"`` or bare ``"executed"``; ``None`` if unknown."""
    if isinstance(value, AuditEventType):
        return value
    name = value if value.startswith("cron.") else f"cron.{value}"
    try:
        return AuditEventType(name)
    except ValueError:
        return None


@dataclass(frozen=True)
class AuditEntry:
    """One recorded event.

    ``timestamp`` is epoch milliseconds.  ``duration_ms`` is set for
    execution outcomes, ``error`` for failures and rate limiting.
    """

    timestamp: int
    event_type: AuditEventType
    job_id: str
    job_name: str
    action: str
    success: bool
    duration_ms: int | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.event_type.value
        return data


@runtime_checkable
class CronAuditLog(Protocol):
    """Append-only sink for audit entries."""

    def record(self, entry: AuditEntry) -> None:
        """Append an entry."""
        ...

    def get_entries(self, job_id: str | None = None) -> list[AuditEntry]:
        """All entries in record order, optionally for one job."""
        ...

    def get_entries_by_type(self, event_type: AuditEventType | str) -> list[AuditEntry]:
        """Entries of one event type, in record order."""
        ...

    def clear(self) -> None:
        """Drop every entry."""
        ...


class InMemoryCronAuditLog:
    """Process-local audit log.

    Args:
        max_entries: Keep at most this many entries, dropping the oldest
            first.  ``None`` keeps everything.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries <= 0:
            raise InvalidConfigError("audit_max_entries", max_entries)
        self._entries: deque[AuditEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def record(self, entry: AuditEntry) -> None:
        with self._lock:
            self._entries.append(copy.deepcopy(entry))

    def get_entries(self, job_id: str | None = None) -> list[AuditEntry]:
        with self._lock:
            return [
                copy.deepcopy(entry)
                for entry in self._entries
                if job_id is None or entry.job_id == job_id
            ]

    def get_entries_by_type(self, event_type: AuditEventType | str) -> list[AuditEntry]:
        """Entries of one kind; accepts "cron.failed" or "failed". Unknown kinds match nothing."""
        wanted = parse_event_type(event_type)
        if wanted is None:
            return []
        with self._lock:
            return [copy.deepcopy(entry) for entry in self._entries if entry.event_type == wanted]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = [
    "AuditEntry",
    "AuditEventType",
    "CronAuditLog",
    "InMemoryCronAuditLog",
    "parse_event_type",
]
