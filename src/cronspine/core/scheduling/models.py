"""Cron job models.

Manifesto:
    The scheduler, the store, the executor and the schedule tool all pass
    the same job shape around.  Typed dataclasses (not dicts) keep the
    invariants in one place and give the JSON document format a single
    owner: ``CronJob.to_dict()`` / ``CronJob.from_dict()``.

Models for recurring job definitions and the create/update DTOs that feed
``CronScheduler``.

Tags:
    cronspine, models, scheduling, dataclasses, cron

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Final

from cronspine.core.timestamps import from_iso8601, to_iso8601


class JobStatus(str, Enum):
    """Lifecycle status of a cron job."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


class UnsetType:
    """Marker for update fields that were not provided."""

    _instance: UnsetType | None = None

    def __new__(cls) -> UnsetType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> UnsetType:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> UnsetType:
        return self


UNSET: Final = UnsetType()


# ---------------------------------------------------------------------------
# Job definition
# ---------------------------------------------------------------------------


@dataclass
class CronJobPayload:
    """What the handler should do. Opaque to the scheduler."""

    action: str
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "parameters": copy.deepcopy(self.parameters)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CronJobPayload:
        return cls(action=data["action"], parameters=dict(data.get("parameters") or {}))


@dataclass
class CronJob:
    """A recurring job definition.

    Invariants:
        - ``next_run_at`` is set iff ``status`` is ``ACTIVE``
        - ``COMPLETED`` implies ``max_runs`` is set and ``run_count >= max_runs``
        - ``run_count`` only grows, and only through execution
        - ``max_runs`` is ``None`` or strictly positive
    """

    id: str
    name: str
    schedule: str
    timezone: str
    payload: CronJobPayload
    created_at: datetime
    updated_at: datetime
    description: str = ""
    status: JobStatus = JobStatus.ACTIVE
    created_by: str = "agent"
    last_run_at: datetime | None = None
    next_run_at: datetime | None = None
    run_count: int = 0
    max_runs: int | None = None
    tags: list[str] = field(default_factory=list)

    def copy(self) -> CronJob:
        """Return an owned deep copy (never hand out cached instances)."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible document."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "schedule": self.schedule,
            "timezone": self.timezone,
            "status": self.status.value,
            "created_by": self.created_by,
            "created_at": to_iso8601(self.created_at),
            "updated_at": to_iso8601(self.updated_at),
            "last_run_at": to_iso8601(self.last_run_at),
            "next_run_at": to_iso8601(self.next_run_at),
            "run_count": self.run_count,
            "max_runs": self.max_runs,
            "payload": self.payload.to_dict(),
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CronJob:
        """Deserialize a document written by ``to_dict``.

        Raises:
            KeyError: A required key is missing
            ValueError: A timestamp or status value is malformed
        """
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            schedule=data["schedule"],
            timezone=data["timezone"],
            status=JobStatus(data.get("status", JobStatus.ACTIVE.value)),
            created_by=data.get("created_by", "agent"),
            created_at=from_iso8601(data["created_at"]),
            updated_at=from_iso8601(data["updated_at"]),
            last_run_at=from_iso8601(data.get("last_run_at")),
            next_run_at=from_iso8601(data.get("next_run_at")),
            run_count=int(data.get("run_count", 0)),
            max_runs=data.get("max_runs"),
            payload=CronJobPayload.from_dict(data["payload"]),
            tags=list(data.get("tags") or []),
        )


# ---------------------------------------------------------------------------
# Create/Update DTOs
# ---------------------------------------------------------------------------


@dataclass
class CronJobCreate:
    """DTO for creating a new cron job."""

    name: str
    schedule: str
    payload: CronJobPayload
    description: str = ""
    timezone: str | None = None  # None = scheduler default
    max_runs: int | None = None
    tags: list[str] | None = None
    id: str | None = None  # None = generated
    created_by: str = "agent"


@dataclass
class CronJobUpdate:
    """DTO for updating a cron job.

    Fields left as ``UNSET`` keep their current value; ``max_runs=None``
    explicitly removes the run cap.
    """

    name: str | UnsetType = UNSET
    description: str | UnsetType = UNSET
    schedule: str | UnsetType = UNSET
    timezone: str | UnsetType = UNSET
    status: JobStatus | UnsetType = UNSET
    payload: CronJobPayload | UnsetType = UNSET
    max_runs: int | None | UnsetType = UNSET
    tags: list[str] | UnsetType = UNSET


def normalize_tags(tags: list[str] | None) -> list[str]:
    """Trim, drop empties and de-duplicate tags, keeping first-seen order."""
    if not tags:
        return []
    seen: dict[str, None] = {}
    for tag in tags:
        cleaned = tag.strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)
