"""
Job id generation and timestamp utilities (stdlib-only).

Manifesto:
    Job documents cross process restarts as JSON, so every timestamp must
    round-trip exactly. This module is the single place that decides the
    wire format: UTC, millisecond precision, ``Z`` suffix.

    - **utc_now():** Timezone-aware UTC datetime
    - **to_iso8601() / from_iso8601():** Serialization round-trip
    - **to_epoch_ms():** Millisecond clock for rate limiting and durations
    - **generate_job_id():** Opaque unique job id

Tags:
    timestamps, utc, datetime, cronspine, stdlib-only, serialization

Doc-Types:
    - API Reference
    - Utility Documentation

STDLIB ONLY - NO PYDANTIC.
"""

import uuid
from datetime import UTC, datetime, timedelta

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string (``2026-02-12T09:00:00.000Z``)."""
    if dt is None:
        return None
    dt = ensure_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to an aware UTC datetime."""
    if s is None:
        return None
    return ensure_utc(datetime.fromisoformat(s))


def to_epoch_ms(dt: datetime) -> int:
    """Milliseconds since the Unix epoch."""
    return (ensure_utc(dt) - _EPOCH) // _ONE_MS


def generate_job_id() -> str:
    """Generate an opaque unique job id."""
    return str(uuid.uuid4())
