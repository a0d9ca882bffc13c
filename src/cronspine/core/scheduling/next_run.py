"""Next-run calculator.

Finds the earliest whole minute strictly after a reference instant at which
a cron expression matches in the job's timezone, by probing one minute at a
time.  Linear probing trades CPU for correctness: day-of-month/day-of-week
interplay and DST shifts make closed-form derivation error-prone, while a
bounded minute scan is cheap at minute granularity.

The scan is capped at ``MAX_NEXT_RUN_SEARCH_MINUTES`` (366 days).  Running
out of horizon is a hard failure, which is how syntactically valid but
unsatisfiable expressions (``0 0 30 2 *``) are reported.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timedelta

from cronspine.core.errors import NextRunComputationError
from cronspine.core.result import Err, Ok, Result
from cronspine.core.scheduling.expression import (
    local_time_parts,
    parse_cron_expression,
    validate_timezone,
)
from cronspine.core.timestamps import ensure_utc

MAX_NEXT_RUN_SEARCH_MINUTES = 366 * 24 * 60

_ONE_MINUTE = timedelta(minutes=1)


def first_candidate(from_: datetime) -> datetime:
    """``from_`` truncated to the minute plus one minute (always strictly later)."""
    return ensure_utc(from_).replace(second=0, microsecond=0) + _ONE_MINUTE


def compute_next_run(
    schedule: str,
    timezone: str,
    from_: datetime,
    *,
    max_minutes: int = MAX_NEXT_RUN_SEARCH_MINUTES,
) -> Result[datetime]:
    """Compute the next matching instant (aware UTC) strictly after ``from_``.

    Args:
        schedule: 5-field cron expression
        timezone: IANA zone the fields are evaluated in
        from_: Reference instant; naive values are taken as UTC
        max_minutes: Search horizon in minutes

    Returns:
        Ok(next run) or Err with ``InvalidCronExpressionError``,
        ``InvalidTimezoneError``, ``TimePartsError`` or
        ``NextRunComputationError``

    Example:
        >>> from datetime import UTC, datetime
        >>> compute_next_run("0 9 * * *", "UTC", datetime(2026, 2, 11, 10, tzinfo=UTC)).unwrap()
        datetime.datetime(2026, 2, 12, 9, 0, tzinfo=datetime.timezone.utc)
    """
    parsed = parse_cron_expression(schedule)
    if parsed.is_err():
        return Err(parsed.error)

    zone = validate_timezone(timezone)
    if zone.is_err():
        return Err(zone.error)

    expression = parsed.value
    candidate = first_candidate(from_)
    for _ in range(max_minutes):
        parts = local_time_parts(candidate, zone.value)
        if parts.is_err():
            return Err(parts.error)
        if expression.matches(parts.value):
            return Ok(candidate)
        candidate += _ONE_MINUTE

    return Err(NextRunComputationError(
        f"Unable to compute next cron execution time for {schedule!r} in {timezone} "
        f"within {max_minutes} minutes"
    ))


def iter_next_runs(
    schedule: str,
    timezone: str,
    from_: datetime,
    count: int,
) -> Iterator[Result[datetime]]:
    """Yield the next ``count`` run instants; stops after the first Err."""
    current = from_
    for _ in range(count):
        result = compute_next_run(schedule, timezone, current)
        yield result
        if result.is_err():
            return
        current = result.value


__all__ = [
    "MAX_NEXT_RUN_SEARCH_MINUTES",
    "compute_next_run",
    "first_candidate",
    "iter_next_runs",
]
