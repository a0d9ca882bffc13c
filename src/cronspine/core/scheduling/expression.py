"""Cron expression evaluator.

Manifesto:
    Cron field semantics are subtle enough (wildcards with steps, inclusive
    ranges, lists, Sunday being both 0 and 7) that parsing, validation and
    matching must share one implementation.  An expression is parsed once
    into per-field matchers; matching a timezone-local time-part tuple is
    then a handful of set lookups.

Tags:
    cronspine, scheduling, cron, parser, timezone

Doc-Types:
    api-reference


┌──────────────────────────────────────────────────────────────────────────────┐
│  CRON EXPRESSION                                                              │
│                                                                               │
│   "*/15  9-17  *  1,4,7,10  1-5"                                              │
│     │     │    │     │       │                                                │
│     │     │    │     │       └── day-of-week  [0,7]  (0 and 7 = Sunday)       │
│     │     │    │     └────────── month        [1,12]                          │
│     │     │    └──────────────── day-of-month [1,31]                          │
│     │     └───────────────────── hour         [0,23]                          │
│     └─────────────────────────── minute       [0,59]                          │
│                                                                               │
│  Segment forms (comma-separated, any segment may match):                     │
│   *        every value                                                        │
│   */n      values where value % n == 0                                        │
│   a        exactly a                                                          │
│   a-b      a..b inclusive (a <= b)                                            │
│   a-b/n    a..b where (value - a) % n == 0                                    │
│                                                                               │
│  All five fields must match (day-of-month AND day-of-week).                   │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cronspine.core.errors import (
    InvalidCronExpressionError,
    InvalidTimezoneError,
    InvalidWeekdayError,
    TimePartsError,
)
from cronspine.core.result import Err, Ok, Result
from cronspine.core.scheduling.models import CronJob, JobStatus
from cronspine.core.timestamps import ensure_utc

_INTEGER = re.compile(r"[0-9]+")

_WEEKDAY_PREFIXES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


@dataclass(frozen=True)
class CronFieldDef:
    """Name and inclusive bounds of one cron field."""

    name: str
    min_value: int
    max_value: int
    # Raw value that also denotes another value (day-of-week 7 -> Sunday 0)
    aliases: tuple[tuple[int, int], ...] = ()


MINUTE = CronFieldDef("minute", 0, 59)
HOUR = CronFieldDef("hour", 0, 23)
DAY_OF_MONTH = CronFieldDef("day-of-month", 1, 31)
MONTH = CronFieldDef("month", 1, 12)
DAY_OF_WEEK = CronFieldDef("day-of-week", 0, 7, aliases=((0, 7),))

CRON_FIELDS = (MINUTE, HOUR, DAY_OF_MONTH, MONTH, DAY_OF_WEEK)


@dataclass(frozen=True)
class FieldSegment:
    """One comma-separated piece of a cron field."""

    start: int
    end: int | None  # None for wildcards
    step: int = 1

    @property
    def wildcard(self) -> bool:
        return self.end is None

    def contains(self, value: int) -> bool:
        if value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return (value - self.start) % self.step == 0


@dataclass(frozen=True)
class CronField:
    """Parsed cron field: its segments plus the precomputed set of matching values."""

    field_def: CronFieldDef
    source: str
    segments: tuple[FieldSegment, ...]
    allowed: frozenset[int]

    def matches(self, value: int) -> bool:
        return value in self.allowed


@dataclass(frozen=True)
class TimeParts:
    """Timezone-local calendar fields of an instant."""

    minute: int
    hour: int
    day_of_month: int
    month: int
    day_of_week: int  # 0 = Sunday


@dataclass(frozen=True)
class CronExpression:
    """A parsed 5-field cron expression."""

    expression: str
    minute: CronField
    hour: CronField
    day_of_month: CronField
    month: CronField
    day_of_week: CronField

    def matches(self, parts: TimeParts) -> bool:
        return (
            self.minute.matches(parts.minute)
            and self.hour.matches(parts.hour)
            and self.day_of_month.matches(parts.day_of_month)
            and self.month.matches(parts.month)
            and self.day_of_week.matches(parts.day_of_week)
        )

    def __str__(self) -> str:
        return self.expression


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_int(text: str, what: str) -> Result[int]:
    if not _INTEGER.fullmatch(text):
        return Err(InvalidCronExpressionError(f"Cron {what} must be an integer: {text!r}"))
    return Ok(int(text))


def parse_field_segment(segment: str) -> Result[FieldSegment]:
    """Parse one segment (``*``, ``*/n``, ``a``, ``a/n``, ``a-b``, ``a-b/n``)."""
    if not segment:
        return Err(InvalidCronExpressionError("Cron field segment is empty"))

    range_part = segment
    step = 1
    if "/" in segment:
        pieces = segment.split("/")
        if len(pieces) != 2 or not pieces[0] or not pieces[1]:
            return Err(InvalidCronExpressionError(f"Invalid step expression: {segment!r}"))
        range_part = pieces[0]
        if not _INTEGER.fullmatch(pieces[1]) or int(pieces[1]) <= 0:
            return Err(InvalidCronExpressionError("Cron step must be a positive integer"))
        step = int(pieces[1])

    if range_part == "*":
        return Ok(FieldSegment(start=0, end=None, step=step))

    if "-" in range_part:
        pieces = range_part.split("-")
        if len(pieces) != 2 or not pieces[0] or not pieces[1]:
            return Err(InvalidCronExpressionError(f"Invalid range expression: {range_part!r}"))
        start = _parse_int(pieces[0], "range")
        if start.is_err():
            return Err(start.error)
        end = _parse_int(pieces[1], "range")
        if end.is_err():
            return Err(end.error)
        return Ok(FieldSegment(start=start.value, end=end.value, step=step))

    value = _parse_int(range_part, "value")
    if value.is_err():
        return Err(value.error)
    return Ok(FieldSegment(start=value.value, end=value.value, step=step))


def _check_bounds(segment: FieldSegment, field_def: CronFieldDef) -> Result[None]:
    if segment.wildcard:
        return Ok(None)
    if segment.start < field_def.min_value or segment.end > field_def.max_value:
        return Err(InvalidCronExpressionError(
            f"Cron {field_def.name} value out of range [{field_def.min_value}, {field_def.max_value}]"
        ))
    if segment.start > segment.end:
        return Err(InvalidCronExpressionError("Cron range start must be <= end"))
    return Ok(None)


def parse_cron_field(source: str, field_def: CronFieldDef) -> Result[CronField]:
    """Parse and validate one field against its bounds."""
    segments: list[FieldSegment] = []
    for raw in source.split(","):
        parsed = parse_field_segment(raw.strip())
        if parsed.is_err():
            return Err(parsed.error)
        checked = _check_bounds(parsed.value, field_def)
        if checked.is_err():
            return Err(checked.error)
        segments.append(parsed.value)

    allowed = set()
    for value in range(field_def.min_value, field_def.max_value + 1):
        if any(segment.contains(value) for segment in segments):
            allowed.add(value)
    for canonical, alias in field_def.aliases:
        # Fold the alias onto its canonical value; extracted time parts never carry it.
        if alias in allowed:
            allowed.add(canonical)
        allowed.discard(alias)

    return Ok(CronField(field_def=field_def, source=source, segments=tuple(segments), allowed=frozenset(allowed)))


def parse_cron_expression(expression: str) -> Result[CronExpression]:
    """Parse a 5-field cron expression.

    Every failure is an ``InvalidCronExpressionError`` (code
    ``CRON_EXPRESSION_INVALID``) naming the offending field; the
    segment-level problem is chained as its cause.

    Example:
        >>> parsed = parse_cron_expression("0 9 * * 1-5")
        >>> parsed.unwrap().hour.allowed
        frozenset({9})
    """
    fields = expression.strip().split()
    if len(fields) != len(CRON_FIELDS):
        return Err(InvalidCronExpressionError(
            f"Cron expression must contain five fields, got {len(fields)}",
            expression=expression,
        ))

    parsed: list[CronField] = []
    for source, field_def in zip(fields, CRON_FIELDS, strict=True):
        result = parse_cron_field(source, field_def)
        if result.is_err():
            return Err(InvalidCronExpressionError(
                f"Invalid {field_def.name} field in cron expression: {result.error}",
                expression=expression,
                field=field_def.name,
                cause=result.error,
            ))
        parsed.append(result.value)

    return Ok(CronExpression(" ".join(fields), *parsed))


def validate_cron_expression(expression: str) -> Result[None]:
    """Validate syntax and bounds without keeping the parsed form."""
    return parse_cron_expression(expression).map(lambda _: None)


# ---------------------------------------------------------------------------
# Timezones and time parts
# ---------------------------------------------------------------------------


def validate_timezone(timezone: str) -> Result[ZoneInfo]:
    """Resolve an IANA timezone name."""
    if not timezone or not timezone.strip():
        return Err(InvalidTimezoneError(timezone))
    try:
        return Ok(ZoneInfo(timezone))
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        return Err(InvalidTimezoneError(timezone, cause=e))


def weekday_to_number(name: str) -> Result[int]:
    """Map an abbreviated weekday name to 0 (Sunday) .. 6 (Saturday).

    Matching is a case-insensitive prefix match; anything else is an
    ``InvalidWeekdayError`` rather than a silent default.
    """
    normalized = name.strip().lower()
    for number, prefix in enumerate(_WEEKDAY_PREFIXES):
        if normalized.startswith(prefix):
            return Ok(number)
    return Err(InvalidWeekdayError(name))


def local_time_parts(instant: datetime, zone: ZoneInfo) -> Result[TimeParts]:
    """Extract calendar fields of ``instant`` as seen in ``zone``."""
    try:
        local = ensure_utc(instant).astimezone(zone)
    except (OverflowError, ValueError) as e:
        return Err(TimePartsError("Failed to get date parts for cron evaluation", cause=e))

    # English weekday name from the calendar; strftime("%a") would follow LC_TIME.
    weekday = weekday_to_number(_WEEKDAY_PREFIXES[local.isoweekday() % 7])
    if weekday.is_err():
        return Err(weekday.error)

    return Ok(TimeParts(
        minute=local.minute,
        hour=local.hour,
        day_of_month=local.day,
        month=local.month,
        day_of_week=weekday.value,
    ))


def get_time_parts(instant: datetime, timezone: str) -> Result[TimeParts]:
    """Resolve ``timezone`` and extract the local calendar fields of ``instant``."""
    zone = validate_timezone(timezone)
    if zone.is_err():
        return Err(zone.error)
    return local_time_parts(instant, zone.value)


def is_job_due(job: CronJob, now: datetime) -> bool:
    """Whether ``job`` is active and its expression matches ``now`` in its zone."""
    if job.status != JobStatus.ACTIVE:
        return False

    parsed = parse_cron_expression(job.schedule)
    if parsed.is_err():
        return False

    parts = get_time_parts(now, job.timezone)
    if parts.is_err():
        return False

    return parsed.value.matches(parts.value)


def describe(expression: str) -> str:
    """Short human-readable description of an expression."""
    fields = expression.strip().split()
    if len(fields) != len(CRON_FIELDS):
        return "Invalid cron expression"

    minute, hour, day, month, dow = fields
    desc = []
    if minute == "*" and hour == "*":
        desc.append("Every minute")
    elif minute.startswith("*/") and hour == "*":
        desc.append(f"Every {minute[2:]} minutes")
    elif minute == "0" and hour == "*":
        desc.append("Every hour")
    elif hour == "*":
        desc.append(f"At minute {minute} of every hour")
    elif minute.isdigit() and hour.isdigit():
        desc.append(f"At {hour.zfill(2)}:{minute.zfill(2)}")
    else:
        desc.append(f"At minute {minute} past hour {hour}")
    if day != "*":
        desc.append(f"on day {day}")
    if month != "*":
        desc.append(f"in month {month}")
    if dow != "*":
        desc.append(f"on day of week {dow}")
    return " ".join(desc)


__all__ = [
    "CRON_FIELDS",
    "CronExpression",
    "CronField",
    "CronFieldDef",
    "FieldSegment",
    "TimeParts",
    "parse_field_segment",
    "parse_cron_field",
    "parse_cron_expression",
    "validate_cron_expression",
    "validate_timezone",
    "weekday_to_number",
    "local_time_parts",
    "get_time_parts",
    "is_job_due",
    "describe",
]
