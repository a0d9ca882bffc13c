"""Scheduling package for cronspine.

Manifesto:
    Recurring jobs need more than ``time.sleep()`` in a loop.  They need
    exact cron semantics evaluated in the job's own timezone, state that
    survives a process restart, ticks that never overlap, a bound on how
    often handlers may fire, and a record of every attempt.  This package
    provides all of it behind a pluggable timing backend.

┌──────────────────────────────────────────────────────────────────────────────┐
│  CRONSPINE SCHEDULER                                                          │
│                                                                               │
│  Quick Start:                                                                 │
│  ┌──────────────────────────────────────────────────────────────────────┐    │
│  │   from cronspine.core.scheduling import (                            │    │
│  │       CronJobCreate, CronJobPayload, create_scheduler,               │    │
│  │   )                                                                  │    │
│  │                                                                      │    │
│  │   async def handle(job):                                             │    │
│  │       await run_task(job.payload.action, job.payload.parameters)     │    │
│  │                                                                      │    │
│  │   runtime = create_scheduler(handle)                                 │    │
│  │   runtime.scheduler.create(CronJobCreate(                            │    │
│  │       name="daily-report",                                           │    │
│  │       schedule="0 8 * * *",                                          │    │
│  │       payload=CronJobPayload("report.generate"),                     │    │
│  │   ))                                                                 │    │
│  │   runtime.scheduler.start()                                          │    │
│  └──────────────────────────────────────────────────────────────────────┘    │
│                                                                               │
│  Architecture:                                                                │
│                                                                               │
│   ┌──────────────┐   tick()   ┌──────────────────────────────┐               │
│   │  Backend     │ ─────────► │  CronScheduler               │               │
│   │  (timing)    │            │   cache ◄──► CronStore        │               │
│   └──────────────┘            │        │                     │               │
│                               │        ▼                     │               │
│                               │   CronExecutor               │               │
│                               │   ├── CronRateLimiter        │               │
│                               │   ├── handler                │               │
│                               │   └── CronAuditLog           │               │
│                               └──────────────────────────────┘               │
│                                                                               │
│   ScheduleTool ──► evaluate_cron_policy ──► CronScheduler (CRUD)             │
└──────────────────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ Calling the handler directly from a tick without the executor
    ✅ ``on_execute=executor.execute`` so every attempt is rate limited and audited
    ❌ Pointing two running schedulers at one store
    ✅ One scheduler per store; other processes use the store read-only
    ❌ Constructing the components individually in application code
    ✅ ``create_scheduler(handler, settings)`` factory function

Tags:
    cronspine, scheduling, cron, timezone, rate-limit, audit,
    beat-as-poller, pluggable-backends, thread

Doc-Types:
    package-overview, architecture-map, module-index
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from cronspine.core.logging import configure_logging
from cronspine.core.settings import CronSettings
from cronspine.core.timestamps import utc_now

# Audit
from .audit import (
    AuditEntry,
    AuditEventType,
    CronAuditLog,
    InMemoryCronAuditLog,
    parse_event_type,
)

# Executor
from .executor import CronExecutor, JobHandler

# Expression
from .expression import (
    CronExpression,
    TimeParts,
    describe,
    get_time_parts,
    is_job_due,
    parse_cron_expression,
    validate_cron_expression,
    validate_timezone,
    weekday_to_number,
)

# Models
from .models import (
    UNSET,
    CronJob,
    CronJobCreate,
    CronJobPayload,
    CronJobUpdate,
    JobStatus,
    UnsetType,
)

# Next run
from .next_run import MAX_NEXT_RUN_SEARCH_MINUTES, compute_next_run, iter_next_runs

# Policy
from .policy import (
    CronPolicyResult,
    evaluate_cron_policy,
    is_billing_action,
    is_recursive_cron_action,
)

# Protocol
from .protocol import BackendHealth, SchedulerBackend

# Rate limiting
from .rate_limit import CronRateLimiter, RateLimitUsage

# Scheduler
from .scheduler import CronScheduler, SchedulerHealth, SchedulerStats

# Store
from .store import CronStore, InMemoryCronStore, LocalCronStore

# Backends
from .thread_backend import ThreadSchedulerBackend

# Tool
from .tool import ApprovalRequest, ScheduleTool, ScheduleToolAction, ScheduleToolResult


@dataclass
class CronRuntime:
    """A fully wired scheduler and the components around it."""

    settings: CronSettings
    store: CronStore
    rate_limiter: CronRateLimiter
    audit_log: CronAuditLog
    executor: CronExecutor
    scheduler: CronScheduler

    def schedule_tool(self, on_approval_required=None) -> ScheduleTool:
        """A ``ScheduleTool`` over this runtime that audits lifecycle events."""
        return ScheduleTool(
            self.scheduler,
            on_approval_required=on_approval_required,
            executor=self.executor,
        )


def create_scheduler(
    handler: JobHandler,
    settings: CronSettings | None = None,
    store: CronStore | None = None,
    audit_log: CronAuditLog | None = None,
    backend: SchedulerBackend | None = None,
    now: Callable[[], datetime] = utc_now,
    configure_logs: bool = True,
) -> CronRuntime:
    """Factory function to create a complete, wired scheduler.

    This is the recommended way to create a scheduler: every execution goes
    through a rate-limited, audited ``CronExecutor``.

    Args:
        handler: Async callable run for each due job
        settings: Configuration (default: ``CronSettings()`` from the environment)
        store: Job store (default: ``LocalCronStore(settings.store_dir)``)
        audit_log: Audit sink (default: in-memory, bounded by ``audit_max_entries``)
        backend: Timing backend (default: ``ThreadSchedulerBackend``)
        now: Clock shared by the scheduler and the executor
        configure_logs: Set up structlog from ``log_level`` and ``json_logs``;
            pass False when the host application configures logging itself

    Returns:
        CronRuntime bundle; call ``runtime.scheduler.start()`` to begin ticking

    Example:
        >>> runtime = create_scheduler(handle, CronSettings(tick_interval_ms=500))
        >>> runtime.scheduler.start()
    """
    settings = settings or CronSettings()
    if configure_logs:
        configure_logging(level=settings.log_level, json_format=settings.json_logs)
    store = store if store is not None else LocalCronStore(settings.store_dir)
    audit_log = audit_log if audit_log is not None else InMemoryCronAuditLog(
        max_entries=settings.audit_max_entries
    )
    rate_limiter = CronRateLimiter(
        max_executions_per_minute=settings.max_executions_per_minute,
        max_executions_per_hour=settings.max_executions_per_hour,
    )
    executor = CronExecutor(rate_limiter=rate_limiter, audit_log=audit_log, handler=handler, now=now)
    scheduler = CronScheduler(
        store=store,
        on_execute=executor.execute,
        tick_interval_ms=settings.tick_interval_ms,
        now=now,
        backend=backend,
        default_timezone=settings.default_timezone,
    )
    return CronRuntime(
        settings=settings,
        store=store,
        rate_limiter=rate_limiter,
        audit_log=audit_log,
        executor=executor,
        scheduler=scheduler,
    )


__all__ = [
    # Models
    "CronJob",
    "CronJobCreate",
    "CronJobPayload",
    "CronJobUpdate",
    "JobStatus",
    "UNSET",
    "UnsetType",
    # Expression
    "CronExpression",
    "TimeParts",
    "describe",
    "get_time_parts",
    "is_job_due",
    "parse_cron_expression",
    "validate_cron_expression",
    "validate_timezone",
    "weekday_to_number",
    # Next run
    "MAX_NEXT_RUN_SEARCH_MINUTES",
    "compute_next_run",
    "iter_next_runs",
    # Rate limiting
    "CronRateLimiter",
    "RateLimitUsage",
    # Audit
    "AuditEntry",
    "AuditEventType",
    "CronAuditLog",
    "InMemoryCronAuditLog",
    "parse_event_type",
    # Store
    "CronStore",
    "InMemoryCronStore",
    "LocalCronStore",
    # Executor
    "CronExecutor",
    "JobHandler",
    # Protocol / backends
    "BackendHealth",
    "SchedulerBackend",
    "ThreadSchedulerBackend",
    # Scheduler
    "CronScheduler",
    "SchedulerHealth",
    "SchedulerStats",
    # Policy
    "CronPolicyResult",
    "evaluate_cron_policy",
    "is_billing_action",
    "is_recursive_cron_action",
    # Tool
    "ApprovalRequest",
    "ScheduleTool",
    "ScheduleToolAction",
    "ScheduleToolResult",
    # Factory
    "CronRuntime",
    "create_scheduler",
]
