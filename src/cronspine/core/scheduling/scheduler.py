"""Cron scheduler - job lifecycle and tick processing.

Manifesto:
    The scheduler owns the job state machine.  It combines a store (the
    authoritative copy), a timing backend (WHEN to look) and an execution
    callback (WHAT to run) into one object whose public operations never
    raise: CRUD calls return ``Result`` values and a tick swallows and
    records every per-job failure so one bad job cannot stall the others.

Tags:
    cronspine, scheduling, orchestrator, beat-as-poller, state-machine

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  CRON SCHEDULER                                                               │
│                                                                               │
│   Dependencies:                                                               │
│   ┌─────────────────┐  ┌─────────────────┐  ┌─────────────────┐              │
│   │  Backend        │  │  CronStore      │  │  on_execute     │              │
│   │  (timing)       │  │  (authoritative)│  │  (handler)      │              │
│   └────────┬────────┘  └────────┬────────┘  └────────┬────────┘              │
│            ▼                    ▼                    ▼                        │
│   ┌────────────────────────────────────────────────────────────┐             │
│   │                         tick()                             │             │
│   │   skip if a tick is already in flight                      │             │
│   │   now = clock()  (one snapshot per tick)                   │             │
│   │   for each cached job with next_run_at <= now:             │             │
│   │      ├── await on_execute(copy)                            │             │
│   │      ├── transition (see below)                            │             │
│   │      ├── store.save(next)   ── Err ──► cache untouched     │             │
│   │      └── cache[id] = next                                  │             │
│   └────────────────────────────────────────────────────────────┘             │
│                                                                               │
│   Job states:                                                                 │
│                                                                               │
│        ┌────────── update(status) ──────────┐                                 │
│        ▼                                     │                                │
│     ACTIVE ──── update(status=paused) ───► PAUSED                             │
│        │                                                                      │
│        ├── handler ok, run_count >= max_runs ──► COMPLETED                    │
│        ├── handler raised / rate limited     ──► FAILED                       │
│        └── handler ok, no next run found     ──► FAILED                       │
│                                                                               │
│   next_run_at is set exactly when the job is ACTIVE.                         │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from cronspine.core.errors import JobNotFoundError, ValidationError
from cronspine.core.logging import get_logger
from cronspine.core.result import Err, Ok, Result
from cronspine.core.scheduling.expression import validate_cron_expression, validate_timezone
from cronspine.core.scheduling.models import (
    UNSET,
    CronJob,
    CronJobCreate,
    CronJobPayload,
    CronJobUpdate,
    JobStatus,
    normalize_tags,
)
from cronspine.core.scheduling.next_run import compute_next_run
from cronspine.core.scheduling.protocol import BackendHealth, SchedulerBackend
from cronspine.core.scheduling.store import CronStore
from cronspine.core.scheduling.thread_backend import ThreadSchedulerBackend
from cronspine.core.timestamps import ensure_utc, generate_job_id, utc_now

logger = get_logger(__name__)

DEFAULT_TICK_INTERVAL_MS = 1_000

ExecuteCallback = Callable[[CronJob], Awaitable[None]]


@dataclass
class SchedulerStats:
    """Counters for scheduler activity since start (or the last reset)."""

    tick_count: int = 0
    ticks_skipped: int = 0
    jobs_executed: int = 0
    jobs_failed: int = 0
    jobs_skipped: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None


@dataclass
class SchedulerHealth:
    """Health status for the scheduler."""

    healthy: bool
    backend: BackendHealth | dict
    jobs_cached: int = 0
    jobs_active: int = 0
    stats: SchedulerStats = field(default_factory=SchedulerStats)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "backend": self.backend.to_dict() if isinstance(self.backend, BackendHealth) else self.backend,
            "jobs_cached": self.jobs_cached,
            "jobs_active": self.jobs_active,
            "stats": {
                "tick_count": self.stats.tick_count,
                "ticks_skipped": self.stats.ticks_skipped,
                "jobs_executed": self.stats.jobs_executed,
                "jobs_failed": self.stats.jobs_failed,
                "jobs_skipped": self.stats.jobs_skipped,
                "last_error": self.stats.last_error,
            },
        }


class CronScheduler:
    """Recurring-job scheduler - beat-as-poller pattern.

    A single scheduler should own a given store; two schedulers ticking
    over the same store are not coordinated and may both run a job.

    Example:
        >>> scheduler = CronScheduler(
        ...     store=LocalCronStore("~/.cronspine/jobs"),
        ...     on_execute=executor.execute,
        ... )
        >>> scheduler.create(CronJobCreate(
        ...     name="morning-briefing",
        ...     schedule="0 8 * * 1-5",
        ...     payload=CronJobPayload("briefing.send"),
        ...     timezone="Europe/Berlin",
        ... ))
        >>> scheduler.start()
        >>> # ... later ...
        >>> scheduler.stop()
    """

    def __init__(
        self,
        store: CronStore,
        on_execute: ExecuteCallback,
        tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
        now: Callable[[], datetime] = utc_now,
        backend: SchedulerBackend | None = None,
        default_timezone: str = "UTC",
    ) -> None:
        """Initialize the scheduler.

        Args:
            store: Authoritative job persistence
            on_execute: Async callback run for each due job; raising marks it failed
            tick_interval_ms: How often the backend ticks
            now: Clock, injectable for tests
            backend: Timing backend (default: ThreadSchedulerBackend)
            default_timezone: Zone for jobs created without one
        """
        if tick_interval_ms <= 0:
            raise ValueError(f"tick_interval_ms must be positive, got {tick_interval_ms}")

        self.store = store
        self.on_execute = on_execute
        self.tick_interval_ms = tick_interval_ms
        self.backend: SchedulerBackend = backend or ThreadSchedulerBackend()
        self.default_timezone = default_timezone
        self._now = now

        self._jobs: dict[str, CronJob] = {}
        # Guards the cache and every store-then-cache write sequence.
        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._stats = SchedulerStats()
        self._running = False

    # === Lifecycle ===

    def start(self) -> Result[None]:
        """Load every job from the store and begin ticking (idempotent)."""
        if self._running:
            return Ok(None)

        loaded = self._reload_cache()
        if loaded.is_err():
            logger.error("cron_scheduler_start_failed", error=str(loaded.error))
            return Err(loaded.error)

        logger.info(
            "cron_scheduler_starting",
            backend=self.backend.name,
            tick_interval_ms=self.tick_interval_ms,
            jobs=len(loaded.value),
        )
        self._running = True
        self.backend.start(self.tick, self.tick_interval_ms / 1000)
        return Ok(None)

    def stop(self) -> Result[None]:
        """Stop ticking; returns after the in-flight tick (if any) has finished."""
        was_running = self._running
        self._running = False
        self.backend.stop()
        if was_running:
            logger.info("cron_scheduler_stopped")
        return Ok(None)

    @property
    def is_running(self) -> bool:
        return self._running

    # === CRUD ===

    def create(self, data: CronJobCreate) -> Result[CronJob]:
        """Validate, schedule and persist a new job."""
        now = ensure_utc(self._now())
        timezone = data.timezone if data.timezone is not None else self.default_timezone

        job = CronJob(
            id=data.id or generate_job_id(),
            name=(data.name or "").strip(),
            description=(data.description or "").strip(),
            schedule=(data.schedule or "").strip(),
            timezone=timezone,
            payload=CronJobPayload(
                action=data.payload.action,
                parameters=dict(data.payload.parameters),
            ),
            created_at=now,
            updated_at=now,
            status=JobStatus.ACTIVE,
            created_by=data.created_by,
            max_runs=data.max_runs,
            tags=normalize_tags(data.tags),
        )

        validated = _validate_job(job)
        if validated.is_err():
            return Err(validated.error)

        next_run = compute_next_run(job.schedule, job.timezone, now)
        if next_run.is_err():
            return Err(next_run.error)
        job.next_run_at = next_run.value

        with self._lock:
            if data.id is not None:
                existing = self._lookup(data.id)
                if existing.is_err():
                    return Err(existing.error)
                if existing.value is not None:
                    return Err(ValidationError(
                        f"Cron job already exists: {data.id}",
                        code="CRON_JOB_ID_EXISTS",
                    ).with_context(job_id=data.id))

            saved = self.store.save(job)
            if saved.is_err():
                return Err(saved.error)
            self._jobs[job.id] = job

        logger.info(
            "cron_job_created",
            job_id=job.id,
            job_name=job.name,
            schedule=job.schedule,
            timezone=job.timezone,
            next_run_at=job.next_run_at.isoformat(),
        )
        return Ok(job.copy())

    def update(self, job_id: str, changes: CronJobUpdate) -> Result[CronJob]:
        """Merge ``changes`` into a job, re-validate and reschedule it."""
        now = ensure_utc(self._now())

        while True:
            with self._lock:
                existing = self._lookup(job_id)
                if existing.is_err():
                    return Err(existing.error)
                if existing.value is None:
                    return Err(JobNotFoundError(job_id))
                base = existing.value

                merged = _merge_update(base, changes, now)
                if merged.is_err():
                    return Err(merged.error)
                updated = merged.value

                validated = _validate_job(updated)
                if validated.is_err():
                    return Err(validated.error)

            # The search can take seconds for sparse schedules; ticks keep running meanwhile.
            if updated.status == JobStatus.ACTIVE:
                next_run = compute_next_run(updated.schedule, updated.timezone, now)
                if next_run.is_err():
                    return Err(next_run.error)
                updated.next_run_at = next_run.value
            else:
                updated.next_run_at = None

            with self._lock:
                if self._jobs.get(job_id) is not base:
                    # Changed or removed while computing; merge again onto the latest version.
                    continue
                saved = self.store.save(updated)
                if saved.is_err():
                    return Err(saved.error)
                self._jobs[updated.id] = updated
                break

        logger.info(
            "cron_job_updated",
            job_id=updated.id,
            status=updated.status.value,
            next_run_at=updated.next_run_at.isoformat() if updated.next_run_at else None,
        )
        return Ok(updated.copy())

    def remove(self, job_id: str) -> Result[None]:
        """Delete a job from the store and the cache; missing jobs are fine."""
        with self._lock:
            deleted = self.store.delete(job_id)
            if deleted.is_err():
                return Err(deleted.error)
            self._jobs.pop(job_id, None)

        logger.info("cron_job_removed", job_id=job_id)
        return Ok(None)

    def get_job(self, job_id: str) -> Result[CronJob | None]:
        """Fetch a job from the cache, falling back to the store."""
        with self._lock:
            found = self._lookup(job_id)
        return found.map(lambda job: job.copy() if job is not None else None)

    def list_jobs(self) -> Result[list[CronJob]]:
        """Reload every job from the store (replacing the cache) and return copies."""
        loaded = self._reload_cache()
        return loaded.map(lambda jobs: [job.copy() for job in jobs])

    # === Tick Processing ===

    async def tick(self) -> None:
        """Run every due job once.

        Called by the backend at each interval.  Never raises; a tick that
        finds another tick still running returns immediately.
        """
        if not self._tick_lock.acquire(blocking=False):
            self._stats.ticks_skipped += 1
            logger.debug("cron_tick_skipped_in_flight")
            return

        try:
            if not self._running:
                return
            await self._run_tick()
        except Exception as e:
            self._stats.last_error = str(e)
            logger.exception("cron_tick_failed", error=str(e))
        finally:
            self._tick_lock.release()

    async def _run_tick(self) -> None:
        now = ensure_utc(self._now())
        self._stats.tick_count += 1
        self._stats.last_tick = now

        with self._lock:
            due = [job for job in self._jobs.values() if _is_due(job, now)]

        if not due:
            return

        logger.debug("cron_jobs_due", count=len(due))
        for job in due:
            try:
                await self._execute_job(job, now)
            except Exception as e:
                self._stats.last_error = str(e)
                logger.exception("cron_job_processing_failed", job_id=job.id, error=str(e))

    async def _execute_job(self, job: CronJob, executed_at: datetime) -> None:
        succeeded = True
        try:
            await self.on_execute(job.copy())
        except Exception as e:
            succeeded = False
            self._stats.jobs_failed += 1
            self._stats.last_error = str(e)
            logger.warning(
                "cron_job_execution_failed",
                job_id=job.id,
                job_name=job.name,
                error=str(e),
            )
        else:
            self._stats.jobs_executed += 1

        with self._lock:
            current = self._jobs.get(job.id)
            if current is None:
                # Removed while the handler ran.
                self._stats.jobs_skipped += 1
                logger.info("cron_job_removed_during_execution", job_id=job.id)
                return

            next_job = _apply_execution(current, executed_at, succeeded)
            saved = self.store.save(next_job)
            if saved.is_err():
                self._stats.jobs_skipped += 1
                self._stats.last_error = str(saved.error)
                logger.error(
                    "cron_job_persist_failed",
                    job_id=job.id,
                    error=str(saved.error),
                )
                return
            self._jobs[job.id] = next_job

        logger.info(
            "cron_job_transitioned",
            job_id=next_job.id,
            status=next_job.status.value,
            run_count=next_job.run_count,
            next_run_at=next_job.next_run_at.isoformat() if next_job.next_run_at else None,
        )

    # === Health & Stats ===

    def health(self) -> SchedulerHealth:
        backend_health = self.backend.health()
        with self._lock:
            cached = len(self._jobs)
            active = sum(1 for job in self._jobs.values() if job.status == JobStatus.ACTIVE)
        return SchedulerHealth(
            healthy=self._running and backend_health.get("healthy", False),
            backend=backend_health,
            jobs_cached=cached,
            jobs_active=active,
            stats=self.get_stats(),
        )

    def get_stats(self) -> SchedulerStats:
        return replace(self._stats)

    def reset_stats(self) -> None:
        self._stats = SchedulerStats()

    # === Internals ===

    def _lookup(self, job_id: str) -> Result[CronJob | None]:
        """Cache first, then the store; a store hit is cached.  Caller holds the lock."""
        cached = self._jobs.get(job_id)
        if cached is not None:
            return Ok(cached)

        fetched = self.store.get(job_id)
        if fetched.is_err():
            return Err(fetched.error)
        if fetched.value is not None:
            self._jobs[job_id] = fetched.value
        return Ok(fetched.value)

    def _reload_cache(self) -> Result[list[CronJob]]:
        with self._lock:
            listed = self.store.list()
            if listed.is_err():
                return Err(listed.error)
            self._jobs = {job.id: job for job in listed.value}
            return Ok(list(self._jobs.values()))


# ---------------------------------------------------------------------------
# Job transitions
# ---------------------------------------------------------------------------


def _is_due(job: CronJob, now: datetime) -> bool:
    if job.status != JobStatus.ACTIVE or job.next_run_at is None:
        return False
    return ensure_utc(job.next_run_at) <= now


def _apply_execution(job: CronJob, executed_at: datetime, succeeded: bool) -> CronJob:
    """Return the job as it stands after one execution attempt at ``executed_at``."""
    next_job = job.copy()
    next_job.run_count += 1
    next_job.last_run_at = executed_at
    next_job.updated_at = executed_at

    if not succeeded:
        next_job.status = JobStatus.FAILED
        next_job.next_run_at = None
        return next_job

    if next_job.max_runs is not None and next_job.run_count >= next_job.max_runs:
        next_job.status = JobStatus.COMPLETED
        next_job.next_run_at = None
        return next_job

    if next_job.status != JobStatus.ACTIVE:
        # Paused (or otherwise deactivated) while the handler ran.
        next_job.next_run_at = None
        return next_job

    next_run = compute_next_run(next_job.schedule, next_job.timezone, executed_at)
    if next_run.is_err():
        logger.warning(
            "cron_next_run_failed",
            job_id=next_job.id,
            error=str(next_run.error),
        )
        next_job.status = JobStatus.FAILED
        next_job.next_run_at = None
    else:
        next_job.next_run_at = next_run.value
    return next_job


def _merge_update(job: CronJob, changes: CronJobUpdate, now: datetime) -> Result[CronJob]:
    updated = job.copy()

    if changes.name is not UNSET:
        updated.name = (changes.name or "").strip()
    if changes.description is not UNSET:
        updated.description = (changes.description or "").strip()
    if changes.schedule is not UNSET:
        updated.schedule = (changes.schedule or "").strip()
    if changes.timezone is not UNSET and changes.timezone is not None:
        updated.timezone = changes.timezone
    if changes.status is not UNSET and changes.status is not None:
        try:
            updated.status = JobStatus(changes.status)
        except ValueError:
            return Err(ValidationError(
                f"Invalid cron job status: {changes.status}",
                code="CRON_JOB_STATUS_INVALID",
            ).with_context(job_id=job.id))
    if changes.payload is not UNSET and changes.payload is not None:
        updated.payload = CronJobPayload(
            action=changes.payload.action,
            parameters=dict(changes.payload.parameters),
        )
    if changes.max_runs is not UNSET:
        updated.max_runs = changes.max_runs
    if changes.tags is not UNSET:
        updated.tags = normalize_tags(changes.tags)

    updated.updated_at = now
    return Ok(updated)


def _validate_job(job: CronJob) -> Result[None]:
    if not job.name.strip():
        return Err(ValidationError(
            "Cron job name is required",
            code="CRON_JOB_NAME_REQUIRED",
        ))

    if not isinstance(job.payload.action, str) or not job.payload.action.strip():
        return Err(ValidationError(
            "Cron job payload action is required",
            code="CRON_JOB_ACTION_REQUIRED",
        ).with_context(job_name=job.name))

    if job.max_runs is not None and (
        isinstance(job.max_runs, bool) or not isinstance(job.max_runs, int) or job.max_runs <= 0
    ):
        return Err(ValidationError(
            "Cron job max_runs must be greater than zero",
            code="CRON_JOB_MAX_RUNS_INVALID",
        ).with_context(job_name=job.name))

    timezone = validate_timezone(job.timezone)
    if timezone.is_err():
        return Err(timezone.error)

    return validate_cron_expression(job.schedule)


__all__ = [
    "CronScheduler",
    "DEFAULT_TICK_INTERVAL_MS",
    "ExecuteCallback",
    "SchedulerHealth",
    "SchedulerStats",
]
