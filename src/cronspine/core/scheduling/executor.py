"""Rate-limited, audited job execution.

┌──────────────────────────────────────────────────────────────────────────────┐
│  CRON EXECUTOR                                                                │
│                                                                               │
│   execute(job)                                                                │
│      │                                                                        │
│      ├── rate_limiter.try_acquire(now)                                        │
│      │      └── Err ──► audit cron.rate_limited ──► raise limiter error      │
│      │                                                                        │
│      ├── await handler(copy of job)                                           │
│      │      ├── ok    ──► audit cron.executed (duration_ms)                   │
│      │      └── raise ──► audit cron.failed (duration_ms, error) ──► re-raise │
│                                                                               │
│   log_created / log_updated / log_deleted / log_paused / log_resumed          │
│      └── audit only, never rate limited                                       │
│                                                                               │
│  Usually wired as ``CronScheduler(on_execute=executor.execute)``: the        │
│  scheduler sees the re-raised error and marks the job failed.                │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from cronspine.core.logging import get_logger
from cronspine.core.scheduling.audit import AuditEntry, AuditEventType, CronAuditLog
from cronspine.core.scheduling.models import CronJob
from cronspine.core.scheduling.rate_limit import CronRateLimiter
from cronspine.core.timestamps import to_epoch_ms, utc_now

logger = get_logger(__name__)

JobHandler = Callable[[CronJob], Awaitable[None]]


class CronExecutor:
    """Runs a job handler behind the rate limiter and records the outcome.

    Args:
        rate_limiter: Execution quota shared by every job
        audit_log: Sink for audit entries
        handler: Async callable doing the actual work; raising means failure
        now: Clock, injectable for tests
    """

    def __init__(
        self,
        rate_limiter: CronRateLimiter,
        audit_log: CronAuditLog,
        handler: JobHandler,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.audit_log = audit_log
        self.handler = handler
        self._now = now

    async def execute(self, job: CronJob) -> None:
        """Execute ``job`` once.

        Raises:
            RateLimitExceededError: Quota exhausted; the handler was not called
            Exception: Whatever the handler raised, after it was audited
        """
        started_ms = self._now_ms()

        acquired = self.rate_limiter.try_acquire(started_ms)
        if acquired.is_err():
            self._record(
                AuditEventType.RATE_LIMITED,
                job,
                success=False,
                error=str(acquired.error),
                timestamp=started_ms,
            )
            raise acquired.error

        try:
            await self.handler(job.copy())
        except Exception as e:
            duration_ms = self._now_ms() - started_ms
            logger.warning(
                "cron_job_handler_failed",
                job_id=job.id,
                job_name=job.name,
                duration_ms=duration_ms,
                error=str(e),
            )
            self._record(
                AuditEventType.FAILED,
                job,
                success=False,
                duration_ms=duration_ms,
                error=str(e),
            )
            raise

        duration_ms = self._now_ms() - started_ms
        logger.info(
            "cron_job_executed",
            job_id=job.id,
            job_name=job.name,
            duration_ms=duration_ms,
        )
        self._record(AuditEventType.EXECUTED, job, success=True, duration_ms=duration_ms)

    # ------------------------------------------------------------------
    # Lifecycle events
    # ------------------------------------------------------------------

    def log_created(self, job: CronJob) -> None:
        self._record(AuditEventType.CREATED, job, success=True)

    def log_updated(self, job: CronJob) -> None:
        self._record(AuditEventType.UPDATED, job, success=True)

    def log_paused(self, job: CronJob) -> None:
        self._record(AuditEventType.PAUSED, job, success=True)

    def log_resumed(self, job: CronJob) -> None:
        self._record(AuditEventType.RESUMED, job, success=True)

    def log_deleted(self, job_id: str, job_name: str, action: str = "") -> None:
        """Record a deletion; the job itself is gone, so only its identity is kept."""
        self.audit_log.record(AuditEntry(
            timestamp=self._now_ms(),
            event_type=AuditEventType.DELETED,
            job_id=job_id,
            job_name=job_name,
            action=action,
            success=True,
        ))

    def _record(
        self,
        event_type: AuditEventType,
        job: CronJob,
        *,
        success: bool,
        duration_ms: int | None = None,
        error: str | None = None,
        timestamp: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.audit_log.record(AuditEntry(
            timestamp=timestamp if timestamp is not None else self._now_ms(),
            event_type=event_type,
            job_id=job.id,
            job_name=job.name,
            action=job.payload.action,
            success=success,
            duration_ms=duration_ms,
            error=error,
            metadata=metadata or {},
        ))

    def _now_ms(self) -> int:
        return to_epoch_ms(self._now())


__all__ = ["CronExecutor", "JobHandler"]
