"""Pytest fixtures for scheduling tests."""

from datetime import UTC, datetime
from typing import Any

import pytest

from cronspine.core.scheduling import (
    CronExecutor,
    CronJob,
    CronJobPayload,
    CronRateLimiter,
    CronScheduler,
    InMemoryCronAuditLog,
    InMemoryCronStore,
    JobStatus,
    LocalCronStore,
)


class ManualBackend:
    """Backend that never ticks by itself; tests call ``scheduler.tick()``."""

    name = "manual"

    def __init__(self) -> None:
        self.tick_callback = None
        self.interval_seconds: float | None = None
        self.start_calls = 0
        self.stop_calls = 0

    def start(self, tick_callback, interval_seconds: float = 1.0) -> None:
        self.tick_callback = tick_callback
        self.interval_seconds = interval_seconds
        self.start_calls += 1

    def stop(self) -> None:
        self.stop_calls += 1

    def health(self) -> dict[str, Any]:
        return {
            "healthy": self.tick_callback is not None,
            "backend": self.name,
            "tick_count": 0,
            "last_tick": None,
        }


class RecordingHandler:
    """Async job handler that records the jobs it was given."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[CronJob] = []
        self.error = error

    async def __call__(self, job: CronJob) -> None:
        self.calls.append(job)
        if self.error is not None:
            raise self.error

    @property
    def job_ids(self) -> list[str]:
        return [job.id for job in self.calls]


def make_job(**overrides: Any) -> CronJob:
    """A valid active job due at 2026-02-11T10:01:00Z."""
    created = datetime(2026, 2, 11, 10, 0, tzinfo=UTC)
    fields: dict[str, Any] = {
        "id": "job-1",
        "name": "cron-job",
        "description": "cron description",
        "schedule": "* * * * *",
        "timezone": "UTC",
        "status": JobStatus.ACTIVE,
        "created_at": created,
        "updated_at": created,
        "next_run_at": datetime(2026, 2, 11, 10, 1, tzinfo=UTC),
        "payload": CronJobPayload("tool.execute", {"task": "default"}),
        "tags": ["integration"],
    }
    fields.update(overrides)
    return CronJob(**fields)


@pytest.fixture
def job_factory():
    """Build CronJob instances with overrides."""
    return make_job


@pytest.fixture
def memory_store():
    return InMemoryCronStore()


@pytest.fixture
def local_store(tmp_path):
    """File store in a per-test temporary directory."""
    return LocalCronStore(tmp_path / "jobs")


@pytest.fixture
def handler():
    return RecordingHandler()


@pytest.fixture
def handler_factory():
    """Build RecordingHandler instances, optionally raising ``error``."""
    return RecordingHandler


@pytest.fixture
def manual_backend():
    return ManualBackend()


@pytest.fixture
def audit_log():
    return InMemoryCronAuditLog()


@pytest.fixture
def make_scheduler(clock, manual_backend):
    """Build a CronScheduler on the fake clock and manual backend."""

    def _make(store, on_execute, **kwargs: Any) -> CronScheduler:
        kwargs.setdefault("now", clock)
        kwargs.setdefault("backend", manual_backend)
        return CronScheduler(store=store, on_execute=on_execute, **kwargs)

    return _make


@pytest.fixture
def scheduler(make_scheduler, memory_store, handler):
    """Scheduler over an in-memory store with a recording handler."""
    return make_scheduler(memory_store, handler)


@pytest.fixture
def make_executor(clock, audit_log):
    """Build a CronExecutor on the fake clock and shared audit log."""

    def _make(handler, per_minute: int = 10, per_hour: int = 100) -> CronExecutor:
        return CronExecutor(
            rate_limiter=CronRateLimiter(
                max_executions_per_minute=per_minute,
                max_executions_per_hour=per_hour,
            ),
            audit_log=audit_log,
            handler=handler,
            now=clock,
        )

    return _make
