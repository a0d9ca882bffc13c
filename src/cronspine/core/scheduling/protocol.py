"""Timing backend protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TIMING BACKEND PROTOCOL                                                      │
│                                                                               │
│  The backend decides WHEN a tick happens; CronScheduler.tick() decides WHAT  │
│  happens on it (due-job scan, execute, transition, persist).                 │
│                                                                               │
│   ┌──────────────────────┐    tick()    ┌──────────────────────────┐         │
│   │ ThreadSchedulerBackend│ ──────────► │ CronScheduler             │         │
│   │ (default)             │             │  - snapshot now           │         │
│   └──────────────────────┘             │  - run due jobs in order  │         │
│                                         │  - apply transitions      │         │
│   ┌──────────────────────┐    tick()    │  - persist, then cache    │         │
│   │ ManualBackend (tests) │ ──────────► │                           │         │
│   └──────────────────────┘             └──────────────────────────┘         │
│                                                                               │
│  stop() must not return while a tick is still running.                       │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from cronspine.core.timestamps import to_iso8601

TickCallback = Callable[[], Awaitable[None]]


@runtime_checkable
class SchedulerBackend(Protocol):
    """Protocol for pluggable tick timing.

    Example (custom backend):
        >>> class LoopBackend:
        ...     name = "asyncio"
        ...
        ...     def start(self, tick_callback, interval_seconds=1.0):
        ...         self._task = loop.create_task(run_every(tick_callback, interval_seconds))
        ...
        ...     def stop(self):
        ...         self._task.cancel()
        ...
        ...     def health(self) -> dict:
        ...         return {"healthy": True, "backend": "asyncio"}
    """

    name: str

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 1.0,
    ) -> None:
        """Begin calling ``tick_callback`` every ``interval_seconds``."""
        ...

    def stop(self) -> None:
        """Stop ticking; returns after any in-flight tick has completed."""
        ...

    def health(self) -> dict[str, Any]:
        """Backend status with at least ``healthy``, ``backend``, ``tick_count``, ``last_tick``."""
        ...


@dataclass
class BackendHealth:
    """Structured backend health response."""

    healthy: bool
    backend: str
    tick_count: int = 0
    last_tick: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "backend": self.backend,
            "tick_count": self.tick_count,
            "last_tick": to_iso8601(self.last_tick),
            **self.extra,
        }


__all__ = ["BackendHealth", "SchedulerBackend", "TickCallback"]
