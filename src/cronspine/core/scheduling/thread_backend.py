"""Threading-based timing backend.

This is the DEFAULT backend for cronspine. It uses the stdlib threading
module and needs no event loop from the caller.

┌──────────────────────────────────────────────────────────────────────────────┐
│  THREAD BACKEND                                                               │
│                                                                               │
│   start(tick, interval)                                                       │
│      │                                                                        │
│      ▼                                                                        │
│   ┌─────────────────────────────────────────────────────────┐                │
│   │  Daemon Thread "cronspine-scheduler"                    │                │
│   │                                                         │                │
│   │   while not stop_event.wait(interval):                  │                │
│   │       tick_count += 1                                   │                │
│   │       last_tick = now()                                 │                │
│   │       asyncio.run(tick())                               │                │
│   └─────────────────────────────────────────────────────────┘                │
│                                                                               │
│   stop()                                                                      │
│      │                                                                        │
│      ▼                                                                        │
│   stop_event.set()                                                            │
│   thread.join(join_timeout)    returns after the in-flight tick              │
│                                                                               │
│  Ticks are strictly sequential: the next wait starts after the previous      │
│  tick returned, so a slow handler delays ticks instead of stacking them.     │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import threading
from datetime import datetime
from typing import Any

from cronspine.core.logging import get_logger
from cronspine.core.timestamps import utc_now

from .protocol import BackendHealth, TickCallback

logger = get_logger(__name__)


class ThreadSchedulerBackend:
    """Daemon-thread timing backend.

    Args:
        join_timeout: Seconds ``stop()`` waits for the loop thread.  ``None``
            waits as long as the in-flight tick takes.

    Example:
        >>> backend = ThreadSchedulerBackend()
        >>>
        >>> async def my_tick():
        ...     print("Tick!")
        ...
        >>> backend.start(my_tick, interval_seconds=1.0)
        >>> # ... later ...
        >>> backend.stop()
    """

    name = "thread"

    def __init__(self, join_timeout: float | None = None) -> None:
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._interval: float = 1.0
        self._join_timeout = join_timeout
        self._started = False
        self._lock = threading.Lock()

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 1.0,
    ) -> None:
        """Start the tick loop in a daemon thread."""
        if self._started:
            logger.warning("thread_backend_already_started")
            return

        self._interval = interval_seconds
        self._stop_event.clear()

        def _loop() -> None:
            logger.info("thread_backend_started", interval_seconds=interval_seconds)
            while not self._stop_event.wait(interval_seconds):
                with self._lock:
                    self._tick_count += 1
                    self._last_tick = utc_now()

                try:
                    asyncio.run(tick_callback())
                except Exception as e:
                    logger.exception("thread_backend_tick_failed", error=str(e))

            logger.info("thread_backend_stopped")

        self._thread = threading.Thread(target=_loop, daemon=True, name="cronspine-scheduler")
        self._thread.start()
        self._started = True

    def stop(self) -> None:
        """Stop the loop and wait for the in-flight tick to finish."""
        if not self._started:
            return

        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._join_timeout)
            if thread.is_alive():
                logger.warning("thread_backend_stop_timeout", join_timeout=self._join_timeout)

        self._started = False
        self._thread = None
        logger.info("thread_backend_shutdown_complete")

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()

    def get_health(self) -> BackendHealth:
        with self._lock:
            return BackendHealth(
                healthy=self.is_running,
                backend=self.name,
                tick_count=self._tick_count,
                last_tick=self._last_tick,
                extra={"interval_seconds": self._interval},
            )

    @property
    def is_running(self) -> bool:
        return self._started and self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick


__all__ = ["ThreadSchedulerBackend"]
