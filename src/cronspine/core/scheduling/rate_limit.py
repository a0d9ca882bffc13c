"""Sliding-window execution rate limiter.

┌──────────────────────────────────────────────────────────────────────────────┐
│  CRON RATE LIMITER                                                            │
│                                                                               │
│   try_acquire(now_ms)                                                         │
│      │                                                                        │
│      ├── prune minute window  (drop t <= now - 60_000)                       │
│      ├── prune hour window    (drop t <= now - 3_600_000)                    │
│      │                                                                        │
│      ├── minute window full?  ──► Err(CRON_RATE_LIMIT_MINUTE)   no mutation  │
│      ├── hour window full?    ──► Err(CRON_RATE_LIMIT_HOUR)     no mutation  │
│      │                                                                        │
│      └── append now to both   ──► Ok(None)                                   │
│                                                                               │
│  In-memory and per-process: it bounds one scheduler instance's executions.   │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass

from cronspine.core.errors import InvalidConfigError, RateLimitExceededError
from cronspine.core.logging import get_logger
from cronspine.core.result import Err, Ok, Result

logger = get_logger(__name__)

MINUTE_WINDOW_MS = 60_000
HOUR_WINDOW_MS = 3_600_000

DEFAULT_MAX_EXECUTIONS_PER_MINUTE = 10
DEFAULT_MAX_EXECUTIONS_PER_HOUR = 100


@dataclass(frozen=True)
class RateLimitUsage:
    """Current window counts and configured limits."""

    minute_count: int
    hour_count: int
    minute_limit: int
    hour_limit: int


class CronRateLimiter:
    """Bounds executions per trailing minute and per trailing hour.

    Example:
        >>> limiter = CronRateLimiter(max_executions_per_minute=2)
        >>> limiter.try_acquire(1_000).is_ok(), limiter.try_acquire(2_000).is_ok()
        (True, True)
        >>> limiter.try_acquire(3_000).error.code
        'CRON_RATE_LIMIT_MINUTE'
    """

    def __init__(
        self,
        max_executions_per_minute: int = DEFAULT_MAX_EXECUTIONS_PER_MINUTE,
        max_executions_per_hour: int = DEFAULT_MAX_EXECUTIONS_PER_HOUR,
    ) -> None:
        if max_executions_per_minute <= 0:
            raise InvalidConfigError("max_executions_per_minute", max_executions_per_minute)
        if max_executions_per_hour <= 0:
            raise InvalidConfigError("max_executions_per_hour", max_executions_per_hour)

        self.max_executions_per_minute = max_executions_per_minute
        self.max_executions_per_hour = max_executions_per_hour
        self._minute_window: deque[int] = deque()
        self._hour_window: deque[int] = deque()
        self._lock = threading.Lock()

    def try_acquire(self, now_ms: int) -> Result[None]:
        """Admit one execution at ``now_ms`` (epoch milliseconds) if quota allows."""
        with self._lock:
            self._prune(now_ms)

            if len(self._minute_window) >= self.max_executions_per_minute:
                logger.warning(
                    "cron_rate_limited",
                    window="minute",
                    limit=self.max_executions_per_minute,
                )
                return Err(RateLimitExceededError(
                    f"Rate limit exceeded: {self.max_executions_per_minute} executions per minute",
                    code="CRON_RATE_LIMIT_MINUTE",
                    retry_after=_seconds_until_free(self._minute_window[0], MINUTE_WINDOW_MS, now_ms),
                ))

            if len(self._hour_window) >= self.max_executions_per_hour:
                logger.warning(
                    "cron_rate_limited",
                    window="hour",
                    limit=self.max_executions_per_hour,
                )
                return Err(RateLimitExceededError(
                    f"Rate limit exceeded: {self.max_executions_per_hour} executions per hour",
                    code="CRON_RATE_LIMIT_HOUR",
                    retry_after=_seconds_until_free(self._hour_window[0], HOUR_WINDOW_MS, now_ms),
                ))

            self._minute_window.append(now_ms)
            self._hour_window.append(now_ms)
            return Ok(None)

    def get_usage(self, now_ms: int) -> RateLimitUsage:
        """Report window counts at ``now_ms`` after pruning stale entries."""
        with self._lock:
            self._prune(now_ms)
            return RateLimitUsage(
                minute_count=len(self._minute_window),
                hour_count=len(self._hour_window),
                minute_limit=self.max_executions_per_minute,
                hour_limit=self.max_executions_per_hour,
            )

    def reset(self) -> None:
        """Forget every recorded execution."""
        with self._lock:
            self._minute_window.clear()
            self._hour_window.clear()

    def _prune(self, now_ms: int) -> None:
        _drop_older_than(self._minute_window, now_ms - MINUTE_WINDOW_MS)
        _drop_older_than(self._hour_window, now_ms - HOUR_WINDOW_MS)


def _drop_older_than(window: deque[int], cutoff_ms: int) -> None:
    # Entries are appended in call order; an entry exactly one window old has expired.
    while window and window[0] <= cutoff_ms:
        window.popleft()


def _seconds_until_free(oldest_ms: int, window_ms: int, now_ms: int) -> int:
    remaining_ms = oldest_ms + window_ms - now_ms
    return max(1, -(-remaining_ms // 1000))
