"""cronspine.core -- Shared primitives and the scheduling package.

Architecture::

    Layer 1 -- Type System & Errors
        errors.py          Error hierarchy (CronError and friends, stable codes)
        result.py          Result[T] envelope (Ok / Err / try_result)
        timestamps.py      UTC helpers, ISO-8601 wire format, job ids

    Layer 2 -- Cross-Cutting Concerns
        logging.py         Structured logging (structlog)
        settings.py        CronSettings (pydantic-settings, CRON_* env vars)

    Layer 3 -- Scheduling
        scheduling/        Expression evaluator, next-run calculator, store,
                           rate limiter, audit log, executor, scheduler, tool
"""

from cronspine.core.errors import (
    CronError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    InvalidCronExpressionError,
    InvalidTimezoneError,
    JobNotFoundError,
    PersistenceError,
    RateLimitExceededError,
    ValidationError,
)
from cronspine.core.logging import configure_logging, get_logger
from cronspine.core.result import Err, Ok, Result, try_result
from cronspine.core.settings import CronSettings
from cronspine.core.timestamps import utc_now

__all__ = [
    # Errors
    "CronError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidConfigError",
    "InvalidCronExpressionError",
    "InvalidTimezoneError",
    "JobNotFoundError",
    "PersistenceError",
    "RateLimitExceededError",
    "ValidationError",
    # Result
    "Err",
    "Ok",
    "Result",
    "try_result",
    # Logging
    "configure_logging",
    "get_logger",
    # Settings
    "CronSettings",
    # Timestamps
    "utc_now",
]
