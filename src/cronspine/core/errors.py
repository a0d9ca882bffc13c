"""
Structured error types for the cron scheduling core.

Every failure the scheduling core can report is a ``CronError`` subclass
carrying a stable error ``code`` alongside a category, retry semantics,
structured context and an optional chained cause. Fallible operations wrap
these errors in ``Err`` (see ``cronspine.core.result``) instead of raising;
only ``CronExecutor.execute`` raises them, after auditing.

Manifesto:
    - **Stable codes:** Callers branch on ``error.code``, never on messages
    - **Typed hierarchy:** One class per error kind (validation, not-found,
      rate-limit, computation, persistence, policy, config)
    - **Explicit retry semantics:** Rate-limit errors are retryable, the rest
      are not
    - **Error chaining:** The low-level cause is preserved as ``__cause__``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                         CronError                                │
        │          (code, category, retryable, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ValidationError        JobNotFoundError    RateLimitExceeded    │
        │  (VALIDATION)           (NOT_FOUND)         (RATE_LIMIT, retry)  │
        │     │                                                            │
        │  InvalidCronExpressionError                                      │
        │  InvalidTimezoneError                                            │
        │                                                                  │
        │  ComputationError       PersistenceError    PolicyError          │
        │  (COMPUTATION)          (STORAGE)           (POLICY)             │
        │     │                                                            │
        │  NextRunComputationError                    ToolInputError       │
        │  TimePartsError                             (VALIDATION)         │
        │  InvalidWeekdayError                                             │
        │                                                                  │
        │  ConfigError ── InvalidConfigError                               │
        │  (CONFIG)                                                        │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = JobNotFoundError("job-1")
    >>> error.code
    'CRON_JOB_NOT_FOUND'
    >>> error.to_dict()["category"]
    'NOT_FOUND'

Guardrails:
    ❌ DON'T: Raise generic Exception from a Result-returning operation
    ✅ DO: Return ``Err(<CronError subclass>)`` with a stable code

    ❌ DON'T: Swallow the original exception when wrapping I/O errors
    ✅ DO: Pass it as ``cause=``

Tags:
    error-handling, exception-hierarchy, error-codes, cron, scheduling,
    cronspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories for classification and routing.

    Attributes:
        VALIDATION: Bad input (names, actions, cron fields, timezones)
        NOT_FOUND: Operating on a job id that does not exist
        RATE_LIMIT: Execution quota exceeded
        COMPUTATION: Next-run search or time-part extraction failed
        STORAGE: Store read/write/list/delete failure
        POLICY: Approval required or denied
        CONFIG: Invalid settings
        INTERNAL: Bugs, unexpected state
    """

    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT = "RATE_LIMIT"
    COMPUTATION = "COMPUTATION"
    STORAGE = "STORAGE"
    POLICY = "POLICY"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only the fields that are set show up in ``to_dict()``; anything that does
    not have a dedicated field goes into ``metadata``.

    Attributes:
        job_id: Id of the job being operated on
        job_name: Name of the job being operated on
        field_name: Cron field or job attribute that failed validation
        path: Filesystem path involved in a persistence failure
        metadata: Additional key-value pairs
    """

    job_id: str | None = None
    job_name: str | None = None
    field_name: str | None = None
    path: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["job_id", "job_name", "field_name", "path"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class CronError(Exception):
    """
    Base exception for all scheduling-core errors.

    Subclasses set ``default_code``, ``default_category`` and
    ``default_retryable`` so that most call sites only pass a message.

    Examples:
        >>> error = CronError("boom", code="CRON_CUSTOM")
        >>> error.code
        'CRON_CUSTOM'
        >>> error.retryable
        False

        Chaining an I/O failure:

        >>> try:
        ...     raise OSError("disk full")
        ... except OSError as e:
        ...     wrapped = PersistenceError("Failed to save job", cause=e)
        >>> wrapped.__cause__
        OSError('disk full')
    """

    default_code: str = "CRON_ERROR"
    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CronError:
        """
        Add context to this error (fluent API).

        Usage:
            return Err(JobNotFoundError(job_id).with_context(job_name="nightly"))
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, code={self.code})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(CronError):
    """
    Invalid job input.

    Never retryable - the input must be fixed.
    """

    default_code = "CRON_VALIDATION_FAILED"
    default_category = ErrorCategory.VALIDATION


class InvalidCronExpressionError(ValidationError):
    """Malformed cron expression (field count, bounds, ranges, steps)."""

    default_code = "CRON_EXPRESSION_INVALID"

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        field: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.expression = expression
        self.field = field
        if field is not None:
            self.context.field_name = field

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.expression is not None:
            result["expression"] = self.expression
        return result


class InvalidTimezoneError(ValidationError):
    """Timezone name that cannot be resolved."""

    default_code = "CRON_TIMEZONE_INVALID"

    def __init__(self, timezone: str, *, cause: BaseException | None = None):
        self.timezone = timezone
        super().__init__(f"Invalid timezone: {timezone}", cause=cause)


# =============================================================================
# NOT FOUND
# =============================================================================


class JobNotFoundError(CronError):
    """Job id absent from both the scheduler cache and the store."""

    default_code = "CRON_JOB_NOT_FOUND"
    default_category = ErrorCategory.NOT_FOUND

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Cron job not found: {job_id}", context=ErrorContext(job_id=job_id))


# =============================================================================
# RATE LIMIT
# =============================================================================


class RateLimitExceededError(CronError):
    """Minute or hour execution quota exceeded."""

    default_code = "CRON_RATE_LIMIT_MINUTE"
    default_category = ErrorCategory.RATE_LIMIT
    default_retryable = True


# =============================================================================
# COMPUTATION ERRORS
# =============================================================================


class ComputationError(CronError):
    """Scheduling arithmetic failed."""

    default_code = "CRON_COMPUTATION_FAILED"
    default_category = ErrorCategory.COMPUTATION


class NextRunComputationError(ComputationError):
    """No matching minute found inside the search horizon."""

    default_code = "CRON_NEXT_RUN_COMPUTE_FAILED"


class TimePartsError(ComputationError):
    """Timezone-local field extraction failed."""

    default_code = "CRON_TIME_PARTS_FAILED"


class InvalidWeekdayError(TimePartsError):
    """Weekday name that does not map to 0-6."""

    default_code = "CRON_WEEKDAY_INVALID"

    def __init__(self, weekday: str):
        self.weekday = weekday
        super().__init__(f"Invalid weekday value: {weekday}")


# =============================================================================
# PERSISTENCE ERRORS
# =============================================================================


class PersistenceError(CronError):
    """Store read/write/list/delete failure."""

    default_code = "CRON_STORE_FAILED"
    default_category = ErrorCategory.STORAGE


# =============================================================================
# POLICY / TOOL ERRORS
# =============================================================================


class PolicyError(CronError):
    """Action requires approval that was not granted."""

    default_code = "CRON_APPROVAL_REQUIRED"
    default_category = ErrorCategory.POLICY


class ToolInputError(ValidationError):
    """Malformed schedule tool request."""

    default_code = "CRON_TOOL_INPUT_INVALID"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(CronError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_code = "CRON_CONFIG_INVALID"
    default_category = ErrorCategory.CONFIG


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, CronError):
        return error.retryable
    return False


def error_code(error: BaseException) -> str:
    """Get the stable code of an error (``CRON_UNEXPECTED`` for foreign errors)."""
    if isinstance(error, CronError):
        return error.code
    return "CRON_UNEXPECTED"


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "CronError",
    # Validation
    "ValidationError",
    "InvalidCronExpressionError",
    "InvalidTimezoneError",
    # Not found
    "JobNotFoundError",
    # Rate limit
    "RateLimitExceededError",
    # Computation
    "ComputationError",
    "NextRunComputationError",
    "TimePartsError",
    "InvalidWeekdayError",
    # Persistence
    "PersistenceError",
    # Policy / tool
    "PolicyError",
    "ToolInputError",
    # Config
    "ConfigError",
    "InvalidConfigError",
    # Utilities
    "is_retryable",
    "error_code",
]
