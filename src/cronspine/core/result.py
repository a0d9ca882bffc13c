"""
Result envelope for consistent success/failure handling.

Every Store and Scheduler CRUD operation returns ``Ok[T]`` on success or
``Err[T]`` carrying a ``CronError`` on failure. Callers branch on
``is_ok()`` / ``is_err()`` (or ``match``) instead of wrapping calls in
try/except, which keeps tick processing free of exception-based control
flow: one bad job must never abort the whole tick.

Manifesto:
    - **Explicit over Implicit:** No hidden exceptions that callers might miss
    - **Functional composition:** Chain operations with map/flat_map without
      nested try/except blocks
    - **Batch-friendly:** Collect results from many operations with
      collect_results()

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     Result[T]                                │
        │                    (Type Alias)                              │
        ├─────────────────┬─────────────────┬─────────────────────────┤
        │     Ok[T]       │     Err[T]      │     Utilities           │
        │   (Success)     │   (Failure)     │                         │
        ├─────────────────┼─────────────────┼─────────────────────────┤
        │ • value: T      │ • error: Exc    │ • try_result()          │
        │ • map()         │ • map_err()     │ • collect_results()     │
        │ • flat_map()    │ • or_else()     │ • from_optional()       │
        │ • unwrap()      │ • unwrap_or()   │                         │
        └─────────────────┴─────────────────┴─────────────────────────┘

Examples:
    >>> def parse_step(text: str) -> Result[int]:
    ...     if not text.isdigit() or int(text) <= 0:
    ...         return Err(ValueError("Cron step must be a positive integer"))
    ...     return Ok(int(text))
    >>> parse_step("5").map(lambda n: n * 2).unwrap()
    10
    >>> parse_step("0").is_err()
    True

Guardrails:
    ❌ DON'T: Call unwrap() on a Result you have not checked
    ✅ DO: Check is_ok() first or use unwrap_or()

    ❌ DON'T: Return Ok(None) to signal failure
    ✅ DO: Return Err with a CronError that has a stable code

Tags:
    result-pattern, error-handling, functional-programming, cronspine

Doc-Types:
    - API Reference
    - Result Pattern Guide
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from cronspine.core.errors import CronError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Successful result containing a value.

    Immutable. ``Ok(None)`` is the success value of operations that return
    nothing (``save``, ``delete``, ``start``, ``stop``).

    Examples:
        >>> Ok(10).map(lambda x: x * 2).unwrap()
        20
        >>> Ok("job-1").is_ok()
        True
    """

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Get value or default (always returns value for Ok)."""
        return self.value

    def unwrap_err(self) -> Exception:
        """Raise, since Ok carries no error."""
        raise ValueError(f"Called unwrap_err() on {self!r}")

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """Transform the value if Ok."""
        return Ok(f(self.value))

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """Chain to another Result-returning function."""
        return f(self.value)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        """Transform error if Err (no-op for Ok)."""
        return self

    def or_else(self, f: Callable[[Exception], Result[T]]) -> Result[T]:
        """Return self if Ok, otherwise call f with error."""
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """
    Failed result containing an error.

    The error is usually a ``CronError`` subclass; foreign exceptions are
    tolerated so that ``try_result`` can bridge third-party code.

    Examples:
        >>> from cronspine.core.errors import JobNotFoundError
        >>> result = Err(JobNotFoundError("missing"))
        >>> result.is_err()
        True
        >>> result.error.code
        'CRON_JOB_NOT_FOUND'
        >>> result.unwrap_or("fallback")
        'fallback'
    """

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the error. Use only when you're sure it's Ok."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        """Get default since this is Err."""
        return default

    def unwrap_err(self) -> Exception:
        """Get the error."""
        return self.error

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        """Transform the error."""
        return Err(f(self.error))

    def or_else(self, f: Callable[[Exception], Result[T]]) -> Result[T]:
        """Call f with error to try recovery."""
        return f(self.error)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        if isinstance(self.error, CronError):
            return {"ok": False, "error": self.error.to_dict()}
        return {
            "ok": False,
            "error": {
                "error_type": type(self.error).__name__,
                "message": str(self.error),
            },
        }

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Type alias for Result
Result = Ok[T] | Err[T]


# =============================================================================
# RESULT CONSTRUCTORS AND UTILITIES
# =============================================================================


def try_result(
    f: Callable[[], T],
    error_mapper: Callable[[Exception], Exception] | None = None,
) -> Result[T]:
    """
    Execute a function and wrap its outcome in a Result.

    The bridge from exception-raising code (filesystem, zoneinfo, json) into
    Result-returning code. ``error_mapper`` converts the raw exception into a
    ``CronError`` with the right code.

    Examples:
        >>> import json
        >>> try_result(lambda: json.loads('{"a": 1}')).unwrap()
        {'a': 1}
        >>> try_result(lambda: json.loads('invalid')).is_err()
        True
    """
    try:
        return Ok(f())
    except Exception as e:
        if error_mapper is not None:
            return Err(error_mapper(e))
        return Err(e)


def collect_results(results: list[Result[T]]) -> Result[list[T]]:
    """
    Turn a list of Results into a Result of list, failing on the first Err.

    Examples:
        >>> collect_results([Ok(1), Ok(2)]).unwrap()
        [1, 2]
        >>> collect_results([Ok(1), Err(ValueError("bad"))]).is_err()
        True
    """
    values: list[T] = []
    for result in results:
        if isinstance(result, Err):
            return Err(result.error)
        values.append(result.value)
    return Ok(values)


def from_optional(value: T | None, error: Exception) -> Result[T]:
    """
    Convert an optional value into a Result.

    Examples:
        >>> from cronspine.core.errors import JobNotFoundError
        >>> from_optional(None, JobNotFoundError("job-1")).is_err()
        True
        >>> from_optional("job", JobNotFoundError("job-1")).unwrap()
        'job'
    """
    if value is None:
        return Err(error)
    return Ok(value)


__all__ = [
    "Ok",
    "Err",
    "Result",
    "try_result",
    "collect_results",
    "from_optional",
]
