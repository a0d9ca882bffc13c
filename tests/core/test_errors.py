"""Tests for cronspine.core.errors module."""

import pytest

from cronspine.core.errors import (
    CronError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    InvalidCronExpressionError,
    InvalidTimezoneError,
    InvalidWeekdayError,
    JobNotFoundError,
    NextRunComputationError,
    PersistenceError,
    PolicyError,
    RateLimitExceededError,
    TimePartsError,
    ToolInputError,
    ValidationError,
    error_code,
    is_retryable,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        """Create context with no fields set."""
        ctx = ErrorContext()
        assert ctx.job_id is None
        assert ctx.metadata == {}
        assert ctx.to_dict() == {}

    def test_to_dict_includes_set_fields(self):
        """to_dict includes only non-None fields plus metadata."""
        ctx = ErrorContext(job_id="job-1", path="/tmp/x.json", metadata={"attempt": 2})
        d = ctx.to_dict()
        assert d == {"job_id": "job-1", "path": "/tmp/x.json", "attempt": 2}
        assert "job_name" not in d


class TestCronError:
    """Test the base error."""

    def test_defaults(self):
        """Defaults come from class attributes."""
        error = CronError("boom")
        assert error.message == "boom"
        assert str(error) == "boom"
        assert error.code == "CRON_ERROR"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False

    def test_cause_is_chained(self):
        """cause becomes __cause__."""
        original = OSError("disk full")
        error = PersistenceError("write failed", cause=original)
        assert error.__cause__ is original
        assert error.to_dict()["cause"] == "disk full"

    def test_with_context_sets_fields_and_metadata(self):
        """with_context fills known fields and spills the rest into metadata."""
        error = CronError("boom").with_context(job_id="job-1", attempt=3)
        assert error.context.job_id == "job-1"
        assert error.context.metadata == {"attempt": 3}

    def test_to_dict(self):
        """to_dict carries type, code, category and context."""
        d = JobNotFoundError("job-9").to_dict()
        assert d["error_type"] == "JobNotFoundError"
        assert d["code"] == "CRON_JOB_NOT_FOUND"
        assert d["category"] == "NOT_FOUND"
        assert d["retryable"] is False
        assert d["context"] == {"job_id": "job-9"}

    def test_repr(self):
        """repr names the class and code."""
        assert repr(CronError("x", code="CRON_X")) == "CronError('x', code=CRON_X)"


class TestSubclasses:
    """Test the concrete error kinds."""

    def test_validation_codes_override(self):
        """ValidationError accepts a specific code."""
        error = ValidationError("Cron job name is required", code="CRON_JOB_NAME_REQUIRED")
        assert error.code == "CRON_JOB_NAME_REQUIRED"
        assert error.category == ErrorCategory.VALIDATION

    def test_invalid_expression_records_field(self):
        """InvalidCronExpressionError keeps expression and field."""
        error = InvalidCronExpressionError("bad", expression="61 * * * *", field="minute")
        assert error.code == "CRON_EXPRESSION_INVALID"
        assert error.context.field_name == "minute"
        assert error.to_dict()["expression"] == "61 * * * *"

    def test_invalid_timezone_message(self):
        """InvalidTimezoneError names the zone."""
        error = InvalidTimezoneError("Mars/Olympus")
        assert str(error) == "Invalid timezone: Mars/Olympus"
        assert error.code == "CRON_TIMEZONE_INVALID"

    def test_job_not_found_message(self):
        """JobNotFoundError names the id."""
        assert str(JobNotFoundError("abc")) == "Cron job not found: abc"

    def test_rate_limit_is_retryable(self):
        """Rate limiting is the only retryable kind."""
        error = RateLimitExceededError("Rate limit exceeded", retry_after=30)
        assert error.retryable is True
        assert error.category == ErrorCategory.RATE_LIMIT
        assert error.to_dict()["retry_after"] == 30

    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (NextRunComputationError("x"), "CRON_NEXT_RUN_COMPUTE_FAILED"),
            (TimePartsError("x"), "CRON_TIME_PARTS_FAILED"),
            (InvalidWeekdayError("Funday"), "CRON_WEEKDAY_INVALID"),
            (PersistenceError("x"), "CRON_STORE_FAILED"),
            (PolicyError("x"), "CRON_APPROVAL_REQUIRED"),
            (ToolInputError("x"), "CRON_TOOL_INPUT_INVALID"),
            (InvalidConfigError("tick_interval_ms", 0), "CRON_CONFIG_INVALID"),
        ],
    )
    def test_default_codes(self, error, code):
        """Each kind has a stable default code."""
        assert error.code == code

    def test_invalid_weekday_message(self):
        """InvalidWeekdayError names the value."""
        assert str(InvalidWeekdayError("Funday")) == "Invalid weekday value: Funday"

    def test_tool_input_is_validation(self):
        """Tool input errors are validation errors."""
        assert isinstance(ToolInputError("x"), ValidationError)


class TestUtilities:
    """Test helper functions."""

    def test_is_retryable(self):
        assert is_retryable(RateLimitExceededError("x")) is True
        assert is_retryable(PersistenceError("x")) is False
        assert is_retryable(ValueError("x")) is False

    def test_error_code(self):
        assert error_code(JobNotFoundError("x")) == "CRON_JOB_NOT_FOUND"
        assert error_code(RuntimeError("x")) == "CRON_UNEXPECTED"
