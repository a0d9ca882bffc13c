"""Tests for the cron expression evaluator."""

import locale
from datetime import UTC, datetime, timedelta

import pytest

from cronspine.core.scheduling import JobStatus
from cronspine.core.scheduling.expression import (
    DAY_OF_WEEK,
    MINUTE,
    TimeParts,
    describe,
    get_time_parts,
    is_job_due,
    parse_cron_expression,
    parse_cron_field,
    parse_field_segment,
    validate_cron_expression,
    validate_timezone,
    weekday_to_number,
)
from cronspine.core.scheduling.next_run import compute_next_run


def parts(minute=0, hour=0, day_of_month=1, month=1, day_of_week=0) -> TimeParts:
    return TimeParts(minute, hour, day_of_month, month, day_of_week)


class TestSegments:
    """Test single segment parsing."""

    @pytest.mark.parametrize(
        ("segment", "start", "end", "step"),
        [
            ("*", 0, None, 1),
            ("*/15", 0, None, 15),
            ("5", 5, 5, 1),
            ("5/10", 5, 5, 10),
            ("1-5", 1, 5, 1),
            ("10-50/20", 10, 50, 20),
        ],
    )
    def test_forms(self, segment, start, end, step):
        seg = parse_field_segment(segment).unwrap()
        assert (seg.start, seg.end, seg.step) == (start, end, step)

    @pytest.mark.parametrize(
        "segment",
        ["", "*/0", "*/-1", "*/x", "1-", "-5", "a", "1-5-7", "*/5/2", "1.5", "٣"],
    )
    def test_malformed(self, segment):
        result = parse_field_segment(segment)
        assert result.is_err()
        assert result.error.code == "CRON_EXPRESSION_INVALID"


class TestFields:
    """Test field parsing and matching."""

    def test_list_matches_any_segment(self):
        field = parse_cron_field("1,15,30-32", MINUTE).unwrap()
        assert field.allowed == frozenset({1, 15, 30, 31, 32})

    def test_wildcard_step_starts_at_zero(self):
        field = parse_cron_field("*/20", MINUTE).unwrap()
        assert field.allowed == frozenset({0, 20, 40})

    def test_range_step_is_relative_to_start(self):
        field = parse_cron_field("10-50/20", MINUTE).unwrap()
        assert field.allowed == frozenset({10, 30, 50})

    def test_value_step_is_single_value(self):
        field = parse_cron_field("5/10", MINUTE).unwrap()
        assert field.allowed == frozenset({5})

    def test_out_of_bounds(self):
        assert parse_cron_field("60", MINUTE).is_err()
        assert parse_cron_field("8", DAY_OF_WEEK).is_err()

    def test_reversed_range(self):
        assert parse_cron_field("5-1", MINUTE).is_err()

    def test_empty_list_item(self):
        assert parse_cron_field("1,,2", MINUTE).is_err()


class TestDayOfWeekAlias:
    """0 and 7 both mean Sunday."""

    @pytest.mark.parametrize("expression", ["0 9 * * 0", "0 9 * * 7"])
    def test_sunday_spellings_match_sunday(self, expression):
        parsed = parse_cron_expression(expression).unwrap()
        assert parsed.matches(parts(hour=9, day_of_week=0))
        assert not parsed.matches(parts(hour=9, day_of_week=1))

    def test_range_ending_in_seven_includes_sunday(self):
        parsed = parse_cron_expression("0 9 * * 5-7").unwrap()
        assert {d for d in range(7) if parsed.matches(parts(hour=9, day_of_week=d))} == {0, 5, 6}

    def test_seven_does_not_alias_other_days(self):
        """Only Sunday is reachable through 7."""
        parsed = parse_cron_expression("0 9 * * 7").unwrap()
        assert not any(parsed.matches(parts(hour=9, day_of_week=d)) for d in range(1, 7))


class TestExpressions:
    """Test whole-expression parsing and matching."""

    def test_every_field_must_match(self):
        """Day-of-month and day-of-week are combined with AND."""
        parsed = parse_cron_expression("0 9 13 * 5").unwrap()
        assert parsed.matches(parts(hour=9, day_of_month=13, day_of_week=5))
        assert not parsed.matches(parts(hour=9, day_of_month=13, day_of_week=4))
        assert not parsed.matches(parts(hour=9, day_of_month=12, day_of_week=5))

    def test_extra_whitespace_tolerated(self):
        parsed = parse_cron_expression("  0   9 * *   1-5 ").unwrap()
        assert str(parsed) == "0 9 * * 1-5"

    @pytest.mark.parametrize("expression", ["", "* * * *", "* * * * * *"])
    def test_field_count(self, expression):
        result = parse_cron_expression(expression)
        assert result.is_err()
        assert "five fields" in str(result.error)

    def test_error_names_field_and_chains_cause(self):
        result = parse_cron_expression("0 24 * * *")
        error = result.error
        assert error.code == "CRON_EXPRESSION_INVALID"
        assert error.field == "hour"
        assert "hour" in str(error)
        assert error.__cause__ is not None

    @pytest.mark.parametrize(
        "expression",
        ["0 0 0 * *", "0 0 32 * *", "0 0 * 0 *", "0 0 * 13 *", "60 * * * *"],
    )
    def test_bounds(self, expression):
        assert validate_cron_expression(expression).is_err()

    def test_validate_ok(self):
        assert validate_cron_expression("*/5 9-17 * 1,4,7,10 1-5").is_ok()


class TestTimezonesAndParts:
    """Test timezone resolution and local field extraction."""

    def test_validate_timezone(self):
        assert validate_timezone("Europe/Berlin").is_ok()
        for bad in ("Mars/Olympus", "", "   "):
            result = validate_timezone(bad)
            assert result.is_err()
            assert result.error.code == "CRON_TIMEZONE_INVALID"

    def test_get_time_parts_localizes(self):
        """2026-02-11T23:30Z is Thursday 08:30 in Tokyo."""
        instant = datetime(2026, 2, 11, 23, 30, tzinfo=UTC)
        assert get_time_parts(instant, "Asia/Tokyo").unwrap() == TimeParts(30, 8, 12, 2, 4)

    def test_get_time_parts_utc_weekday(self):
        """2026-02-15 is a Sunday."""
        instant = datetime(2026, 2, 15, 12, 0, tzinfo=UTC)
        assert get_time_parts(instant, "UTC").unwrap().day_of_week == 0

    def test_get_time_parts_invalid_zone(self):
        assert get_time_parts(datetime(2026, 1, 1, tzinfo=UTC), "Nope/Zone").is_err()

    @pytest.mark.parametrize(
        ("name", "number"),
        [("Sun", 0), ("mon", 1), ("TUE", 2), ("Wednesday", 3), ("thu", 4), ("Fri", 5), ("sat", 6)],
    )
    def test_weekday_to_number(self, name, number):
        assert weekday_to_number(name).unwrap() == number

    def test_weekday_unknown_is_error(self):
        result = weekday_to_number("Funday")
        assert result.is_err()
        assert result.error.code == "CRON_WEEKDAY_INVALID"


class TestIsJobDue:
    """Test the due predicate."""

    def test_active_matching_job_is_due(self, job_factory):
        job = job_factory(schedule="0 9 * * *")
        assert is_job_due(job, datetime(2026, 2, 11, 9, 0, tzinfo=UTC))
        assert not is_job_due(job, datetime(2026, 2, 11, 9, 1, tzinfo=UTC))

    def test_paused_job_is_never_due(self, job_factory):
        job = job_factory(schedule="* * * * *", status=JobStatus.PAUSED, next_run_at=None)
        assert not is_job_due(job, datetime(2026, 2, 11, 9, 0, tzinfo=UTC))

    def test_evaluated_in_job_timezone(self, job_factory):
        job = job_factory(schedule="0 9 * * *", timezone="America/New_York")
        assert is_job_due(job, datetime(2026, 2, 11, 14, 0, tzinfo=UTC))
        assert not is_job_due(job, datetime(2026, 2, 11, 9, 0, tzinfo=UTC))


class TestDescribe:
    """Test human-readable descriptions."""

    @pytest.mark.parametrize(
        ("expression", "text"),
        [
            ("* * * * *", "Every minute"),
            ("*/15 * * * *", "Every 15 minutes"),
            ("0 * * * *", "Every hour"),
            ("0 9 * * *", "At 09:00"),
            ("30 8 * * 1-5", "At 08:30 on day of week 1-5"),
            ("0 0 1 * *", "At 00:00 on day 1"),
            ("bad", "Invalid cron expression"),
        ],
    )
    def test_describe(self, expression, text):
        assert describe(expression) == text


@pytest.fixture
def foreign_time_locale():
    """Switch LC_TIME to a non-English locale for one test."""
    previous = locale.setlocale(locale.LC_TIME)
    for name in ("de_DE.UTF-8", "de_DE.utf8", "fr_FR.UTF-8", "fr_FR.utf8"):
        try:
            locale.setlocale(locale.LC_TIME, name)
        except locale.Error:
            continue
        break
    else:
        pytest.skip("no non-English LC_TIME locale installed")
    yield
    locale.setlocale(locale.LC_TIME, previous)


class TestWeekdayExtraction:
    """Weekdays come from the calendar, whatever the process locale."""

    def test_full_week(self):
        sunday = datetime(2026, 2, 15, 12, 0, tzinfo=UTC)
        weekdays = [
            get_time_parts(sunday + timedelta(days=offset), "UTC").unwrap().day_of_week
            for offset in range(7)
        ]
        assert weekdays == [0, 1, 2, 3, 4, 5, 6]

    def test_independent_of_lc_time(self, foreign_time_locale):
        wednesday = datetime(2026, 2, 11, 10, 0, tzinfo=UTC)
        assert get_time_parts(wednesday, "UTC").unwrap().day_of_week == 3
        assert compute_next_run("0 9 * * 0", "UTC", wednesday).unwrap() == datetime(
            2026, 2, 15, 9, 0, tzinfo=UTC
        )
