"""
Shared pytest fixtures and configuration for cronspine tests.

This module provides:
- A mutable fake clock for deterministic scheduling tests
- Auto-marking of tests by location

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments:

    def test_something(clock):
        clock.advance(minutes=1)
"""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest


class FakeClock:
    """Manually advanced clock; call it like ``utc_now``."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at 2026-02-11T10:00:00Z until advanced."""
    return FakeClock(datetime(2026, 2, 11, 10, 0, tzinfo=UTC))


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    root = Path(__file__).parent
    for item in items:
        parts = Path(item.fspath).relative_to(root).parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
