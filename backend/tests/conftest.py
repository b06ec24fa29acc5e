"""Shared fixtures for conflict feed tests."""

import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from datetime import datetime, timedelta, timezone

import pytest

from models.conflict import (
    ConflictEvent,
    Coordinates,
    DataSource,
    EventCategory,
    SeverityLevel,
)
from utils.retry import RetryPolicy

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class MutableClock:
    """Callable clock that tests move forward by hand."""

    def __init__(self, start: datetime = NOW):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def fast_retry_policy():
    """Two attempts, no backoff, generous timeout."""
    return RetryPolicy(max_attempts=2, base_delay=0.0, max_delay=0.0, jitter=0.0, timeout=5.0)


@pytest.fixture
def no_sleep():
    delays = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def make_event():
    """Factory for normalized events; every field overridable."""
    counter = {"n": 0}

    def _make(**overrides) -> ConflictEvent:
        counter["n"] += 1
        values = dict(
            id=f"evt_{counter['n']}",
            title="Clash reported",
            location="Kharkiv",
            coordinates=Coordinates(lat=49.99, lng=36.23),
            timestamp=NOW - timedelta(hours=1),
            category=EventCategory.BATTLE,
            source=DataSource.STRUCTURED_API,
            fatalities=0,
            severity=SeverityLevel.LOW,
        )
        values.update(overrides)
        return ConflictEvent(**values)

    return _make
