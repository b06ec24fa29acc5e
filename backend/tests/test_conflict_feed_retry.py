import asyncio
import random
import sys
from pathlib import Path

import httpx
import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from services.conflict_feed.errors import SourceFetchError, SourceNotConfiguredError
from utils.retry import RetryExecutor, RetryPolicy, calculate_delay, is_retryable_error


class _RecordingSink:
    def __init__(self):
        self.successes = []
        self.failures = []

    def record_success(self, name, count, duration_seconds=0.0):
        self.successes.append((name, count))

    def record_failure(self, name, error, duration_seconds=0.0):
        self.failures.append((name, error))


def test_calculate_delay_doubles_and_caps_without_jitter():
    policy = RetryPolicy(base_delay=1.0, max_delay=5.0, jitter=0.0)

    assert calculate_delay(0, policy) == 1.0
    assert calculate_delay(1, policy) == 2.0
    assert calculate_delay(2, policy) == 4.0
    assert calculate_delay(3, policy) == 5.0


def test_calculate_delay_jitter_stays_within_bound():
    policy = RetryPolicy(base_delay=1.0, max_delay=30.0, jitter=0.5)
    rng = random.Random(7)

    for attempt in range(4):
        delay = calculate_delay(attempt, policy, rng)
        base = 2.0**attempt
        assert base <= delay <= base + 0.5


def test_retry_policy_rejects_zero_attempts():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


def test_is_retryable_error_uses_status_codes_and_fatal_types():
    policy = RetryPolicy(fatal_exceptions=(SourceNotConfiguredError,))

    assert is_retryable_error(SourceFetchError("acled", "HTTP 503", status_code=503), policy)
    assert not is_retryable_error(SourceFetchError("acled", "HTTP 404", status_code=404), policy)
    assert not is_retryable_error(SourceNotConfiguredError("acled"), policy)
    assert is_retryable_error(httpx.ConnectError("boom"), policy)

    response = httpx.Response(401, request=httpx.Request("GET", "https://example.com"))
    auth_error = httpx.HTTPStatusError("unauthorized", request=response.request, response=response)
    assert not is_retryable_error(auth_error, policy)


@pytest.mark.asyncio
async def test_executor_retries_then_succeeds(fast_retry_policy, no_sleep):
    sink = _RecordingSink()
    calls = {"n": 0}

    async def flaky():
        calls["n"] += 1
        if calls["n"] == 1:
            raise SourceFetchError("news", "HTTP 502", status_code=502)
        return ["a", "b"]

    executor = RetryExecutor(fast_retry_policy, status_sink=sink, sleep=no_sleep)
    result = await executor.run(flaky, "news")

    assert result == ["a", "b"]
    assert calls["n"] == 2
    assert no_sleep.delays == [0.0]
    assert sink.successes == [("news", 2)]
    assert sink.failures == []


@pytest.mark.asyncio
async def test_executor_returns_none_after_exhausting_attempts(no_sleep):
    sink = _RecordingSink()
    calls = {"n": 0}

    async def always_down():
        calls["n"] += 1
        raise SourceFetchError("social", "HTTP 503", status_code=503)

    policy = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0, jitter=0.0, timeout=5.0)
    executor = RetryExecutor(policy, status_sink=sink, sleep=no_sleep)

    assert await executor.run(always_down, "social") is None
    assert calls["n"] == 3
    # No sleep after the final attempt.
    assert no_sleep.delays == [1.0, 2.0]
    assert sink.failures == [("social", "social: HTTP 503")]


@pytest.mark.asyncio
async def test_executor_stops_on_fatal_error(no_sleep):
    sink = _RecordingSink()
    calls = {"n": 0}

    async def unconfigured():
        calls["n"] += 1
        raise SourceNotConfiguredError("acled")

    policy = RetryPolicy(max_attempts=3, fatal_exceptions=(SourceNotConfiguredError,))
    executor = RetryExecutor(policy, status_sink=sink, sleep=no_sleep)

    assert await executor.run(unconfigured, "acled") is None
    assert calls["n"] == 1
    assert no_sleep.delays == []
    assert sink.failures == [("acled", "acled: credentials_missing")]


@pytest.mark.asyncio
async def test_executor_enforces_per_attempt_timeout(no_sleep):
    sink = _RecordingSink()

    async def hangs():
        await asyncio.sleep(10)
        return []

    policy = RetryPolicy(max_attempts=2, base_delay=0.0, jitter=0.0, timeout=0.01)
    executor = RetryExecutor(policy, status_sink=sink, sleep=no_sleep)

    assert await executor.run(hangs, "slow") is None
    assert len(sink.failures) == 1
    assert "timed out" in sink.failures[0][1]
