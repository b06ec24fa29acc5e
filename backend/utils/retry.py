import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, Tuple, Type, TypeVar

import httpx

from utils.logger import get_logger

logger = get_logger("retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry behaviour for one upstream call."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: float = 1.0  # upper bound of the additive random delay, seconds
    timeout: float = 15.0  # hard cap per attempt, seconds
    retryable_status_codes: Tuple[int, ...] = (408, 425, 429, 500, 502, 503, 504)
    fatal_exceptions: Tuple[Type[BaseException], ...] = ()

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.base_delay < 0 or self.jitter < 0:
            raise ValueError("delays must be non-negative")

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "RetryPolicy":
        values = dict(
            max_attempts=int(settings.CONFLICT_FEED_RETRY_MAX_ATTEMPTS),
            base_delay=float(settings.CONFLICT_FEED_RETRY_BASE_DELAY_SECONDS),
            max_delay=float(settings.CONFLICT_FEED_RETRY_MAX_DELAY_SECONDS),
            jitter=float(settings.CONFLICT_FEED_RETRY_JITTER_SECONDS),
            timeout=float(settings.CONFLICT_FEED_FETCH_TIMEOUT_SECONDS),
        )
        values.update(overrides)
        return cls(**values)


def calculate_delay(attempt: int, policy: RetryPolicy, rng: random.Random = None) -> float:
    """Exponential backoff plus additive jitter: base * 2^attempt + U(0, jitter)."""
    delay = min(policy.base_delay * (policy.exponential_base**attempt), policy.max_delay)
    if policy.jitter > 0:
        delay += (rng or random).uniform(0.0, policy.jitter)
    return delay


def is_retryable_error(error: BaseException, policy: RetryPolicy) -> bool:
    """Transient failures are retried; client errors and fatal types are not."""
    if policy.fatal_exceptions and isinstance(error, policy.fatal_exceptions):
        return False

    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in policy.retryable_status_codes

    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        return status_code in policy.retryable_status_codes

    return True


class StatusSink(Protocol):
    def record_success(self, name: str, count: int, duration_seconds: float = 0.0) -> None: ...

    def record_failure(self, name: str, error: str, duration_seconds: float = 0.0) -> None: ...


class RetryExecutor:
    """Runs one source call with bounded retries, backoff and a hard timeout.

    Never raises for upstream failures: the caller gets the operation's
    result, or ``None`` once attempts are exhausted.  Outcomes are pushed
    to the status sink so source health stays current.
    """

    def __init__(
        self,
        policy: RetryPolicy = None,
        status_sink: Optional[StatusSink] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random = None,
    ):
        self.policy = policy or RetryPolicy()
        self.status_sink = status_sink
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def run(self, operation: Callable[[], Awaitable[T]], source_name: str) -> Optional[T]:
        log = logger.with_context(source=source_name)
        started = time.monotonic()
        last_error: Optional[BaseException] = None
        error_text = ""

        for attempt in range(self.policy.max_attempts):
            try:
                result = await asyncio.wait_for(operation(), timeout=self.policy.timeout)
            except asyncio.TimeoutError as e:
                last_error = e
                error_text = f"timed out after {self.policy.timeout:.1f}s"
            except Exception as e:
                last_error = e
                error_text = str(e) or type(e).__name__
            else:
                count = len(result) if hasattr(result, "__len__") else 0
                if self.status_sink is not None:
                    self.status_sink.record_success(
                        source_name, count, time.monotonic() - started
                    )
                if attempt:
                    log.info(
                        "Source recovered after retry",
                        attempt=attempt + 1,
                        count=count,
                    )
                return result

            if not is_retryable_error(last_error, self.policy):
                log.error(
                    "Non-retryable source error",
                    error=error_text,
                    error_type=type(last_error).__name__,
                )
                break

            if attempt < self.policy.max_attempts - 1:
                delay = calculate_delay(attempt, self.policy, self._rng)
                log.warning(
                    "Retrying source after error",
                    attempt=attempt + 1,
                    max_attempts=self.policy.max_attempts,
                    delay=round(delay, 3),
                    error=error_text,
                )
                await self._sleep(delay)
            else:
                log.error(
                    "All retry attempts exhausted",
                    attempts=self.policy.max_attempts,
                    error=error_text,
                )

        if self.status_sink is not None:
            self.status_sink.record_failure(
                source_name, error_text, time.monotonic() - started
            )
        return None
