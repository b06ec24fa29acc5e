"""Concurrent multi-source refresh with caching and single-flight.

One refresh pass fans out a retry-wrapped ``fetch_recent`` per enabled
adapter, waits for all of them to settle, then normalizes, de-duplicates
and sorts the surviving batches before writing the cache.  Callers never
see an exception from here: a total outage yields the last cached feed
flagged stale, or an empty one.
"""

from __future__ import annotations

import asyncio
import dataclasses
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Sequence

from models.conflict import ConflictEvent
from utils.logger import feed_logger, quality_logger
from utils.retry import RetryExecutor, RetryPolicy

from .adapters.base import FetchParams, SourceAdapter
from .cache import CacheEntry, SingleFlight, TTLCache
from .deduplicator import DedupPolicy, dedupe
from .errors import ConfigurationError, SourceNotConfiguredError
from .merger import merge_and_sort
from .normalizer import NormalizationReport, Normalizer
from .severity import is_high_or_critical
from .source_status import SourceStatus, SourceStatusRegistry

ALL_EVENTS_KEY = "all_events"
CRITICAL_EVENTS_KEY = "critical_events"


@dataclass
class FeedSnapshot:
    """What a feed read returns: the events plus how fresh they are."""

    events: list[ConflictEvent] = field(default_factory=list)
    fetched_at: Optional[datetime] = None
    stale: bool = False
    from_cache: bool = False
    source_count: int = 0

    @classmethod
    def from_entry(cls, entry: CacheEntry, stale: bool = False) -> FeedSnapshot:
        return cls(
            events=list(entry.payload),
            fetched_at=entry.fetched_at,
            stale=stale,
            from_cache=True,
            source_count=entry.source_count,
        )


class FetchCoordinator:
    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        retry_policy: Optional[RetryPolicy] = None,
        dedup_policy: Optional[DedupPolicy] = None,
        normalizer: Optional[Normalizer] = None,
        cache: Optional[TTLCache] = None,
        ttl_seconds: float = 300,
        critical_ttl_seconds: float = 300,
        fetch_window_days: float = 14,
        unhealthy_after: int = 1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not adapters:
            raise ConfigurationError("at least one source adapter must be configured")
        names = [adapter.name for adapter in adapters]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"duplicate source names: {', '.join(duplicates)}")
        if any(not name for name in names):
            raise ConfigurationError("every source adapter needs a name")

        self.adapters = list(adapters)
        self.cache = cache or TTLCache()
        self.status = SourceStatusRegistry(
            SourceStatus(
                name=adapter.name,
                source=adapter.source,
                enabled=adapter.enabled,
                unhealthy_after=unhealthy_after,
            )
            for adapter in self.adapters
        )

        policy = retry_policy or RetryPolicy()
        # Missing credentials will not fix themselves between attempts.
        policy = dataclasses.replace(
            policy,
            fatal_exceptions=tuple({*policy.fatal_exceptions, SourceNotConfiguredError}),
        )
        self.retry_policy = policy
        self._executor = RetryExecutor(policy, status_sink=self.status, sleep=sleep, rng=rng)
        self.dedup_policy = dedup_policy or DedupPolicy()
        self.normalizer = normalizer or Normalizer()
        self.ttl_seconds = ttl_seconds
        self.critical_ttl_seconds = critical_ttl_seconds
        self.fetch_window = timedelta(days=fetch_window_days)
        self._flights: SingleFlight[FeedSnapshot] = SingleFlight()
        self.last_report: Optional[NormalizationReport] = None
        self.last_refresh_seconds: Optional[float] = None
        self.refresh_count = 0

    # -- reads ---------------------------------------------------------------

    async def get_all(self, force_refresh: bool = False) -> FeedSnapshot:
        if not force_refresh:
            entry = self.cache.get_fresh(ALL_EVENTS_KEY)
            if entry is not None:
                return FeedSnapshot.from_entry(entry)
        try:
            return await self._flights.run(ALL_EVENTS_KEY, self._refresh_all)
        except Exception:
            feed_logger.exception("Feed refresh crashed, serving fallback", key=ALL_EVENTS_KEY)
            return self._fallback(ALL_EVENTS_KEY)

    async def get_critical(self, force_refresh: bool = False) -> FeedSnapshot:
        """High and critical events, cached under their own key and TTL."""
        if not force_refresh:
            entry = self.cache.get_fresh(CRITICAL_EVENTS_KEY)
            if entry is not None:
                return FeedSnapshot.from_entry(entry)
        try:
            return await self._flights.run(
                CRITICAL_EVENTS_KEY, lambda: self._refresh_critical(force_refresh)
            )
        except Exception:
            feed_logger.exception("Critical refresh crashed, serving fallback", key=CRITICAL_EVENTS_KEY)
            return self._fallback(CRITICAL_EVENTS_KEY)

    def clear(self) -> None:
        """Drop every cache entry and stop tracking in-flight refreshes."""
        self.cache.clear()
        self._flights.clear()

    def is_refreshing(self, key: str = ALL_EVENTS_KEY) -> bool:
        return self._flights.in_flight(key)

    async def aclose(self) -> None:
        await asyncio.gather(
            *(adapter.aclose() for adapter in self.adapters),
            return_exceptions=True,
        )

    # -- refresh passes ------------------------------------------------------

    def _fallback(self, key: str) -> FeedSnapshot:
        entry = self.cache.get(key)
        if entry is not None:
            feed_logger.warning(
                "Serving stale feed",
                key=key,
                age_seconds=round(entry.age_seconds(self.cache.now()), 1),
                events=len(entry.payload),
            )
            return FeedSnapshot.from_entry(entry, stale=True)
        feed_logger.warning("No data available from any source", key=key)
        return FeedSnapshot(stale=True)

    async def _refresh_all(self) -> FeedSnapshot:
        started = time.monotonic()
        fetched_at = self.cache.now()
        params = FetchParams(since=fetched_at - self.fetch_window, until=fetched_at)
        active = [adapter for adapter in self.adapters if adapter.enabled]

        results = await asyncio.gather(
            *(
                self._executor.run(
                    lambda adapter=adapter: adapter.fetch_recent(params),
                    adapter.name,
                )
                for adapter in active
            ),
            return_exceptions=True,
        )

        batches = []
        for adapter, result in zip(active, results):
            if isinstance(result, BaseException):
                # The executor absorbs upstream errors; this is a bug path.
                feed_logger.error(
                    "Source fetch raised past the retry executor",
                    source=adapter.name,
                    error=repr(result),
                )
                self.status.record_failure(adapter.name, repr(result))
                continue
            if result is None:
                continue
            batches.append((adapter, result))

        self.refresh_count += 1
        self.last_refresh_seconds = round(time.monotonic() - started, 3)

        if not batches:
            return self._fallback(ALL_EVENTS_KEY)

        report = NormalizationReport()
        normalized: list[ConflictEvent] = []
        for adapter, records in batches:
            events, _ = self.normalizer.normalize_batch(records, fetched_at, report)
            normalized.extend(events)
        self.last_report = report

        if report.rejected or report.timestamp_substituted or report.timestamp_clamped:
            quality_logger.warning("Records healed or rejected during normalization", **report.as_dict())
        else:
            quality_logger.debug("Normalization pass clean", **report.as_dict())

        merged = merge_and_sort(dedupe(normalized, self.dedup_policy))
        entry = self.cache.set(
            ALL_EVENTS_KEY,
            merged,
            self.ttl_seconds,
            source_count=len(batches),
            fetched_at=fetched_at,
        )
        feed_logger.info(
            "Feed refreshed",
            sources_ok=len(batches),
            sources_total=len(active),
            normalized=len(normalized),
            events=len(merged),
            duration_seconds=self.last_refresh_seconds,
        )
        return FeedSnapshot(
            events=list(merged),
            fetched_at=entry.fetched_at,
            source_count=entry.source_count,
        )

    async def _refresh_critical(self, force_refresh: bool) -> FeedSnapshot:
        snapshot = await self.get_all(force_refresh)
        critical = [event for event in snapshot.events if is_high_or_critical(event)]
        if snapshot.stale:
            # Derived from stale data: hand it out but do not cache it as fresh.
            return dataclasses.replace(snapshot, events=critical)
        entry = self.cache.set(
            CRITICAL_EVENTS_KEY,
            critical,
            self.critical_ttl_seconds,
            source_count=snapshot.source_count,
        )
        return FeedSnapshot(
            events=list(critical),
            fetched_at=entry.fetched_at,
            source_count=entry.source_count,
        )
