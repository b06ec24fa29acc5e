"""Conflict feed service: the read API over the fetch coordinator.

One ``ConflictFeedService`` is built at application startup (see
``build_conflict_feed_service``) and shared by every request; it owns the
adapters, cache and source health for the life of the process.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Any, Callable, Optional

from models.conflict import ConflictEvent, DashboardMetrics, DataSource, SeverityLevel
from utils.logger import feed_logger
from utils.retry import RetryPolicy
from utils.utcnow import to_iso, utcnow

from .adapters import ACLEDAdapter, ManualEventsAdapter, NewsFeedAdapter, SocialFeedAdapter
from .adapters.base import SourceAdapter
from .cache import TTLCache
from .coordinator import FeedSnapshot, FetchCoordinator
from .data_quality import build_data_quality_report
from .deduplicator import DedupPolicy
from .metrics import LocationStats, calculate_dashboard_metrics, calculate_location_stats, filter_events_by_time_range
from .normalizer import Normalizer


class ConflictFeedService:
    def __init__(self, coordinator: FetchCoordinator, clock: Callable[[], datetime] = utcnow) -> None:
        self.coordinator = coordinator
        self._clock = clock

    # -- feed reads ----------------------------------------------------------

    async def get_feed(self, force_refresh: bool = False) -> FeedSnapshot:
        return await self.coordinator.get_all(force_refresh)

    async def get_all_events(self, force_refresh: bool = False) -> list[ConflictEvent]:
        snapshot = await self.coordinator.get_all(force_refresh)
        return snapshot.events

    async def get_events(self, time_range: str = "all", force_refresh: bool = False) -> FeedSnapshot:
        """Feed snapshot narrowed to a named trailing window."""
        snapshot = await self.coordinator.get_all(force_refresh)
        events = filter_events_by_time_range(snapshot.events, time_range, self._clock())
        return dataclasses.replace(snapshot, events=events)

    async def get_critical_events(self, force_refresh: bool = False) -> list[ConflictEvent]:
        snapshot = await self.coordinator.get_critical(force_refresh)
        return snapshot.events

    async def get_events_by_location(self, query: str) -> list[ConflictEvent]:
        """Case-insensitive substring match on the event location."""
        needle = " ".join((query or "").split()).lower()
        if not needle:
            return []
        events = await self.get_all_events()
        return [e for e in events if needle in e.location.lower()]

    async def get_events_by_severity(self, tier: SeverityLevel | str) -> list[ConflictEvent]:
        level = SeverityLevel(str(getattr(tier, "value", tier)).strip().lower())
        events = await self.get_all_events()
        return [e for e in events if e.severity == level]

    async def get_location_stats(self, location: str) -> LocationStats:
        events = await self.get_all_events()
        return calculate_location_stats(events, location, self._clock())

    # -- derived views -------------------------------------------------------

    async def get_dashboard_metrics(self) -> DashboardMetrics:
        snapshot = await self.coordinator.get_all()
        return calculate_dashboard_metrics(
            snapshot.events,
            now=self._clock(),
            stale=snapshot.stale,
            data_last_updated=snapshot.fetched_at,
        )

    async def get_data_quality_report(self) -> dict[str, Any]:
        snapshot = await self.coordinator.get_all()
        report = build_data_quality_report(
            snapshot.events,
            now=self._clock(),
            policy=self.coordinator.dedup_policy,
            normalization=self.coordinator.last_report,
        )
        report["stale"] = snapshot.stale
        report["data_last_updated"] = to_iso(snapshot.fetched_at)
        return report

    def get_source_status(self) -> dict[str, dict[str, Any]]:
        return self.coordinator.status.snapshot()

    def get_performance_metrics(self) -> dict[str, Any]:
        statuses = self.coordinator.status.snapshot()
        cache = self.coordinator.cache
        return {
            "sources": {
                "total": len(statuses),
                "enabled": sum(1 for s in statuses.values() if s["enabled"]),
                "healthy": sum(1 for s in statuses.values() if s["enabled"] and s["healthy"]),
            },
            "cache": {
                "size": len(cache),
                "keys": cache.keys(),
                "refreshing": self.coordinator.is_refreshing(),
            },
            "refresh_count": self.coordinator.refresh_count,
            "last_refresh_seconds": self.coordinator.last_refresh_seconds,
            "last_update": to_iso(self.coordinator.status.last_update()),
        }

    # -- lifecycle -----------------------------------------------------------

    def clear_cache(self) -> None:
        self.coordinator.clear()
        feed_logger.info("Conflict feed cache cleared")

    async def aclose(self) -> None:
        await self.coordinator.aclose()


def build_adapters(settings: Any) -> list[SourceAdapter]:
    adapters: list[SourceAdapter] = [
        ACLEDAdapter.from_settings(settings),
        NewsFeedAdapter.from_settings(settings),
        SocialFeedAdapter.from_settings(settings),
    ]
    if settings.CONFLICT_FEED_MANUAL_EVENTS_FILE:
        adapters.append(ManualEventsAdapter.from_settings(settings))
    return adapters


def build_conflict_feed_service(
    settings: Any,
    adapters: Optional[list[SourceAdapter]] = None,
    clock: Callable[[], datetime] = utcnow,
) -> ConflictFeedService:
    """Wire adapters, policies and cache from settings. Raises ConfigurationError."""
    adapters = build_adapters(settings) if adapters is None else adapters
    coordinator = FetchCoordinator(
        adapters,
        retry_policy=RetryPolicy.from_settings(settings),
        dedup_policy=DedupPolicy.from_settings(settings),
        normalizer=Normalizer(
            reliable_sources=[DataSource(s) for s in settings.CONFLICT_FEED_RELIABLE_SOURCES],
        ),
        cache=TTLCache(clock=clock),
        ttl_seconds=settings.CONFLICT_FEED_CACHE_TTL_SECONDS,
        critical_ttl_seconds=settings.CONFLICT_FEED_CRITICAL_CACHE_TTL_SECONDS,
        fetch_window_days=settings.CONFLICT_FEED_FETCH_WINDOW_DAYS,
        unhealthy_after=settings.CONFLICT_FEED_UNHEALTHY_AFTER_ERRORS,
    )
    for adapter in adapters:
        if adapter.enabled and not adapter.is_configured():
            feed_logger.warning("Source enabled but not configured", source=adapter.name)
    feed_logger.info(
        "Conflict feed service ready",
        sources=[a.name for a in adapters],
        enabled=[a.name for a in adapters if a.enabled],
    )
    return ConflictFeedService(coordinator, clock=clock)
