"""Dashboard statistics derived from the merged feed.

All windows are fixed offsets back from ``now`` (never calendar-day
truncation): "today" is the trailing 24 hours, "yesterday" the 24 hours
before that.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

from models.conflict import ConflictEvent, DashboardMetrics, PercentageChanges
from utils.utcnow import ensure_utc

from .severity import global_threat_level, is_high_or_critical

DAY = timedelta(hours=24)
WEEK = timedelta(days=7)

TIME_RANGES: dict[str, Optional[timedelta]] = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": DAY,
    "7d": WEEK,
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "all": None,
}


def calculate_percentage_change(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100.0


def events_in_window(
    events: Iterable[ConflictEvent],
    start: datetime,
    end: datetime,
    include_end: bool = True,
) -> list[ConflictEvent]:
    start, end = ensure_utc(start), ensure_utc(end)
    if include_end:
        return [e for e in events if start <= e.timestamp <= end]
    return [e for e in events if start <= e.timestamp < end]


def count_events_in_window(
    events: Iterable[ConflictEvent],
    start: datetime,
    end: datetime,
    include_end: bool = True,
) -> int:
    return len(events_in_window(events, start, end, include_end))


def filter_events_by_time_range(
    events: Iterable[ConflictEvent],
    time_range: str,
    now: datetime,
) -> list[ConflictEvent]:
    """Events inside a named trailing window ("1h" ... "90d", or "all")."""
    if time_range not in TIME_RANGES:
        raise ValueError(f"Unknown time range {time_range!r}; expected one of {', '.join(TIME_RANGES)}")
    span = TIME_RANGES[time_range]
    if span is None:
        return list(events)
    now = ensure_utc(now)
    return events_in_window(events, now - span, now)


def _fatalities(events: Iterable[ConflictEvent]) -> int:
    return sum(e.fatalities for e in events)


def _distinct_locations(events: Iterable[ConflictEvent]) -> int:
    return len({" ".join(e.location.split()).lower() for e in events})


def calculate_dashboard_metrics(
    events: list[ConflictEvent],
    now: datetime,
    stale: bool = False,
    data_last_updated: Optional[datetime] = None,
) -> DashboardMetrics:
    now = ensure_utc(now)

    today = events_in_window(events, now - DAY, now)
    yesterday = events_in_window(events, now - 2 * DAY, now - DAY, include_end=False)

    locations_now = _distinct_locations(events_in_window(events, now - WEEK, now))
    locations_before = _distinct_locations(
        events_in_window(events, now - 2 * WEEK, now - WEEK, include_end=False)
    )

    critical_now = sum(1 for e in today if is_high_or_critical(e))
    critical_before = sum(1 for e in yesterday if is_high_or_critical(e))

    fatalities_today = _fatalities(today)
    fatalities_yesterday = _fatalities(yesterday)

    return DashboardMetrics(
        events_today=len(today),
        fatalities_today=fatalities_today,
        events_yesterday=len(yesterday),
        fatalities_yesterday=fatalities_yesterday,
        active_locations=locations_now,
        critical_alerts=critical_now,
        global_threat_level=global_threat_level(events, now),
        percentage_changes=PercentageChanges(
            events=calculate_percentage_change(len(today), len(yesterday)),
            fatalities=calculate_percentage_change(fatalities_today, fatalities_yesterday),
            active_locations=calculate_percentage_change(locations_now, locations_before),
            critical_alerts=calculate_percentage_change(critical_now, critical_before),
        ),
        data_last_updated=data_last_updated or now,
        stale=stale,
    )


@dataclass
class LocationStats:
    location: str
    total_events: int = 0
    total_fatalities: int = 0
    recent_events: int = 0
    severity_breakdown: dict[str, int] = field(default_factory=dict)
    category_breakdown: dict[str, int] = field(default_factory=dict)
    trend: str = "stable"


# Baseline spread used to turn a location's total into a daily average.
_TREND_BASELINE_DAYS = 30


def calculate_location_stats(
    events: Iterable[ConflictEvent],
    location: str,
    now: datetime,
) -> LocationStats:
    """Totals, breakdowns and a rough trend for one location (case-insensitive)."""
    wanted = " ".join(location.split()).lower()
    matching = [e for e in events if " ".join(e.location.split()).lower() == wanted]
    recent = filter_events_by_time_range(matching, "24h", now)

    daily_average = len(matching) / _TREND_BASELINE_DAYS
    if len(recent) > daily_average * 1.2:
        trend = "increasing"
    elif len(recent) < daily_average * 0.8:
        trend = "decreasing"
    else:
        trend = "stable"

    return LocationStats(
        location=location,
        total_events=len(matching),
        total_fatalities=_fatalities(matching),
        recent_events=len(recent),
        severity_breakdown=dict(Counter(e.severity.value for e in matching)),
        category_breakdown=dict(Counter(e.category.value for e in matching)),
        trend=trend,
    )
