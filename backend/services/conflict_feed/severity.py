"""Severity scoring for single events and the feed-wide threat level.

Both functions are pure: ``now`` is always passed in, so a given event
scores the same no matter when or how often it is classified.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from models.conflict import ConflictEvent, DataSource, EventCategory, SeverityLevel, ThreatLevel
from utils.utcnow import ensure_utc

# (minimum fatalities, points); first matching row wins.
_FATALITY_POINTS: tuple[tuple[int, int], ...] = (
    (100, 40),
    (50, 35),
    (25, 30),
    (10, 25),
    (5, 20),
    (1, 15),
)
_ZERO_FATALITY_POINTS = 5

_CATEGORY_POINTS: dict[EventCategory, int] = {
    EventCategory.BOMBING: 30,
    EventCategory.AIRSTRIKE: 30,
    EventCategory.BATTLE: 25,
    EventCategory.VIOLENCE_AGAINST_CIVILIANS: 20,
    EventCategory.CYBER_ATTACK: 15,
    EventCategory.HUMANITARIAN: 10,
    EventCategory.STRATEGIC_DEVELOPMENT: 10,
    EventCategory.OTHER: 10,
    EventCategory.PROTEST: 5,
    EventCategory.RIOT: 5,
}

_SOURCE_POINTS: dict[DataSource, int] = {
    DataSource.STRUCTURED_API: 10,
    DataSource.INTELLIGENCE: 10,
    DataSource.NEWS: 8,
    DataSource.MANUAL: 8,
    DataSource.SOCIAL: 5,
}

_VERIFIED_POINTS = 10

_RECENCY_POINTS: tuple[tuple[timedelta, int], ...] = (
    (timedelta(hours=6), 10),
    (timedelta(hours=24), 5),
)

_SEVERITY_THRESHOLDS: tuple[tuple[int, SeverityLevel], ...] = (
    (75, SeverityLevel.CRITICAL),
    (55, SeverityLevel.HIGH),
    (35, SeverityLevel.MEDIUM),
)


def fatality_points(fatalities: int) -> int:
    for minimum, points in _FATALITY_POINTS:
        if fatalities >= minimum:
            return points
    return _ZERO_FATALITY_POINTS


def score(event: ConflictEvent, now: datetime) -> int:
    """Numeric severity score in [0, 100]."""
    total = fatality_points(event.fatalities)
    total += _CATEGORY_POINTS.get(event.category, _CATEGORY_POINTS[EventCategory.OTHER])
    total += _SOURCE_POINTS.get(event.source, 0)
    if event.verified:
        total += _VERIFIED_POINTS

    age = ensure_utc(now) - ensure_utc(event.timestamp)
    for window, points in _RECENCY_POINTS:
        if age <= window:
            total += points
            break

    return max(0, min(100, total))


def level_for_score(value: int) -> SeverityLevel:
    for minimum, level in _SEVERITY_THRESHOLDS:
        if value >= minimum:
            return level
    return SeverityLevel.LOW


def classify(event: ConflictEvent, now: datetime) -> SeverityLevel:
    return level_for_score(score(event, now))


def is_high_or_critical(event: ConflictEvent) -> bool:
    return event.severity in (SeverityLevel.HIGH, SeverityLevel.CRITICAL)


# (critical events, fatalities, level); the first triggered row wins.
_THREAT_THRESHOLDS: tuple[tuple[int, int, ThreatLevel], ...] = (
    (5, 200, ThreatLevel.CRITICAL),
    (3, 100, ThreatLevel.SEVERE),
    (1, 50, ThreatLevel.HIGH),
)
_ELEVATED_EVENT_COUNT = 10


def global_threat_level(events: Iterable[ConflictEvent], now: datetime) -> ThreatLevel:
    """Threat level over the trailing 24 hours."""
    now = ensure_utc(now)
    cutoff = now - timedelta(hours=24)
    recent = [e for e in events if cutoff <= ensure_utc(e.timestamp) <= now]

    critical_count = sum(1 for e in recent if e.severity == SeverityLevel.CRITICAL)
    fatalities = sum(e.fatalities for e in recent)

    for min_critical, min_fatalities, level in _THREAT_THRESHOLDS:
        if critical_count >= min_critical or fatalities >= min_fatalities:
            return level
    if len(recent) >= _ELEVATED_EVENT_COUNT:
        return ThreatLevel.ELEVATED
    return ThreatLevel.MINIMAL
