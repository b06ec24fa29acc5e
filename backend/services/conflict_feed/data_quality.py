"""Completeness and validity report over the merged feed."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Optional

from models.conflict import ConflictEvent, SeverityLevel
from utils.utcnow import ensure_utc, to_iso

from .deduplicator import DedupPolicy, dedupe_key
from .normalizer import NormalizationReport


def _pct(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


def calculate_completeness(events: list[ConflictEvent]) -> dict[str, int]:
    """Share of events (percent) carrying each optional field."""
    total = len(events)
    counts = {
        "coordinates": sum(1 for e in events if e.coordinates.is_known),
        "description": sum(1 for e in events if e.description),
        "actors": sum(1 for e in events if e.actors),
        "fatalities": sum(1 for e in events if e.fatalities > 0),
        "source_url": sum(1 for e in events if e.source_url),
    }
    out = {key: _pct(value, total) for key, value in counts.items()}
    out["overall"] = round(sum(out.values()) / len(counts)) if total else 0
    return out


def calculate_distribution(values: list[str]) -> dict[str, int]:
    total = len(values)
    return {key: _pct(count, total) for key, count in Counter(values).most_common()}


def calculate_temporal_coverage(events: list[ConflictEvent], now: datetime) -> dict[str, Any]:
    if not events:
        return {
            "earliest_event": None,
            "latest_event": None,
            "time_span_hours": 0,
            "events_last_24h": 0,
            "events_last_7d": 0,
        }
    now = ensure_utc(now)
    stamps = sorted(e.timestamp for e in events)
    return {
        "earliest_event": to_iso(stamps[0]),
        "latest_event": to_iso(stamps[-1]),
        "time_span_hours": round((stamps[-1] - stamps[0]).total_seconds() / 3600),
        "events_last_24h": sum(1 for ts in stamps if ts > now - timedelta(hours=24)),
        "events_last_7d": sum(1 for ts in stamps if ts > now - timedelta(days=7)),
    }


def find_duplicates(events: list[ConflictEvent], policy: DedupPolicy) -> dict[str, Any]:
    """Events that still share a dedup key. Non-zero means dedup did not run."""
    seen: dict[tuple, str] = {}
    examples = []
    count = 0
    for event in events:
        key = dedupe_key(event, policy)
        if key in seen:
            count += 1
            if len(examples) < 5:
                examples.append({"original": seen[key], "duplicate": event.id})
        else:
            seen[key] = event.id
    return {"count": count, "percentage": _pct(count, len(events)), "examples": examples}


def find_fatality_outliers(events: list[ConflictEvent]) -> dict[str, Any]:
    """Events above Q3 + 1.5 * IQR of the non-zero fatality counts."""
    values = sorted(e.fatalities for e in events if e.fatalities > 0)
    if not values:
        return {"count": 0, "percentage": 0, "threshold": None, "examples": []}
    q1 = values[int(len(values) * 0.25)]
    q3 = values[int(len(values) * 0.75)]
    upper = q3 + 1.5 * (q3 - q1)
    outliers = [e for e in events if e.fatalities > upper]
    return {
        "count": len(outliers),
        "percentage": _pct(len(outliers), len(events)),
        "threshold": upper,
        "examples": [
            {"id": e.id, "fatalities": e.fatalities, "location": e.location} for e in outliers[:3]
        ],
    }


def build_data_quality_report(
    events: list[ConflictEvent],
    now: datetime,
    policy: DedupPolicy = DedupPolicy(),
    normalization: Optional[NormalizationReport] = None,
) -> dict[str, Any]:
    completeness = calculate_completeness(events)
    duplicates = find_duplicates(events, policy)
    normalization_stats = normalization.as_dict() if normalization else NormalizationReport().as_dict()
    processed = normalization_stats["accepted"] + normalization_stats["rejected"]
    rejection_rate = _pct(normalization_stats["rejected"], processed)

    quality_score = round(
        0.4 * completeness["overall"]
        + 0.3 * (100 - rejection_rate)
        + 0.3 * (100 - duplicates["percentage"])
    )

    recommendations = []
    if completeness["coordinates"] < 80:
        recommendations.append("Improve geocoding: many events lack coordinates")
    if rejection_rate > 10:
        recommendations.append("Many upstream records were rejected for missing locations")
    if normalization_stats["timestamp_substituted"]:
        recommendations.append("Some sources publish records without usable timestamps")
    if duplicates["count"]:
        recommendations.append("Duplicate events reached the feed; check the dedup policy")

    return {
        "total_events": len(events),
        "quality_score": quality_score,
        "completeness": completeness,
        "verified_percentage": _pct(sum(1 for e in events if e.verified), len(events)),
        "source_distribution": calculate_distribution([e.source.value for e in events]),
        "severity_distribution": {
            level.value: _pct(sum(1 for e in events if e.severity == level), len(events))
            for level in SeverityLevel
        },
        "category_distribution": calculate_distribution([e.category.value for e in events]),
        "geographic_coverage": {
            "unique_locations": len({e.location for e in events}),
            "top_locations": [name for name, _ in Counter(e.location for e in events).most_common(10)],
        },
        "temporal_coverage": calculate_temporal_coverage(events, now),
        "duplicates": duplicates,
        "fatality_outliers": find_fatality_outliers(events),
        "normalization": {**normalization_stats, "rejection_rate": rejection_rate},
        "recommendations": recommendations,
    }
