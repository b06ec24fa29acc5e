"""Cross-source duplicate removal keyed on what happened, where and when."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Iterable, Optional

from models.conflict import ConflictEvent


@dataclass(frozen=True)
class DedupPolicy:
    coordinate_precision: int = 2
    time_bucket_seconds: int = 86400  # one UTC day
    include_category: bool = True

    def __post_init__(self) -> None:
        if self.coordinate_precision < 0:
            raise ValueError("coordinate_precision must be >= 0")
        if self.time_bucket_seconds <= 0:
            raise ValueError("time_bucket_seconds must be > 0")

    @classmethod
    def from_settings(cls, settings: Any) -> "DedupPolicy":
        return cls(
            coordinate_precision=int(settings.CONFLICT_FEED_DEDUP_COORDINATE_PRECISION),
            time_bucket_seconds=int(settings.CONFLICT_FEED_DEDUP_TIME_BUCKET_SECONDS),
            include_category=bool(settings.CONFLICT_FEED_DEDUP_INCLUDE_CATEGORY),
        )


def dedupe_key(event: ConflictEvent, policy: DedupPolicy = DedupPolicy()) -> tuple[Hashable, ...]:
    """Identity of an incident across sources. Never uses ``event.id``."""
    location = " ".join(event.location.split()).lower()

    coords: Optional[tuple[float, float]] = None
    if event.coordinates.is_known:
        coords = (
            round(event.coordinates.lat, policy.coordinate_precision),
            round(event.coordinates.lng, policy.coordinate_precision),
        )

    bucket = int(event.timestamp.timestamp() // policy.time_bucket_seconds)
    category = event.category.value if policy.include_category else None
    return (location, coords, bucket, category)


def dedupe(events: Iterable[ConflictEvent], policy: DedupPolicy = DedupPolicy()) -> list[ConflictEvent]:
    """Keep the first event per key, in input order. Later duplicates are dropped."""
    seen: set[tuple[Hashable, ...]] = set()
    unique: list[ConflictEvent] = []
    for event in events:
        key = dedupe_key(event, policy)
        if key in seen:
            continue
        seen.add(key)
        unique.append(event)
    return unique
