"""Typed upstream records, one variant per provider family.

Adapters build these from whatever their upstream returns; values are
kept loosely typed (strings, numbers, ``None``) because healing bad input
is the normalizer's job.  ``extract_fields`` is the only place that knows
how each variant maps onto the normalizer's field bundle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from models.conflict import DataSource


@dataclass
class StructuredApiRecord:
    """One row from a curated event API (ACLED-style)."""

    event_id: str
    event_date: Any = None
    timestamp: Any = None
    event_type: str = ""
    sub_event_type: str = ""
    country: Optional[str] = None
    region: Optional[str] = None
    location: Optional[str] = None
    latitude: Any = None
    longitude: Any = None
    fatalities: Any = 0
    actor1: Optional[str] = None
    actor2: Optional[str] = None
    notes: str = ""
    source: Optional[str] = "acled"
    source_scale: Optional[str] = None

    @classmethod
    def from_api_row(cls, row: dict) -> StructuredApiRecord:
        """Parse a single row from the ACLED API response."""
        return cls(
            event_id=str(row.get("event_id_cnty") or row.get("data_id") or ""),
            event_date=row.get("event_date"),
            timestamp=row.get("timestamp"),
            event_type=str(row.get("event_type") or ""),
            sub_event_type=str(row.get("sub_event_type") or ""),
            country=row.get("country"),
            region=row.get("region"),
            location=row.get("location"),
            latitude=row.get("latitude"),
            longitude=row.get("longitude"),
            fatalities=row.get("fatalities", 0),
            actor1=row.get("actor1"),
            actor2=row.get("actor2"),
            notes=str(row.get("notes") or ""),
            source_scale=row.get("source_scale"),
        )


@dataclass
class NewsRecord:
    """One item from a scraped news or RSS feed."""

    item_id: str
    title: str
    summary: str = ""
    link: Optional[str] = None
    published: Any = None
    feed_name: str = ""
    location: Optional[str] = None
    country: Optional[str] = None
    latitude: Any = None
    longitude: Any = None
    fatalities: Any = 0
    category: Optional[str] = None


@dataclass
class SocialRecord:
    """One scraped social-media post."""

    post_id: str
    text: str
    created_at: Any = None
    author: Optional[str] = None
    url: Optional[str] = None
    location: Optional[str] = None
    country: Optional[str] = None
    latitude: Any = None
    longitude: Any = None
    fatalities: Any = 0
    category: Optional[str] = None
    verified: bool = False
    hashtags: list[str] = field(default_factory=list)
    source: Optional[str] = None


@dataclass
class ManualRecord:
    """Hand-entered or intelligence-desk record; mirrors the event shape."""

    id: str
    title: str = ""
    description: str = ""
    location: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    latitude: Any = None
    longitude: Any = None
    timestamp: Any = None
    category: Optional[str] = None
    source: Optional[str] = None
    fatalities: Any = 0
    actors: list[str] = field(default_factory=list)
    verified: bool = False
    tags: list[str] = field(default_factory=list)
    source_url: Optional[str] = None


RawRecord = Union[StructuredApiRecord, NewsRecord, SocialRecord, ManualRecord]


@dataclass
class RawFields:
    """Provider-neutral view of a raw record, consumed by the normalizer."""

    id: str
    default_source: DataSource
    title: str = ""
    description: str = ""
    place: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    latitude: Any = None
    longitude: Any = None
    timestamp: Any = None
    category: Optional[str] = None
    # Free text searched for category keywords, in priority order.
    category_hints: list[str] = field(default_factory=list)
    source: Optional[str] = None
    fatalities: Any = 0
    actors: list[str] = field(default_factory=list)
    verified: bool = False
    tags: list[str] = field(default_factory=list)
    source_url: Optional[str] = None


def _actors(*names: Optional[str]) -> list[str]:
    return [str(n).strip() for n in names if n and str(n).strip()]


def extract_fields(raw: RawRecord) -> RawFields:
    if isinstance(raw, StructuredApiRecord):
        title = raw.event_type or "Conflict event"
        if raw.country:
            title = f"{title} in {raw.country}"
        return RawFields(
            id=raw.event_id if raw.event_id.startswith("acled_") else f"acled_{raw.event_id}",
            default_source=DataSource.STRUCTURED_API,
            title=title,
            description=raw.notes,
            place=raw.location,
            country=raw.country,
            region=raw.region,
            latitude=raw.latitude,
            longitude=raw.longitude,
            # event_date is the incident day; timestamp is ACLED's upload time.
            timestamp=raw.event_date if raw.event_date not in (None, "") else raw.timestamp,
            category_hints=[raw.event_type, raw.sub_event_type, raw.notes],
            source=raw.source,
            fatalities=raw.fatalities,
            actors=_actors(raw.actor1, raw.actor2),
            # Curated upstream; the normalizer still gates this by source.
            verified=True,
            tags=[t for t in (raw.event_type, raw.sub_event_type) if t],
        )

    if isinstance(raw, NewsRecord):
        return RawFields(
            id=raw.item_id if raw.item_id.startswith("news_") else f"news_{raw.item_id}",
            default_source=DataSource.NEWS,
            title=raw.title,
            description=raw.summary,
            place=raw.location,
            country=raw.country,
            latitude=raw.latitude,
            longitude=raw.longitude,
            timestamp=raw.published,
            category=raw.category,
            category_hints=[raw.title, raw.summary],
            fatalities=raw.fatalities,
            tags=[raw.feed_name] if raw.feed_name else [],
            source_url=raw.link,
        )

    if isinstance(raw, SocialRecord):
        text = raw.text or ""
        return RawFields(
            id=raw.post_id if raw.post_id.startswith("twitter_") else f"twitter_{raw.post_id}",
            default_source=DataSource.SOCIAL,
            title=text[:100] + ("..." if len(text) > 100 else ""),
            description=text,
            place=raw.location,
            country=raw.country,
            latitude=raw.latitude,
            longitude=raw.longitude,
            timestamp=raw.created_at,
            category=raw.category,
            category_hints=[text],
            source=raw.source,
            fatalities=raw.fatalities,
            actors=_actors(raw.author),
            verified=bool(raw.verified),
            tags=list(raw.hashtags),
            source_url=raw.url,
        )

    if isinstance(raw, ManualRecord):
        return RawFields(
            id=raw.id,
            default_source=DataSource.MANUAL,
            title=raw.title,
            description=raw.description,
            place=raw.location,
            country=raw.country,
            region=raw.region,
            latitude=raw.latitude,
            longitude=raw.longitude,
            timestamp=raw.timestamp,
            category=raw.category,
            category_hints=[raw.title, raw.description],
            source=raw.source,
            fatalities=raw.fatalities,
            actors=list(raw.actors),
            verified=bool(raw.verified),
            tags=list(raw.tags),
            source_url=raw.source_url,
        )

    raise TypeError(f"Unsupported raw record type: {type(raw).__name__}")
