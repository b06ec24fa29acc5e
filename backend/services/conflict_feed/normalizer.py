"""Raw record -> ConflictEvent normalization and validation.

A record is rejected only when no location can be resolved.  Every other
defect is healed: bad coordinates become the (0, 0) sentinel, unusable
timestamps fall back to the fetch time, unknown categories become
``other``.  Healing is counted in a ``NormalizationReport``.
"""

from __future__ import annotations

import hashlib
import logging
import math
import re
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable, Optional

from models.conflict import ConflictEvent, Coordinates, DataSource, EventCategory, SeverityLevel
from utils.utcnow import ensure_utc, utcfromtimestamp

from .catalogs import (
    LocationCatalog,
    RegionCatalog,
    TaxonomyCatalog,
    location_catalog,
    region_catalog,
    taxonomy_catalog,
)
from .raw_records import RawFields, RawRecord, extract_fields
from .severity import classify

logger = logging.getLogger(__name__)

DEFAULT_RELIABLE_SOURCES = frozenset({DataSource.STRUCTURED_API, DataSource.INTELLIGENCE})

_TIMESTAMP_FORMATS = (
    "%a, %d %b %Y %H:%M:%S %z",
    "%a, %d %b %Y %H:%M:%S %Z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%d %B %Y",
    "%d %b %Y",
)

# Epoch values above this are taken as milliseconds (year ~5138 in seconds).
_EPOCH_MS_THRESHOLD = 1e11

_NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$")
_BARE_PREFIX_RE = re.compile(r"^[a-z]+_$")


@dataclass
class NormalizationReport:
    """Per-pass counters for healed and rejected records."""

    accepted: int = 0
    rejected: int = 0
    timestamp_substituted: int = 0
    timestamp_clamped: int = 0
    coordinates_invalid: int = 0
    category_fallback: int = 0

    @property
    def total(self) -> int:
        return self.accepted + self.rejected

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Best-effort conversion of an upstream timestamp to aware UTC.

    Accepts datetimes (naive ones are UTC), dates, epoch seconds or
    milliseconds, ISO-8601, plain dates and RFC-2822 strings.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _from_epoch(float(value))

    text = str(value).strip()
    if not text:
        return None
    if _NUMERIC_RE.match(text):
        return _from_epoch(float(text))

    try:
        return ensure_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return ensure_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue
    try:
        return ensure_utc(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        return None


def _from_epoch(value: float) -> Optional[datetime]:
    if not math.isfinite(value) or value <= 0:
        return None
    if value > _EPOCH_MS_THRESHOLD:
        value /= 1000.0
    try:
        return utcfromtimestamp(value)
    except (OverflowError, OSError, ValueError):
        return None


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_coordinates(lat: Any, lng: Any) -> tuple[Coordinates, bool]:
    """Return (coordinates, was_invalid).

    Missing on both axes is simply unknown; anything present but unusable
    (one axis only, non-numeric, NaN, out of range) is flagged invalid.
    """
    if lat in (None, "") and lng in (None, ""):
        return Coordinates.unknown(), False
    lat_f = _to_float(lat)
    lng_f = _to_float(lng)
    if lat_f is None or lng_f is None:
        return Coordinates.unknown(), True
    if not (-90.0 <= lat_f <= 90.0 and -180.0 <= lng_f <= 180.0):
        return Coordinates.unknown(), True
    return Coordinates(lat=lat_f, lng=lng_f), False


def parse_fatalities(value: Any) -> int:
    number = _to_float(value)
    if number is None:
        return 0
    return max(0, int(number))


def _clean_text(value: Any) -> str:
    return " ".join(str(value).split()) if value is not None else ""


def _stable_event_id(prefix: str, *parts: str) -> str:
    digest = hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:16]
    return f"{prefix}{digest}"


class Normalizer:
    def __init__(
        self,
        reliable_sources: Iterable[Any] = DEFAULT_RELIABLE_SOURCES,
        taxonomy: TaxonomyCatalog = taxonomy_catalog,
        regions: RegionCatalog = region_catalog,
        locations: LocationCatalog = location_catalog,
    ) -> None:
        self.reliable_sources = frozenset(DataSource(str(getattr(s, "value", s)).lower()) for s in reliable_sources)
        self._taxonomy = taxonomy
        self._regions = regions
        self._locations = locations

    # -- field resolution ----------------------------------------------------

    def resolve_location(self, fields: RawFields, coordinates: Coordinates) -> Optional[str]:
        """Place -> country -> region -> macro-region from coordinates."""
        for candidate in (fields.place, fields.country, fields.region):
            if not self._locations.is_placeholder(candidate):
                return self._locations.canonical_name(_clean_text(candidate))
        if coordinates.is_known:
            return self._regions.macro_region_for(coordinates.lat, coordinates.lng)
        return None

    def resolve_category(self, fields: RawFields) -> Optional[EventCategory]:
        """Exact enum value, then ordered keyword rules. ``None`` means no match."""
        explicit = _clean_text(fields.category).lower()
        if explicit:
            try:
                return EventCategory(explicit.replace(" ", "_"))
            except ValueError:
                pass

        rules = self._taxonomy.category_rules()
        for text in [explicit, *fields.category_hints]:
            haystack = _clean_text(text).lower()
            if not haystack:
                continue
            for category, keywords in rules:
                if any(word in haystack for word in keywords):
                    return category
        return None

    def resolve_source(self, fields: RawFields) -> DataSource:
        explicit = _clean_text(fields.source).lower()
        if explicit:
            aliases = self._taxonomy.source_aliases()
            if explicit in aliases:
                return aliases[explicit]
            try:
                return DataSource(explicit)
            except ValueError:
                pass

        event_id = _clean_text(fields.id).lower()
        for prefix, source in self._taxonomy.id_prefixes():
            if event_id.startswith(prefix):
                return source
        return fields.default_source

    # -- public API ----------------------------------------------------------

    def normalize(
        self,
        raw: RawRecord,
        fetched_at: datetime,
        report: Optional[NormalizationReport] = None,
    ) -> Optional[ConflictEvent]:
        """Map one raw record to a ConflictEvent, or ``None`` to reject it."""
        report = report if report is not None else NormalizationReport()
        fetched_at = ensure_utc(fetched_at)
        fields = extract_fields(raw)

        coordinates, coords_invalid = parse_coordinates(fields.latitude, fields.longitude)
        if coords_invalid:
            report.coordinates_invalid += 1

        location = self.resolve_location(fields, coordinates)
        if not location:
            report.rejected += 1
            logger.debug("Rejected record without resolvable location: %s", fields.id)
            return None

        timestamp = parse_timestamp(fields.timestamp)
        if timestamp is None:
            report.timestamp_substituted += 1
            timestamp = fetched_at
        elif timestamp > fetched_at:
            report.timestamp_clamped += 1
            timestamp = fetched_at

        category = self.resolve_category(fields)
        if category is None:
            report.category_fallback += 1
            category = EventCategory.OTHER

        source = self.resolve_source(fields)
        title = _clean_text(fields.title) or f"{category.value.replace('_', ' ').title()} in {location}"

        event_id = _clean_text(fields.id)
        if not event_id or _BARE_PREFIX_RE.match(event_id):
            event_id = _stable_event_id(
                event_id or f"{source.value}_", location, timestamp.isoformat(), title
            )

        event = ConflictEvent(
            id=event_id,
            title=title,
            description=_clean_text(fields.description),
            location=location,
            coordinates=coordinates,
            timestamp=timestamp,
            category=category,
            source=source,
            fatalities=parse_fatalities(fields.fatalities),
            actors=[a for a in (_clean_text(x) for x in fields.actors) if a],
            severity=SeverityLevel.LOW,
            verified=bool(fields.verified) and source in self.reliable_sources,
            tags=[t for t in (_clean_text(x) for x in fields.tags) if t],
            source_url=_clean_text(fields.source_url) or None,
        )
        event.severity = classify(event, fetched_at)
        report.accepted += 1
        return event

    def normalize_batch(
        self,
        records: Iterable[RawRecord],
        fetched_at: datetime,
        report: Optional[NormalizationReport] = None,
    ) -> tuple[list[ConflictEvent], NormalizationReport]:
        report = report if report is not None else NormalizationReport()
        events: list[ConflictEvent] = []
        for raw in records:
            try:
                event = self.normalize(raw, fetched_at, report)
            except Exception as exc:
                # A record the mapping cannot even read is rejected, not fatal.
                report.rejected += 1
                logger.warning("Dropping unreadable record %r: %s", type(raw).__name__, exc)
                continue
            if event is not None:
                events.append(event)
        return events, report


_default_normalizer = Normalizer()


def normalize(raw: RawRecord, fetched_at: datetime) -> Optional[ConflictEvent]:
    return _default_normalizer.normalize(raw, fetched_at)
