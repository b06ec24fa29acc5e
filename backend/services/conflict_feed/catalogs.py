"""Reference data for normalization: category keywords, source aliases,
macro-regions and country aliases/centroids.

Each catalog is backed by one JSON file under ``backend/data/conflict_feed``.
Files are re-read when their mtime changes, so analysts can tune keywords
without a restart.  Parsed views are memoized per file version because the
normalizer consults them for every record.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from models.conflict import DataSource, EventCategory

logger = logging.getLogger(__name__)

DATA_ROOT = Path(__file__).resolve().parents[2] / "data" / "conflict_feed"

V = TypeVar("V")


class ReferenceCatalog:
    """Base for one JSON reference file.

    Missing top-level keys fall back to ``defaults``; an unreadable or
    missing file serves the defaults alone and is logged once per version.
    """

    filename: str = ""
    defaults: dict[str, Any] = {}

    def __init__(self, data_root: Optional[Path] = None) -> None:
        self.path = Path(data_root or DATA_ROOT) / self.filename
        self._payload: dict[str, Any] = dict(self.defaults)
        self._version: Optional[int] = None  # mtime_ns of the loaded file, -1 when absent
        self._views: dict[str, Any] = {}

    def _current_version(self) -> int:
        try:
            return int(self.path.stat().st_mtime_ns)
        except OSError:
            return -1

    def payload(self) -> dict[str, Any]:
        version = self._current_version()
        if version == self._version:
            return self._payload

        self._views.clear()
        self._version = version
        if version < 0:
            logger.warning("Reference catalog missing, using defaults: %s", self.path)
            self._payload = dict(self.defaults)
            return self._payload
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("catalog root must be an object")
        except (OSError, ValueError) as exc:
            logger.error("Failed loading reference catalog %s: %s", self.path, exc)
            raw = {}
        self._payload = {**self.defaults, **raw}
        return self._payload

    def _view(self, name: str, build: Callable[[dict[str, Any]], V]) -> V:
        payload = self.payload()
        if name not in self._views:
            self._views[name] = build(payload)
        return self._views[name]


def _lower_list(rows: Any) -> list[str]:
    return [str(v).strip().lower() for v in rows or [] if str(v).strip()]


class TaxonomyCatalog(ReferenceCatalog):
    filename = "taxonomy.json"
    defaults = {
        "category_rules": [],
        "conflict_keywords": [],
        "actor_patterns": [],
        "source_aliases": {},
        "id_prefixes": [],
    }

    def category_rules(self) -> list[tuple[EventCategory, list[str]]]:
        """Ordered (category, keywords) pairs. Earlier rules win."""

        def build(payload):
            out = []
            for row in payload.get("category_rules") or []:
                if not isinstance(row, dict):
                    continue
                try:
                    category = EventCategory(str(row.get("category") or "").strip().lower())
                except ValueError:
                    logger.warning("Unknown category in taxonomy: %r", row.get("category"))
                    continue
                words = _lower_list(row.get("keywords"))
                if words:
                    out.append((category, words))
            return out

        return self._view("category_rules", build)

    def conflict_keywords(self) -> list[str]:
        return self._view("conflict_keywords", lambda p: _lower_list(p.get("conflict_keywords")))

    def actor_patterns(self) -> list[tuple[str, str]]:
        def build(payload):
            out = []
            for row in payload.get("actor_patterns") or []:
                if isinstance(row, (list, tuple)) and len(row) == 2:
                    needle, actor = str(row[0]).strip().lower(), str(row[1]).strip()
                    if needle and actor:
                        out.append((needle, actor))
            return out

        return self._view("actor_patterns", build)

    def source_aliases(self) -> dict[str, DataSource]:
        def build(payload):
            raw = payload.get("source_aliases")
            out: dict[str, DataSource] = {}
            for key, value in (raw.items() if isinstance(raw, dict) else ()):
                try:
                    out[str(key).strip().lower()] = DataSource(str(value).strip().lower())
                except ValueError:
                    continue
            return out

        return self._view("source_aliases", build)

    def id_prefixes(self) -> list[tuple[str, DataSource]]:
        def build(payload):
            out = []
            for row in payload.get("id_prefixes") or []:
                if not isinstance(row, (list, tuple)) or len(row) != 2:
                    continue
                prefix = str(row[0]).strip().lower()
                try:
                    source = DataSource(str(row[1]).strip().lower())
                except ValueError:
                    continue
                if prefix:
                    out.append((prefix, source))
            return out

        return self._view("id_prefixes", build)


class RegionCatalog(ReferenceCatalog):
    filename = "regions.json"
    defaults = {"macro_regions": []}

    def macro_regions(self) -> list[tuple[str, list[tuple[float, float, float, float]]]]:
        def build(payload):
            out = []
            for row in payload.get("macro_regions") or []:
                if not isinstance(row, dict):
                    continue
                name = str(row.get("name") or "").strip()
                boxes = []
                for box in row.get("boxes") or []:
                    try:
                        lat_min, lat_max, lng_min, lng_max = (float(v) for v in box)
                    except (TypeError, ValueError):
                        continue
                    boxes.append((lat_min, lat_max, lng_min, lng_max))
                if name and boxes:
                    out.append((name, boxes))
            return out

        return self._view("macro_regions", build)

    def macro_region_for(self, lat: float, lng: float) -> Optional[str]:
        """First macro-region whose bounding box contains the point."""
        for name, boxes in self.macro_regions():
            for lat_min, lat_max, lng_min, lng_max in boxes:
                if lat_min <= lat <= lat_max and lng_min <= lng <= lng_max:
                    return name
        return None


class LocationCatalog(ReferenceCatalog):
    filename = "locations.json"
    defaults = {
        "placeholders": ["", "unknown", "invalid", "n/a", "none", "null"],
        "aliases": {},
        "centroids": {},
    }

    def placeholders(self) -> set[str]:
        return self._view("placeholders", lambda p: {str(v).strip().lower() for v in p.get("placeholders") or []})

    def is_placeholder(self, value: Optional[str]) -> bool:
        if value is None:
            return True
        return " ".join(str(value).split()).lower() in self.placeholders()

    def aliases(self) -> dict[str, str]:
        def build(payload):
            raw = payload.get("aliases")
            if not isinstance(raw, dict):
                return {}
            return {str(k).strip().lower(): str(v).strip() for k, v in raw.items()}

        return self._view("aliases", build)

    def canonical_name(self, value: str) -> str:
        text = " ".join(str(value).split())
        return self.aliases().get(text.lower(), text)

    def centroids(self) -> dict[str, tuple[float, float]]:
        def build(payload):
            raw = payload.get("centroids")
            out = {}
            for key, value in (raw.items() if isinstance(raw, dict) else ()):
                try:
                    lat, lng = (float(v) for v in value)
                except (TypeError, ValueError):
                    continue
                out[str(key)] = (lat, lng)
            return out

        return self._view("centroids", build)

    def centroid(self, country: Optional[str]) -> Optional[tuple[float, float]]:
        if not country:
            return None
        return self.centroids().get(self.canonical_name(country))

    def known_countries(self) -> list[str]:
        """Country names and aliases, longest first so "South Sudan" beats "Sudan".

        Aliases of three characters or fewer ("us", "uk", "drc") are left out;
        they collide with ordinary words in free text.
        """

        def build(payload):
            names = set(self.centroids())
            names.update(k for k in self.aliases() if len(k) > 3)
            return sorted(names, key=len, reverse=True)

        return self._view("known_countries", build)


taxonomy_catalog = TaxonomyCatalog()
region_catalog = RegionCatalog()
location_catalog = LocationCatalog()
