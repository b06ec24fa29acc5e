"""Heuristics for pulling event facts out of free text (headlines, posts)."""

from __future__ import annotations

import html
import re
from typing import Optional

from ..catalogs import location_catalog, taxonomy_catalog

_TAG_RE = re.compile(r"<[^>]+>")
_FATALITY_RE = re.compile(
    r"(\d[\d,]*)\s+(?:people\s+|civilians\s+|soldiers\s+|fighters\s+)?"
    r"(?:were\s+)?(?:killed|dead|deaths?|casualties|fatalities)",
    re.IGNORECASE,
)
_HASHTAG_RE = re.compile(r"#(\w+)")


def strip_html(text: str) -> str:
    return " ".join(html.unescape(_TAG_RE.sub(" ", text or "")).split())


def is_conflict_related(text: str) -> bool:
    lowered = (text or "").lower()
    return any(word in lowered for word in taxonomy_catalog.conflict_keywords())


def extract_fatalities(text: str) -> int:
    """Largest "<n> killed/dead/deaths/casualties/fatalities" figure, else 0."""
    best = 0
    for match in _FATALITY_RE.finditer(text or ""):
        try:
            best = max(best, int(match.group(1).replace(",", "")))
        except ValueError:
            continue
    return best


def extract_country(text: str) -> Optional[str]:
    """First known country mentioned, canonicalized (``"Burma"`` -> ``"Myanmar"``)."""
    if not text:
        return None
    for name in location_catalog.known_countries():
        if re.search(rf"\b{re.escape(name)}\b", text, re.IGNORECASE):
            return location_catalog.canonical_name(name)
    return None


def extract_actor(text: str) -> Optional[str]:
    for needle, actor in taxonomy_catalog.actor_patterns():
        if re.search(rf"\b{re.escape(needle)}\b", text or "", re.IGNORECASE):
            return actor
    return None


def extract_hashtags(text: str) -> list[str]:
    return _HASHTAG_RE.findall(text or "")
