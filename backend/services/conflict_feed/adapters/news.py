"""RSS/Atom news adapter.

Pulls the configured world-news feeds in parallel, keeps conflict-related
items inside the fetch window and turns each into a ``NewsRecord`` with a
best-effort country, fatality count and centroid coordinates.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Any, Optional
from xml.etree import ElementTree

import httpx

from models.conflict import DataSource

from ..catalogs import location_catalog
from ..errors import SourceFetchError
from ..normalizer import parse_timestamp
from ..raw_records import NewsRecord
from .base import FetchParams, SourceAdapter
from .text_signals import extract_country, extract_fatalities, is_conflict_related, strip_html

logger = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; ConflictFeed/1.0)"
_ATOM = "{http://www.w3.org/2005/Atom}"


class NewsFeedAdapter(SourceAdapter):
    name = "news"
    source = DataSource.NEWS

    def __init__(
        self,
        feeds: list[dict[str, str]],
        request_timeout: float = 5.0,
        max_items_per_feed: int = 40,
        enabled: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(enabled=enabled, client=client)
        self._feeds = list(feeds)
        self._timeout = request_timeout
        self._max_items = max_items_per_feed
        self._last_errors: list[str] = []

    @classmethod
    def from_settings(cls, settings: Any) -> NewsFeedAdapter:
        return cls(
            feeds=settings.NEWS_FEEDS,
            request_timeout=float(settings.NEWS_REQUEST_TIMEOUT_SECONDS),
            max_items_per_feed=int(settings.NEWS_MAX_ITEMS_PER_FEED),
            enabled=bool(settings.NEWS_FEEDS_ENABLED),
        )

    def is_configured(self) -> bool:
        return bool(self._feeds)

    @property
    def last_errors(self) -> list[str]:
        return list(self._last_errors)

    async def fetch_recent(self, params: FetchParams) -> list[NewsRecord]:
        if not self._feeds:
            return []

        results = await asyncio.gather(
            *(self._fetch_single_feed(feed) for feed in self._feeds),
            return_exceptions=True,
        )

        self._last_errors = []
        records: list[NewsRecord] = []
        seen: set[str] = set()
        for feed, result in zip(self._feeds, results):
            if isinstance(result, Exception):
                self._last_errors.append(f"{feed['name']}: {result}")
                logger.debug("RSS fetch failed for '%s': %s", feed["name"], result)
                continue
            for record in result:
                if record.item_id in seen:
                    continue
                published = parse_timestamp(record.published)
                # Undated items stay; the normalizer stamps them with the fetch time.
                if published is not None and published < params.since:
                    continue
                seen.add(record.item_id)
                records.append(record)

        if len(self._last_errors) == len(self._feeds):
            raise SourceFetchError(self.name, f"all {len(self._feeds)} feeds failed: {self._last_errors[0]}")

        if params.limit is not None:
            records = records[: params.limit]
        logger.info(
            "News feeds: %d conflict items from %d/%d feeds",
            len(records),
            len(self._feeds) - len(self._last_errors),
            len(self._feeds),
        )
        return records

    async def _fetch_single_feed(self, feed: dict[str, str]) -> list[NewsRecord]:
        """Fetch and parse one RSS or Atom feed. Raises on transport/parse errors."""
        url = feed["url"]
        name = feed.get("name") or url
        resp = await self._http(self._timeout).get(
            url,
            headers={
                "User-Agent": _USER_AGENT,
                "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml",
            },
        )
        if resp.status_code != 200:
            raise SourceFetchError(self.name, f"{name} HTTP {resp.status_code}", status_code=resp.status_code)

        try:
            root = ElementTree.fromstring(resp.text)
        except ElementTree.ParseError as exc:
            raise SourceFetchError(self.name, f"{name} returned malformed XML: {exc}") from exc

        items = root.findall(".//item")
        if not items:
            items = root.findall(f".//{_ATOM}entry")

        records: list[NewsRecord] = []
        for item in items[: self._max_items]:
            record = self._parse_item(item, name)
            if record is not None:
                records.append(record)
        return records

    def _parse_item(self, item: ElementTree.Element, feed_name: str) -> Optional[NewsRecord]:
        title = (item.findtext("title") or item.findtext(f"{_ATOM}title") or "").strip()
        link = (item.findtext("link") or "").strip()
        if not link:
            atom_link = item.find(f"{_ATOM}link")
            if atom_link is not None:
                link = atom_link.get("href", "")
        pub_date = (
            (item.findtext("pubDate") or "").strip()
            or (item.findtext(f"{_ATOM}published") or "").strip()
            or (item.findtext(f"{_ATOM}updated") or "").strip()
        )
        description = (
            (item.findtext("description") or "").strip()
            or (item.findtext(f"{_ATOM}summary") or "").strip()
        )

        if not title or not link:
            return None

        summary = strip_html(description)[:500]
        text = f"{title} {summary}"
        if not is_conflict_related(text):
            return None

        country = extract_country(text)
        centroid = location_catalog.centroid(country)
        return NewsRecord(
            item_id=hashlib.sha256(link.encode()).hexdigest()[:16],
            title=title,
            summary=summary,
            link=link,
            published=pub_date or None,
            feed_name=feed_name,
            country=country,
            latitude=centroid[0] if centroid else None,
            longitude=centroid[1] if centroid else None,
            fatalities=extract_fatalities(text),
        )
