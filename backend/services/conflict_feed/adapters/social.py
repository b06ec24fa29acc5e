"""Social-media scrape adapter.

Reads posts from a JSON scrape endpoint (a list of posts, or an object
with a ``posts``/``data`` list).  Posts carry no structure beyond text, so
country, fatalities and hashtags are extracted heuristically.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from models.conflict import DataSource

from ..catalogs import location_catalog
from ..errors import SourceFetchError, SourceNotConfiguredError
from ..normalizer import parse_timestamp
from ..raw_records import SocialRecord
from .base import FetchParams, SourceAdapter
from .text_signals import extract_country, extract_fatalities, extract_hashtags, is_conflict_related

logger = logging.getLogger(__name__)


class SocialFeedAdapter(SourceAdapter):
    name = "social"
    source = DataSource.SOCIAL

    def __init__(
        self,
        feed_url: Optional[str] = None,
        request_timeout: float = 10.0,
        enabled: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(enabled=enabled, client=client)
        self._feed_url = feed_url
        self._timeout = request_timeout

    @classmethod
    def from_settings(cls, settings: Any) -> SocialFeedAdapter:
        return cls(
            feed_url=settings.SOCIAL_FEED_URL,
            request_timeout=float(settings.SOCIAL_REQUEST_TIMEOUT_SECONDS),
            enabled=bool(settings.SOCIAL_FEED_ENABLED),
        )

    def is_configured(self) -> bool:
        return bool(self._feed_url)

    async def fetch_recent(self, params: FetchParams) -> list[SocialRecord]:
        if not self._feed_url:
            raise SourceNotConfiguredError(self.name)

        try:
            resp = await self._http(self._timeout).get(
                self._feed_url,
                params={"since": params.since.isoformat(), "until": params.until.isoformat()},
            )
        except httpx.HTTPError as exc:
            raise SourceFetchError(self.name, f"request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise SourceFetchError(self.name, f"HTTP {resp.status_code}", status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise SourceFetchError(self.name, f"invalid JSON: {exc}") from exc

        if isinstance(payload, dict):
            posts = payload.get("posts") or payload.get("data") or []
        else:
            posts = payload
        if not isinstance(posts, list):
            raise SourceFetchError(self.name, "unexpected payload shape")

        records: list[SocialRecord] = []
        for post in posts:
            if not isinstance(post, dict):
                continue
            record = self._to_record(post)
            if record is None:
                continue
            created = parse_timestamp(record.created_at)
            if created is not None and created < params.since:
                continue
            records.append(record)

        if params.limit is not None:
            records = records[: params.limit]
        logger.info("Social feed: %d conflict posts out of %d", len(records), len(posts))
        return records

    @staticmethod
    def _to_record(post: dict) -> Optional[SocialRecord]:
        text = str(post.get("text") or post.get("content") or "").strip()
        post_id = str(post.get("id") or post.get("post_id") or "").strip()
        if not text or not post_id or not is_conflict_related(text):
            return None

        country = post.get("country") or extract_country(text)
        lat, lng = post.get("latitude"), post.get("longitude")
        if lat is None and lng is None:
            centroid = location_catalog.centroid(country)
            if centroid:
                lat, lng = centroid

        return SocialRecord(
            post_id=post_id,
            text=text,
            created_at=post.get("created_at") or post.get("timestamp"),
            author=post.get("author"),
            url=post.get("url"),
            location=post.get("location"),
            country=country,
            latitude=lat,
            longitude=lng,
            fatalities=post.get("fatalities") if post.get("fatalities") is not None else extract_fatalities(text),
            category=post.get("category"),
            verified=bool(post.get("verified", False)),
            hashtags=extract_hashtags(text),
            source=post.get("platform"),
        )
