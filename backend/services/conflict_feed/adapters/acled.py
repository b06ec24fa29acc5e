"""ACLED Armed Conflict Location & Event Data Project adapter.

Fetches structured conflict events from the ACLED read endpoint.  Covers
battles, explosions, violence against civilians, protests, riots and
strategic developments worldwide.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Optional

import httpx

from models.conflict import DataSource

from ..errors import SourceFetchError, SourceNotConfiguredError
from ..raw_records import StructuredApiRecord
from .base import FetchParams, SourceAdapter

logger = logging.getLogger(__name__)

ACLED_API_URL = "https://acleddata.com/api/acled/read"

# ACLED caps a single read at 5000 rows.
_ACLED_MAX_LIMIT = 5000

_ACLED_FIELDS = (
    "event_id_cnty|event_date|event_type|sub_event_type|actor1|actor2"
    "|country|region|location|latitude|longitude|fatalities|notes|source_scale|timestamp"
)


class ACLEDAdapter(SourceAdapter):
    name = "acled"
    source = DataSource.STRUCTURED_API

    def __init__(
        self,
        api_key: Optional[str] = None,
        email: Optional[str] = None,
        api_url: str = ACLED_API_URL,
        days_back: int = 14,
        limit: int = 2000,
        request_timeout: float = 10.0,
        enabled: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(enabled=enabled, client=client)
        self._api_key = api_key
        self._email = email
        self._api_url = api_url
        self._days_back = days_back
        self._limit = limit
        self._timeout = request_timeout

    @classmethod
    def from_settings(cls, settings: Any) -> ACLEDAdapter:
        return cls(
            api_key=settings.ACLED_API_KEY,
            email=settings.ACLED_EMAIL,
            api_url=settings.ACLED_API_URL or ACLED_API_URL,
            days_back=int(settings.ACLED_DAYS_BACK),
            limit=int(settings.ACLED_LIMIT),
            request_timeout=float(settings.ACLED_REQUEST_TIMEOUT_SECONDS),
            enabled=bool(settings.ACLED_ENABLED),
        )

    def is_configured(self) -> bool:
        return bool(self._api_key and self._email)

    def build_params(self, params: FetchParams) -> dict[str, str | int]:
        since = max(params.since, params.until - timedelta(days=self._days_back))
        date_range = f"{since.strftime('%Y-%m-%d')}|{params.until.strftime('%Y-%m-%d')}"
        limit = min(params.limit or self._limit, _ACLED_MAX_LIMIT)
        return {
            "key": self._api_key or "",
            "email": self._email or "",
            "event_date": date_range,
            "event_date_where": "BETWEEN",
            "limit": limit,
            "fields": _ACLED_FIELDS,
        }

    async def fetch_recent(self, params: FetchParams) -> list[StructuredApiRecord]:
        if not self.is_configured():
            # ACLED requires authenticated requests.
            raise SourceNotConfiguredError(self.name)

        query = self.build_params(params)
        try:
            resp = await self._http(self._timeout).get(self._api_url, params=query)
        except httpx.HTTPError as exc:
            raise SourceFetchError(self.name, f"request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise SourceFetchError(
                self.name,
                f"HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise SourceFetchError(self.name, f"invalid JSON: {exc}") from exc

        if isinstance(data, dict) and data.get("success") is False:
            error = data.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise SourceFetchError(self.name, f"API error: {message or 'unknown'}")

        rows = data.get("data", []) if isinstance(data, dict) else []
        if not rows:
            logger.info("ACLED returned 0 events for range %s", query["event_date"])
            return []

        records = []
        for row in rows:
            if not isinstance(row, dict):
                logger.debug("Skipping non-object ACLED row: %r", row)
                continue
            records.append(StructuredApiRecord.from_api_row(row))
        logger.info("ACLED: fetched %d events for range %s", len(records), query["event_date"])
        return records
