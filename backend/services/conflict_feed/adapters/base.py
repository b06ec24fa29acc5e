from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import httpx

from models.conflict import DataSource
from utils.utcnow import utcnow

from ..raw_records import RawRecord


@dataclass
class FetchParams:
    """Window and size hints passed to every adapter on a refresh pass."""

    since: datetime
    until: datetime
    limit: Optional[int] = None

    @classmethod
    def trailing(cls, days: float = 7, limit: Optional[int] = None) -> FetchParams:
        until = utcnow()
        return cls(since=until - timedelta(days=days), until=until, limit=limit)


class SourceAdapter(ABC):
    """Upstream provider interface for the conflict feed.

    ``fetch_recent`` either returns raw records or raises; retries, timeouts
    and health bookkeeping belong to the caller.
    """

    name: str = ""
    source: DataSource = DataSource.MANUAL

    def __init__(self, enabled: bool = True, client: Optional[httpx.AsyncClient] = None) -> None:
        self.enabled = enabled
        self._client = client
        self._owns_client = client is None

    def _http(self, timeout: float) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        return self._client

    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def fetch_recent(self, params: FetchParams) -> list[RawRecord]:
        """Return raw records for ``params``' window or raise."""
        raise NotImplementedError

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
