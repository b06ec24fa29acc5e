"""In-memory TTL cache and single-flight refresh tracking."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from utils.utcnow import utcnow

T = TypeVar("T")


@dataclass
class CacheEntry:
    key: str
    payload: Any
    fetched_at: datetime
    source_count: int
    ttl_seconds: float

    @property
    def expires_at(self) -> datetime:
        return self.fetched_at + timedelta(seconds=self.ttl_seconds)

    def is_fresh(self, now: datetime) -> bool:
        return now < self.expires_at

    def age_seconds(self, now: datetime) -> float:
        return max(0.0, (now - self.fetched_at).total_seconds())


class TTLCache:
    """Key -> CacheEntry. Entries are replaced whole, never patched.

    Expired entries are kept so they can be served stale when a refresh
    fails; ``get_fresh`` is the lookup that honours the TTL.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def get_fresh(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self._clock()):
            return entry
        return None

    def set(
        self,
        key: str,
        payload: Any,
        ttl_seconds: float,
        source_count: int = 0,
        fetched_at: Optional[datetime] = None,
    ) -> CacheEntry:
        entry = CacheEntry(
            key=key,
            payload=payload,
            fetched_at=fetched_at or self._clock(),
            source_count=source_count,
            ttl_seconds=ttl_seconds,
        )
        self._entries[key] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class SingleFlight(Generic[T]):
    """At most one running refresh per key; concurrent callers share it.

    The refresh runs as its own task and callers await it through
    ``asyncio.shield``, so a caller that gets cancelled does not cancel the
    refresh other callers are waiting on.
    """

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Task] = {}

    def in_flight(self, key: str) -> bool:
        task = self._inflight.get(key)
        return task is not None and not task.done()

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._inflight.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def clear(self) -> None:
        """Stop tracking running refreshes; they finish for their current callers."""
        self._inflight.clear()

    def __len__(self) -> int:
        return len(self._inflight)
