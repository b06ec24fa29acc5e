"""Per-source health bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from models.conflict import DataSource
from utils.utcnow import to_iso, utcnow


@dataclass
class SourceStatus:
    """Health of one upstream adapter.

    Created once at startup and mutated after every fetch attempt:
    success resets ``consecutive_errors``, failure increments it.
    """

    name: str
    source: DataSource
    enabled: bool = True
    last_fetch: Optional[datetime] = None
    consecutive_errors: int = 0
    last_event_count: int = 0
    last_error: Optional[str] = None
    last_duration_seconds: float = 0.0
    unhealthy_after: int = 1

    @property
    def is_healthy(self) -> bool:
        return self.consecutive_errors < self.unhealthy_after

    def record_success(self, count: int, duration_seconds: float = 0.0) -> None:
        self.last_fetch = utcnow()
        self.consecutive_errors = 0
        self.last_event_count = int(count)
        self.last_error = None
        self.last_duration_seconds = round(duration_seconds, 3)

    def record_failure(self, error: str, duration_seconds: float = 0.0) -> None:
        self.last_fetch = utcnow()
        self.consecutive_errors += 1
        self.last_event_count = 0
        self.last_error = error
        self.last_duration_seconds = round(duration_seconds, 3)

    def snapshot(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "source": self.source.value,
            "enabled": self.enabled,
            "healthy": self.is_healthy,
            "last_fetch": to_iso(self.last_fetch),
            "error_count": self.consecutive_errors,
            "event_count": self.last_event_count,
            "last_error": self.last_error,
            "duration_seconds": self.last_duration_seconds,
        }


class SourceStatusRegistry:
    """Name-keyed map of ``SourceStatus``; entries are never removed."""

    def __init__(self, statuses: Iterable[SourceStatus] = ()) -> None:
        self._statuses: dict[str, SourceStatus] = {}
        for status in statuses:
            self.register(status)

    def register(self, status: SourceStatus) -> SourceStatus:
        self._statuses.setdefault(status.name, status)
        return self._statuses[status.name]

    def get(self, name: str) -> Optional[SourceStatus]:
        return self._statuses.get(name)

    def record_success(self, name: str, count: int, duration_seconds: float = 0.0) -> None:
        status = self._statuses.get(name)
        if status is not None:
            status.record_success(count, duration_seconds)

    def record_failure(self, name: str, error: str, duration_seconds: float = 0.0) -> None:
        status = self._statuses.get(name)
        if status is not None:
            status.record_failure(error, duration_seconds)

    def names(self) -> list[str]:
        return list(self._statuses)

    def last_update(self) -> Optional[datetime]:
        stamps = [s.last_fetch for s in self._statuses.values() if s.last_fetch]
        return max(stamps) if stamps else None

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {name: status.snapshot() for name, status in self._statuses.items()}

    def __len__(self) -> int:
        return len(self._statuses)
