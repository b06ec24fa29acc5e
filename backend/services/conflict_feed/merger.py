"""Deterministic feed ordering."""

from __future__ import annotations

from typing import Iterable

from models.conflict import ConflictEvent


def sort_key(event: ConflictEvent) -> tuple:
    return (event.timestamp, event.severity.rank)


def merge_and_sort(events: Iterable[ConflictEvent]) -> list[ConflictEvent]:
    """Newest first, then most severe first.

    ``sorted`` is stable and keeps stability under ``reverse=True``, so
    events with equal keys stay in input order.
    """
    return sorted(events, key=sort_key, reverse=True)
