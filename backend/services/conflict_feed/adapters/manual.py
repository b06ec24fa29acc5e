"""Analyst-maintained events read from a local JSON file."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

from models.conflict import DataSource

from ..errors import SourceFetchError, SourceNotConfiguredError
from ..raw_records import ManualRecord
from .base import FetchParams, SourceAdapter

logger = logging.getLogger(__name__)

_RECORD_FIELDS = set(ManualRecord.__dataclass_fields__)


class ManualEventsAdapter(SourceAdapter):
    """Serves a JSON list of hand-entered event objects.

    The file is re-read on every fetch so edits show up on the next
    refresh without a restart.  Keys that ``ManualRecord`` does not know
    are ignored.
    """

    name = "manual"
    source = DataSource.MANUAL

    def __init__(self, path: Optional[str] = None, enabled: bool = True) -> None:
        super().__init__(enabled=enabled)
        self._path = Path(path) if path else None

    @classmethod
    def from_settings(cls, settings: Any) -> ManualEventsAdapter:
        path = settings.CONFLICT_FEED_MANUAL_EVENTS_FILE
        return cls(path=path, enabled=bool(path))

    def is_configured(self) -> bool:
        return self._path is not None

    async def fetch_recent(self, params: FetchParams) -> list[ManualRecord]:
        if self._path is None:
            raise SourceNotConfiguredError(self.name)
        try:
            text = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
            rows = json.loads(text)
        except (OSError, ValueError) as exc:
            raise SourceFetchError(self.name, f"cannot read {self._path}: {exc}") from exc
        if not isinstance(rows, list):
            raise SourceFetchError(self.name, f"{self._path} must hold a JSON list")

        records = []
        for row in rows:
            if not isinstance(row, dict) or not row.get("id"):
                logger.debug("Skipping manual row without id: %r", row)
                continue
            values = {k: v for k, v in row.items() if k in _RECORD_FIELDS}
            values["id"] = str(values["id"])
            records.append(ManualRecord(**values))
        if params.limit is not None:
            records = records[: params.limit]
        return records
