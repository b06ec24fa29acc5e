"""Exception taxonomy for the conflict feed.

Only ``ConfigurationError`` is ever meant to escape to a caller, and only
at startup.  Upstream failures are raised by adapters and absorbed by the
retry executor; malformed records never raise at all.
"""

from __future__ import annotations

from typing import Optional


class ConflictFeedError(Exception):
    """Base class for conflict feed errors."""


class ConfigurationError(ConflictFeedError):
    """Raised at construction time for an unusable source/policy setup."""


class SourceFetchError(ConflictFeedError):
    """Raised by an adapter when its upstream call fails."""

    def __init__(
        self,
        source: str,
        message: str,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.status_code = status_code


class SourceNotConfiguredError(SourceFetchError):
    """Raised when an adapter is called without its credentials."""

    def __init__(self, source: str) -> None:
        super().__init__(source, "credentials_missing")
