from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

# Get the directory where this config file is located.
_BACKEND_DIR = Path(__file__).parent.resolve()


def _detect_project_root(backend_dir: Path) -> Path:
    """Resolve project root from the backend directory in the repo layout."""
    return backend_dir.parent.resolve()


_PROJECT_ROOT = _detect_project_root(_BACKEND_DIR)

_DEFAULT_NEWS_FEEDS: list[dict[str, str]] = [
    {"name": "BBC", "url": "https://feeds.bbci.co.uk/news/world/rss.xml"},
    {"name": "Deutsche Welle", "url": "https://rss.dw.com/rdf/rss-en-world"},
    {"name": "Al Jazeera", "url": "https://www.aljazeera.com/xml/rss/all.xml"},
]


_KNOWN_SOURCES = {"structured_api", "news", "social", "intelligence", "manual"}


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class Settings(BaseSettings):
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    LOG_FILE: Optional[str] = None

    # HTTP surface
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Cache freshness windows
    CONFLICT_FEED_CACHE_TTL_SECONDS: int = 300  # 5 minutes
    CONFLICT_FEED_CRITICAL_CACHE_TTL_SECONDS: int = 300

    # Per-source retry policy
    CONFLICT_FEED_RETRY_MAX_ATTEMPTS: int = 3
    CONFLICT_FEED_RETRY_BASE_DELAY_SECONDS: float = 1.0
    CONFLICT_FEED_RETRY_MAX_DELAY_SECONDS: float = 30.0
    CONFLICT_FEED_RETRY_JITTER_SECONDS: float = 1.0
    CONFLICT_FEED_FETCH_TIMEOUT_SECONDS: float = 15.0
    CONFLICT_FEED_UNHEALTHY_AFTER_ERRORS: int = 1

    # Window requested from every source; two weeks covers the 7-day vs
    # prior-7-day location comparison
    CONFLICT_FEED_FETCH_WINDOW_DAYS: int = 14

    # Kick off the first refresh at startup instead of on the first request
    CONFLICT_FEED_WARM_ON_STARTUP: bool = True

    # Deduplication key policy
    CONFLICT_FEED_DEDUP_COORDINATE_PRECISION: int = 2
    CONFLICT_FEED_DEDUP_TIME_BUCKET_SECONDS: int = 86400  # UTC day
    CONFLICT_FEED_DEDUP_INCLUDE_CATEGORY: bool = True

    # Sources allowed to mark an event as verified
    CONFLICT_FEED_RELIABLE_SOURCES: list[str] = ["structured_api", "intelligence"]

    # Structured event API (ACLED)
    ACLED_ENABLED: bool = True
    ACLED_API_URL: Optional[str] = "https://acleddata.com/api/acled/read"
    ACLED_API_KEY: Optional[str] = None
    ACLED_EMAIL: Optional[str] = None
    ACLED_DAYS_BACK: int = 14
    ACLED_LIMIT: int = 2000
    ACLED_REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Scraped news feeds
    NEWS_FEEDS_ENABLED: bool = True
    NEWS_FEEDS: list[dict[str, str]] = list(_DEFAULT_NEWS_FEEDS)
    NEWS_REQUEST_TIMEOUT_SECONDS: float = 5.0
    NEWS_MAX_ITEMS_PER_FEED: int = 40

    # Social-media scrape endpoint (JSON list of posts)
    SOCIAL_FEED_ENABLED: bool = True
    SOCIAL_FEED_URL: Optional[str] = None
    SOCIAL_REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Analyst-maintained events (JSON list); the source is enabled when set
    CONFLICT_FEED_MANUAL_EVENTS_FILE: Optional[str] = None

    @field_validator("ACLED_API_URL", "SOCIAL_FEED_URL", mode="before")
    @classmethod
    def _normalize_url_field(cls, value: object) -> object:
        """Trim accidental quotes/whitespace from URL env vars."""
        if value is None:
            return value
        text = str(value).strip().strip('"').strip("'")
        if not text:
            return None
        if not _is_http_url(text):
            raise ValueError(f"Invalid source URL: {text}")
        return text.rstrip("/")

    @field_validator("NEWS_FEEDS")
    @classmethod
    def _validate_news_feeds(cls, value: list[dict[str, str]]) -> list[dict[str, str]]:
        cleaned: list[dict[str, str]] = []
        for row in value:
            url = str(row.get("url") or "").strip()
            if not _is_http_url(url):
                raise ValueError(f"Invalid RSS URL: {url or '<empty>'}")
            name = str(row.get("name") or url).strip()
            cleaned.append({"name": name, "url": url})
        return cleaned

    @field_validator("CONFLICT_FEED_RELIABLE_SOURCES")
    @classmethod
    def _lower_sources(cls, value: list[str]) -> list[str]:
        cleaned = [str(v).strip().lower() for v in value if str(v).strip()]
        unknown = sorted(set(cleaned) - _KNOWN_SOURCES)
        if unknown:
            raise ValueError(f"Unknown source kinds: {', '.join(unknown)}")
        return cleaned

    @model_validator(mode="after")
    def _check_retry_policy(self) -> "Settings":
        if self.CONFLICT_FEED_RETRY_MAX_ATTEMPTS < 1:
            raise ValueError("CONFLICT_FEED_RETRY_MAX_ATTEMPTS must be >= 1")
        if self.CONFLICT_FEED_FETCH_TIMEOUT_SECONDS <= 0:
            raise ValueError("CONFLICT_FEED_FETCH_TIMEOUT_SECONDS must be > 0")
        if self.CONFLICT_FEED_DEDUP_TIME_BUCKET_SECONDS <= 0:
            raise ValueError("CONFLICT_FEED_DEDUP_TIME_BUCKET_SECONDS must be > 0")
        return self

    class Config:
        # Load project-root .env first (common workflow), then backend/.env
        # as an override if present.
        env_file = (
            str(_PROJECT_ROOT / ".env"),
            str(_BACKEND_DIR / ".env"),
        )
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
