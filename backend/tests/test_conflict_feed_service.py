import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from config import Settings
from models.conflict import DataSource, SeverityLevel
from services.conflict_feed.adapters import (
    ACLEDAdapter,
    ManualEventsAdapter,
    NewsFeedAdapter,
    SocialFeedAdapter,
)
from services.conflict_feed.aggregator import build_adapters, build_conflict_feed_service
from services.conflict_feed.errors import ConfigurationError


def _settings(**overrides) -> Settings:
    values = dict(
        ACLED_API_KEY=None,
        ACLED_EMAIL=None,
        SOCIAL_FEED_URL=None,
        CONFLICT_FEED_MANUAL_EVENTS_FILE=None,
        CONFLICT_FEED_RETRY_MAX_ATTEMPTS=1,
        CONFLICT_FEED_RETRY_BASE_DELAY_SECONDS=0.0,
        CONFLICT_FEED_RETRY_JITTER_SECONDS=0.0,
    )
    values.update(overrides)
    return Settings(**values)


def test_settings_reject_invalid_rss_url():
    with pytest.raises(ValidationError, match="Invalid RSS URL"):
        _settings(NEWS_FEEDS=[{"name": "Bad", "url": "ftp://feeds.example.com/rss"}])


def test_settings_normalize_urls_and_sources():
    settings = _settings(
        ACLED_API_URL=" 'https://api.example.org/read/' ",
        SOCIAL_FEED_URL="",
        CONFLICT_FEED_RELIABLE_SOURCES=[" Structured_API ", "Manual"],
    )

    assert settings.ACLED_API_URL == "https://api.example.org/read"
    assert settings.SOCIAL_FEED_URL is None
    assert settings.CONFLICT_FEED_RELIABLE_SOURCES == ["structured_api", "manual"]


def test_settings_reject_unknown_reliable_source_and_bad_retry():
    with pytest.raises(ValidationError, match="Unknown source kinds"):
        _settings(CONFLICT_FEED_RELIABLE_SOURCES=["gossip"])
    with pytest.raises(ValidationError):
        _settings(CONFLICT_FEED_RETRY_MAX_ATTEMPTS=0)


def test_build_adapters_adds_manual_source_only_when_configured(tmp_path):
    default = build_adapters(_settings())
    with_manual = build_adapters(
        _settings(CONFLICT_FEED_MANUAL_EVENTS_FILE=str(tmp_path / "events.json"))
    )

    assert [type(a) for a in default] == [ACLEDAdapter, NewsFeedAdapter, SocialFeedAdapter]
    assert isinstance(with_manual[-1], ManualEventsAdapter)
    assert with_manual[-1].enabled is True
    assert not default[0].is_configured()


def test_build_service_rejects_duplicate_adapter_names():
    adapters = [ManualEventsAdapter(path="a.json"), ManualEventsAdapter(path="b.json")]

    with pytest.raises(ConfigurationError):
        build_conflict_feed_service(_settings(), adapters=adapters)


@pytest.mark.asyncio
async def test_service_end_to_end_with_unconfigured_sources(tmp_path, clock):
    path = tmp_path / "events.json"
    path.write_text(
        '[{"id": "intel_7", "title": "Missile strike on port", "location": "Hodeidah",'
        ' "timestamp": "2026-03-01T11:00:00Z", "fatalities": 8, "verified": true},'
        ' {"id": "manual_8", "title": "Rally downtown", "location": "Unknown"}]',
        encoding="utf-8",
    )
    settings = _settings(
        NEWS_FEEDS_ENABLED=False,
        CONFLICT_FEED_MANUAL_EVENTS_FILE=str(path),
    )
    service = build_conflict_feed_service(settings, clock=clock)

    events = await service.get_all_events()

    assert [e.id for e in events] == ["intel_7"]
    event = events[0]
    assert event.source == DataSource.INTELLIGENCE
    assert event.verified is True
    assert event.category.value == "airstrike"

    statuses = service.get_source_status()
    assert statuses["acled"]["last_error"] == "acled: credentials_missing"
    assert statuses["social"]["error_count"] == 1
    assert statuses["news"]["enabled"] is False
    assert statuses["news"]["last_fetch"] is None
    assert statuses["manual"]["event_count"] == 2

    assert await service.get_events_by_location("  ") == []
    assert [e.id for e in await service.get_events_by_location("hodei")] == ["intel_7"]
    assert await service.get_events_by_severity(SeverityLevel.LOW) == []

    quality = await service.get_data_quality_report()
    assert quality["normalization"]["rejected"] == 1

    performance = service.get_performance_metrics()
    assert performance["refresh_count"] == 1
    assert performance["cache"]["keys"] == ["all_events"]
    assert performance["sources"]["healthy"] == 1

    await service.aclose()
