import json
import sys
from datetime import timedelta
from pathlib import Path

import httpx
import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from services.conflict_feed.adapters import (
    ACLEDAdapter,
    FetchParams,
    ManualEventsAdapter,
    NewsFeedAdapter,
    SocialFeedAdapter,
)
from services.conflict_feed.adapters.text_signals import (
    extract_actor,
    extract_country,
    extract_fatalities,
    extract_hashtags,
    is_conflict_related,
    strip_html,
)
from services.conflict_feed.errors import SourceFetchError, SourceNotConfiguredError


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _params(now, days: int = 14) -> FetchParams:
    return FetchParams(since=now - timedelta(days=days), until=now)


_ACLED_ROW = {
    "event_id_cnty": "SDN4512",
    "event_date": "2026-02-27",
    "event_type": "Explosions/Remote violence",
    "sub_event_type": "Air/drone strike",
    "actor1": "Rapid Support Forces",
    "actor2": "Civilians (Sudan)",
    "country": "Sudan",
    "region": "Northern Africa",
    "location": "El Fasher",
    "latitude": "13.6279",
    "longitude": "25.3494",
    "fatalities": "17",
    "notes": "Drone strike on a market.",
    "timestamp": "1772400000",
}


# -- ACLED -------------------------------------------------------------------


@pytest.mark.asyncio
async def test_acled_requires_credentials(now):
    adapter = ACLEDAdapter(api_key=None, email="analyst@example.org")

    assert not adapter.is_configured()
    with pytest.raises(SourceNotConfiguredError):
        await adapter.fetch_recent(_params(now))


def test_acled_build_params_clamps_window_and_limit(now):
    adapter = ACLEDAdapter(api_key="k", email="e@example.org", days_back=7, limit=9000)

    params = adapter.build_params(_params(now, days=30))

    assert params["event_date"] == "2026-02-22|2026-03-01"
    assert params["event_date_where"] == "BETWEEN"
    assert params["limit"] == 5000
    assert params["key"] == "k"


@pytest.mark.asyncio
async def test_acled_parses_rows(now):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"success": True, "count": 2, "data": [_ACLED_ROW, "junk"]})

    adapter = ACLEDAdapter(api_key="k", email="e@example.org", client=_client(handler))
    records = await adapter.fetch_recent(_params(now))

    assert seen["params"]["email"] == "e@example.org"
    assert len(records) == 1
    record = records[0]
    assert record.event_id == "SDN4512"
    assert record.location == "El Fasher"
    assert record.fatalities == "17"
    assert record.actor1 == "Rapid Support Forces"


@pytest.mark.asyncio
async def test_acled_http_error_carries_status(now):
    adapter = ACLEDAdapter(
        api_key="k",
        email="e@example.org",
        client=_client(lambda request: httpx.Response(503, text="unavailable")),
    )

    with pytest.raises(SourceFetchError) as exc_info:
        await adapter.fetch_recent(_params(now))
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_acled_api_error_payload_raises(now):
    adapter = ACLEDAdapter(
        api_key="k",
        email="e@example.org",
        client=_client(
            lambda request: httpx.Response(200, json={"success": False, "error": {"message": "Invalid key"}})
        ),
    )

    with pytest.raises(SourceFetchError, match="Invalid key"):
        await adapter.fetch_recent(_params(now))


# -- News --------------------------------------------------------------------

_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>World</title>
<item>
  <title>12 killed in missile strike on Kharkiv, Ukraine</title>
  <link>https://news.example.com/a</link>
  <description>&lt;p&gt;Officials said the &lt;b&gt;strike&lt;/b&gt; hit a residential block.&lt;/p&gt;</description>
  <pubDate>Sun, 01 Mar 2026 09:00:00 GMT</pubDate>
</item>
<item>
  <title>Stock markets rise as earnings beat forecasts</title>
  <link>https://news.example.com/b</link>
  <pubDate>Sun, 01 Mar 2026 08:00:00 GMT</pubDate>
</item>
<item>
  <title>Shelling reported near Donetsk</title>
  <link>https://news.example.com/c</link>
  <pubDate>Mon, 02 Feb 2026 08:00:00 GMT</pubDate>
</item>
</channel></rss>
"""


@pytest.mark.asyncio
async def test_news_adapter_keeps_recent_conflict_items(now):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=_RSS)

    adapter = NewsFeedAdapter(
        feeds=[{"name": "Wire", "url": "https://news.example.com/rss"}],
        client=_client(handler),
    )
    records = await adapter.fetch_recent(_params(now))

    assert len(records) == 1
    record = records[0]
    assert record.title.startswith("12 killed")
    assert record.summary == "Officials said the strike hit a residential block."
    assert record.country == "Ukraine"
    assert record.fatalities == 12
    assert record.latitude is not None
    assert record.feed_name == "Wire"
    assert record.link == "https://news.example.com/a"


@pytest.mark.asyncio
async def test_news_adapter_tolerates_one_failing_feed(now):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "down.example.com":
            return httpx.Response(500)
        return httpx.Response(200, text=_RSS)

    adapter = NewsFeedAdapter(
        feeds=[
            {"name": "Down", "url": "https://down.example.com/rss"},
            {"name": "Wire", "url": "https://news.example.com/rss"},
        ],
        client=_client(handler),
    )
    records = await adapter.fetch_recent(_params(now))

    assert len(records) == 1
    assert len(adapter.last_errors) == 1
    assert adapter.last_errors[0].startswith("Down")


@pytest.mark.asyncio
async def test_news_adapter_raises_when_every_feed_fails(now):
    adapter = NewsFeedAdapter(
        feeds=[{"name": "Broken", "url": "https://news.example.com/rss"}],
        client=_client(lambda request: httpx.Response(200, text="<rss><channel>")),
    )

    with pytest.raises(SourceFetchError):
        await adapter.fetch_recent(_params(now))


# -- Social ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_social_adapter_filters_posts(now):
    payload = {
        "posts": [
            {
                "id": "1001",
                "text": "Explosion in Beirut, at least 4 dead #Lebanon",
                "created_at": "2026-03-01T10:00:00Z",
                "author": "@reporter",
                "platform": "telegram",
            },
            {"id": "1002", "text": "Lovely sunset today", "created_at": "2026-03-01T10:00:00Z"},
            {"id": "1003", "text": "Airstrike reported in Yemen", "created_at": "2026-01-01T10:00:00Z"},
            {"text": "Attack with no id"},
        ]
    }
    adapter = SocialFeedAdapter(
        feed_url="https://scrape.example.com/posts",
        client=_client(lambda request: httpx.Response(200, json=payload)),
    )

    records = await adapter.fetch_recent(_params(now))

    assert [r.post_id for r in records] == ["1001"]
    post = records[0]
    assert post.country == "Lebanon"
    assert post.fatalities == 4
    assert post.hashtags == ["Lebanon"]
    assert post.source == "telegram"


@pytest.mark.asyncio
async def test_social_adapter_requires_url(now):
    with pytest.raises(SourceNotConfiguredError):
        await SocialFeedAdapter(feed_url=None).fetch_recent(_params(now))


# -- Manual ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_manual_adapter_reads_rows_with_ids(tmp_path, now):
    path = tmp_path / "events.json"
    path.write_text(
        json.dumps(
            [
                {"id": "manual_1", "title": "Checkpoint closed", "location": "Hebron", "extra": "ignored"},
                {"title": "no id"},
            ]
        ),
        encoding="utf-8",
    )

    records = await ManualEventsAdapter(path=str(path)).fetch_recent(_params(now))

    assert [r.id for r in records] == ["manual_1"]
    assert records[0].location == "Hebron"


@pytest.mark.asyncio
async def test_manual_adapter_coerces_numeric_ids(tmp_path, now):
    path = tmp_path / "events.json"
    path.write_text(json.dumps([{"id": 123, "location": "Kyiv"}]), encoding="utf-8")

    records = await ManualEventsAdapter(path=str(path)).fetch_recent(_params(now))

    assert records[0].id == "123"


@pytest.mark.asyncio
async def test_manual_adapter_rejects_bad_files(tmp_path, now):
    not_a_list = tmp_path / "events.json"
    not_a_list.write_text('{"id": "x"}', encoding="utf-8")

    with pytest.raises(SourceFetchError):
        await ManualEventsAdapter(path=str(not_a_list)).fetch_recent(_params(now))
    with pytest.raises(SourceFetchError):
        await ManualEventsAdapter(path=str(tmp_path / "missing.json")).fetch_recent(_params(now))


# -- Text heuristics ---------------------------------------------------------


def test_text_signal_helpers():
    assert strip_html("<p>Hello&nbsp;<b>world</b></p>") == "Hello world"
    assert is_conflict_related("Troops crossed the border")
    assert not is_conflict_related("Local bakery opens")
    assert extract_fatalities("At least 1,200 people killed; 15 dead overnight") == 1200
    assert extract_fatalities("No casualties figure") == 0
    assert extract_country("Fighting flares in South Sudan") == "South Sudan"
    assert extract_country("Clashes reported in Burma") == "Myanmar"
    assert extract_country("Nothing to see here") is None
    assert extract_actor("Statement from the IDF spokesperson") == "Israel Defense Forces"
    assert extract_hashtags("#Gaza and #Rafah") == ["Gaza", "Rafah"]
