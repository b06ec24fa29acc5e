import sys
from datetime import timedelta
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from models.conflict import Coordinates, DataSource, EventCategory, SeverityLevel
from services.conflict_feed.deduplicator import DedupPolicy, dedupe, dedupe_key
from services.conflict_feed.merger import merge_and_sort


def test_cross_source_duplicates_collapse_to_first_seen(make_event, now):
    acled = make_event(
        id="acled_1",
        location="Rafah",
        coordinates=Coordinates(lat=31.2969, lng=34.2441),
        source=DataSource.STRUCTURED_API,
    )
    news = make_event(
        id="news_1",
        location="  RAFAH ",
        coordinates=Coordinates(lat=31.2971, lng=34.2438),
        timestamp=now - timedelta(hours=3),
        source=DataSource.NEWS,
    )

    assert dedupe_key(acled) == dedupe_key(news)
    assert [e.id for e in dedupe([acled, news])] == ["acled_1"]
    assert [e.id for e in dedupe([news, acled])] == ["news_1"]


def test_category_and_day_keep_events_apart(make_event, now):
    battle = make_event(id="a", category=EventCategory.BATTLE)
    protest = make_event(id="b", category=EventCategory.PROTEST)
    next_day = make_event(id="c", timestamp=now + timedelta(days=1))

    assert len(dedupe([battle, protest, next_day])) == 3

    ignore_category = DedupPolicy(include_category=False)
    assert [e.id for e in dedupe([battle, protest, next_day], ignore_category)] == ["a", "c"]


def test_unknown_coordinates_compare_equal(make_event):
    first = make_event(id="a", coordinates=Coordinates.unknown())
    second = make_event(id="b", coordinates=Coordinates.unknown())
    located = make_event(id="c")

    assert [e.id for e in dedupe([first, second, located])] == ["a", "c"]


def test_dedupe_is_idempotent(make_event, now):
    events = [
        make_event(id="a"),
        make_event(id="b"),
        make_event(id="c", location="Donetsk"),
        make_event(id="d", timestamp=now - timedelta(days=3)),
    ]

    once = dedupe(events)
    assert [e.id for e in dedupe(once)] == [e.id for e in once]


def test_dedup_policy_validates_values():
    with pytest.raises(ValueError):
        DedupPolicy(time_bucket_seconds=0)
    with pytest.raises(ValueError):
        DedupPolicy(coordinate_precision=-1)


def test_merge_sorts_newest_then_most_severe(make_event, now):
    older = make_event(id="older", timestamp=now - timedelta(hours=5), severity=SeverityLevel.CRITICAL)
    low = make_event(id="low", timestamp=now, severity=SeverityLevel.LOW)
    critical = make_event(id="critical", timestamp=now, severity=SeverityLevel.CRITICAL)
    medium = make_event(id="medium", timestamp=now, severity=SeverityLevel.MEDIUM)

    ordered = merge_and_sort([older, low, critical, medium])

    assert [e.id for e in ordered] == ["critical", "medium", "low", "older"]


def test_merge_keeps_input_order_for_full_ties(make_event, now):
    events = [make_event(id=f"tie_{i}", timestamp=now, severity=SeverityLevel.HIGH) for i in range(4)]

    assert [e.id for e in merge_and_sort(events)] == ["tie_0", "tie_1", "tie_2", "tie_3"]
