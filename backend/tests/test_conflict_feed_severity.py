import sys
from datetime import timedelta
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from models.conflict import DataSource, EventCategory, SeverityLevel, ThreatLevel
from services.conflict_feed.severity import (
    classify,
    fatality_points,
    global_threat_level,
    is_high_or_critical,
    score,
)


def test_fatality_points_table():
    assert fatality_points(0) == 5
    assert fatality_points(1) == 15
    assert fatality_points(9) == 20
    assert fatality_points(10) == 25
    assert fatality_points(99) == 35
    assert fatality_points(100) == 40


def test_score_is_monotonic_in_fatalities(make_event, now):
    scores = [
        score(make_event(fatalities=n, timestamp=now - timedelta(days=3)), now)
        for n in (0, 1, 5, 10, 25, 50, 100, 5000)
    ]

    assert scores == sorted(scores)


def test_worst_case_is_clamped_and_critical(make_event, now):
    event = make_event(
        fatalities=1000,
        category=EventCategory.AIRSTRIKE,
        source=DataSource.STRUCTURED_API,
        verified=True,
        timestamp=now,
    )

    assert score(event, now) == 100
    assert classify(event, now) == SeverityLevel.CRITICAL


def test_old_unverified_protest_is_low(make_event, now):
    event = make_event(
        category=EventCategory.PROTEST,
        source=DataSource.SOCIAL,
        timestamp=now - timedelta(days=2),
    )

    assert score(event, now) == 15
    assert classify(event, now) == SeverityLevel.LOW


def test_recency_bonus_steps_down_with_age(make_event, now):
    base = dict(category=EventCategory.BATTLE, source=DataSource.NEWS)

    fresh = score(make_event(timestamp=now - timedelta(hours=6), **base), now)
    today = score(make_event(timestamp=now - timedelta(hours=7), **base), now)
    old = score(make_event(timestamp=now - timedelta(hours=25), **base), now)

    assert fresh - old == 10
    assert today - old == 5


def test_classify_is_pure_for_fixed_now(make_event, now):
    event = make_event(fatalities=30, category=EventCategory.BOMBING)

    assert classify(event, now) == classify(event, now)


def test_is_high_or_critical(make_event):
    assert is_high_or_critical(make_event(severity=SeverityLevel.HIGH))
    assert is_high_or_critical(make_event(severity=SeverityLevel.CRITICAL))
    assert not is_high_or_critical(make_event(severity=SeverityLevel.MEDIUM))


def test_global_threat_level_thresholds(make_event, now):
    assert global_threat_level([], now) == ThreatLevel.MINIMAL

    busy = [make_event() for _ in range(10)]
    assert global_threat_level(busy, now) == ThreatLevel.ELEVATED

    deadly = [make_event(fatalities=50)]
    assert global_threat_level(deadly, now) == ThreatLevel.HIGH

    severe = [make_event(severity=SeverityLevel.CRITICAL) for _ in range(3)]
    assert global_threat_level(severe, now) == ThreatLevel.SEVERE

    catastrophic = [make_event(fatalities=250)]
    assert global_threat_level(catastrophic, now) == ThreatLevel.CRITICAL


def test_global_threat_level_ignores_events_outside_last_day(make_event, now):
    events = [
        make_event(fatalities=500, timestamp=now - timedelta(hours=25)),
        make_event(fatalities=500, timestamp=now + timedelta(hours=1)),
    ]

    assert global_threat_level(events, now) == ThreatLevel.MINIMAL
