"""Conflict feed API routes."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from models.conflict import ConflictEvent, SeverityLevel
from services.conflict_feed import ConflictFeedService, FeedSnapshot
from services.conflict_feed.metrics import TIME_RANGES
from utils.logger import api_logger
from utils.utcnow import to_iso

router = APIRouter(tags=["conflict-feed"])


def get_conflict_feed_service(request: Request) -> ConflictFeedService:
    service = getattr(request.app.state, "conflict_feed", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Conflict feed service not initialized")
    return service


def _events_payload(events: list[ConflictEvent], snapshot: Optional[FeedSnapshot] = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "events": [e.model_dump(mode="json") for e in events],
        "count": len(events),
    }
    if snapshot is not None:
        payload["stale"] = snapshot.stale
        payload["fetched_at"] = to_iso(snapshot.fetched_at)
        payload["source_count"] = snapshot.source_count
    return payload


@router.get("/events")
async def get_events(
    force_refresh: bool = Query(False, description="Bypass the cache and refetch every source"),
    time_range: str = Query("all", description="1h, 6h, 24h, 7d, 30d, 90d or all"),
    limit: Optional[int] = Query(None, ge=1, le=5000),
    service: ConflictFeedService = Depends(get_conflict_feed_service),
):
    """Merged, de-duplicated feed, newest first."""
    if time_range not in TIME_RANGES:
        raise HTTPException(status_code=400, detail=f"Unknown time_range '{time_range}'")
    snapshot = await service.get_events(time_range=time_range, force_refresh=force_refresh)
    events = snapshot.events if limit is None else snapshot.events[:limit]
    return _events_payload(events, snapshot)


@router.get("/events/critical")
async def get_critical_events(
    force_refresh: bool = Query(False),
    service: ConflictFeedService = Depends(get_conflict_feed_service),
):
    events = await service.get_critical_events(force_refresh=force_refresh)
    return _events_payload(events)


@router.get("/events/location/{query}")
async def get_events_by_location(
    query: str,
    service: ConflictFeedService = Depends(get_conflict_feed_service),
):
    events = await service.get_events_by_location(query)
    return _events_payload(events)


@router.get("/events/severity/{tier}")
async def get_events_by_severity(
    tier: str,
    service: ConflictFeedService = Depends(get_conflict_feed_service),
):
    try:
        level = SeverityLevel(tier.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown severity '{tier}'; expected one of {', '.join(s.value for s in SeverityLevel)}",
        )
    events = await service.get_events_by_severity(level)
    return _events_payload(events)


@router.get("/locations/{location}/stats")
async def get_location_stats(
    location: str,
    service: ConflictFeedService = Depends(get_conflict_feed_service),
):
    stats = await service.get_location_stats(location)
    return {
        "location": stats.location,
        "total_events": stats.total_events,
        "total_fatalities": stats.total_fatalities,
        "recent_events": stats.recent_events,
        "severity_breakdown": stats.severity_breakdown,
        "category_breakdown": stats.category_breakdown,
        "trend": stats.trend,
    }


@router.get("/metrics")
async def get_dashboard_metrics(service: ConflictFeedService = Depends(get_conflict_feed_service)):
    metrics = await service.get_dashboard_metrics()
    return metrics.model_dump(mode="json")


@router.get("/sources")
async def get_source_status(service: ConflictFeedService = Depends(get_conflict_feed_service)):
    return {
        "sources": service.get_source_status(),
        "performance": service.get_performance_metrics(),
    }


@router.get("/data-quality")
async def get_data_quality(service: ConflictFeedService = Depends(get_conflict_feed_service)):
    return await service.get_data_quality_report()


@router.post("/cache/clear")
async def clear_cache(service: ConflictFeedService = Depends(get_conflict_feed_service)):
    service.clear_cache()
    api_logger.info("Cache cleared via API")
    return {"status": "cleared"}
