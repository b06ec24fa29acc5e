import asyncio
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes_conflict_feed import router as conflict_feed_router
from config import settings
from services.conflict_feed import build_conflict_feed_service
from utils.logger import get_logger, setup_logging
from utils.utcnow import utcnow

# Setup logging
setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON, log_file=settings.LOG_FILE)
logger = get_logger("main")


async def _warm_cache(service) -> None:
    snapshot = await service.get_feed()
    logger.info(
        "Initial conflict feed loaded",
        events=len(snapshot.events),
        sources=snapshot.source_count,
        stale=snapshot.stale,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting conflict feed aggregator...")

    # Raises ConfigurationError on a broken source setup; the app must not start.
    service = build_conflict_feed_service(settings)
    app.state.conflict_feed = service

    tasks = []
    if settings.CONFLICT_FEED_WARM_ON_STARTUP:
        tasks.append(asyncio.create_task(_warm_cache(service)))

    try:
        yield
    finally:
        logger.info("Shutting down...")
        for task in tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await service.aclose()
        logger.info("Shutdown complete")


app = FastAPI(
    title="Conflict Feed",
    description="Multi-source conflict event aggregation and dashboard metrics",
    version="1.0.0",
    lifespan=lifespan,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        traceback=traceback.format_exc(),
    )
    return JSONResponse(
        status_code=500, content={"detail": "Internal server error", "error": str(exc)}
    )


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# API routes
app.include_router(conflict_feed_router, prefix="/api", tags=["Conflict Feed"])


# Health checks
@app.get("/health")
async def health_check(request: Request):
    """Service health plus per-source status."""
    service = getattr(request.app.state, "conflict_feed", None)
    if service is None:
        return {"status": "starting", "timestamp": utcnow().isoformat()}

    sources = service.get_source_status()
    enabled = [s for s in sources.values() if s["enabled"]]
    healthy = [s for s in enabled if s["healthy"]]
    if enabled and not healthy:
        status = "unhealthy"
    elif len(healthy) < len(enabled):
        status = "degraded"
    else:
        status = "ok"

    return {
        "status": status,
        "timestamp": utcnow().isoformat(),
        "sources": sources,
        "performance": service.get_performance_metrics(),
    }


@app.get("/health/live")
async def liveness_check():
    """Liveness probe - is the service running?"""
    return {"status": "alive", "timestamp": utcnow().isoformat()}


if __name__ == "__main__":
    import os
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    # Single worker: the feed cache and source health live in-process.
    uvicorn.run(app, host="0.0.0.0", port=port, timeout_keep_alive=30)
