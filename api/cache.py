"""
Cache Management API

Provides endpoints for cache monitoring and manual operations.

Endpoints:
- Health check for monitoring/alerting
- Statistics for dashboard insights
- Invalidation after business data corrections
- Age-based cleanup for scheduled jobs

The refresh queue and its worker are owned by the application: they are
created on startup, shared by every request's cache, and stopped on shutdown.
"""

import logging
import time
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketlens.cache import (
    CacheStore,
    DatabaseActivityProvider,
    DatabaseFingerprintProvider,
    IntelligentCache,
    RefreshQueue,
    RefreshWorker,
    log_refresh,
)
from marketlens.cache.refresh import RefreshHandler
from marketlens.database.models import utcnow
from marketlens.database.session import get_db


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cache", tags=["Cache Management"])


# =============================================================================
# REFRESH LIFECYCLE
# =============================================================================

def start_refresh_worker(app: FastAPI, handler: RefreshHandler = log_refresh) -> RefreshWorker:
    """Create the shared refresh queue and start draining it. Call on startup."""
    queue = RefreshQueue.from_config()
    worker = RefreshWorker(queue, handler)
    worker.start()

    app.state.refresh_queue = queue
    app.state.refresh_worker = worker
    return worker


async def stop_refresh_worker(app: FastAPI) -> None:
    """Stop the shared worker. Call on shutdown."""
    worker = getattr(app.state, "refresh_worker", None)
    if worker is not None:
        await worker.stop()
        app.state.refresh_worker = None


def get_refresh_queue(request: Request) -> RefreshQueue:
    """The application's refresh queue (created by start_refresh_worker)."""
    queue = getattr(request.app.state, "refresh_queue", None)
    if queue is None:
        raise RuntimeError("Refresh queue not initialized; start_refresh_worker() was not called")
    return queue


def get_intelligent_cache(
    db: Session = Depends(get_db),
    refresh_queue: RefreshQueue = Depends(get_refresh_queue),
) -> IntelligentCache:
    """Request-scoped cache bound to the request's session and the shared queue."""
    return IntelligentCache(
        store=CacheStore(db),
        fingerprints=DatabaseFingerprintProvider.for_session(db),
        activity=DatabaseActivityProvider.for_session(db),
        refresh_queue=refresh_queue,
    )

# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CacheHealthResponse(BaseModel):
    """Cache health check response."""
    status: str = Field(..., description="healthy or unhealthy")
    backend: str = Field(default="sql", description="Cache backend type")
    cached_entries: int = Field(..., description="Number of cached entries")
    timestamp: datetime = Field(default_factory=utcnow)


class CacheStatsResponse(BaseModel):
    """Cache statistics response."""
    total_entries: int
    hit_rate: float = Field(..., description="Accesses per entry (popularity proxy)")
    avg_age: float = Field(..., description="Average entry age in hours")
    by_type: Dict[str, int] = {}
    refresh_queue: Dict[str, int] = Field(default_factory=dict, description="Background refresh counters")


class InvalidateRequest(BaseModel):
    business_id: str = Field(..., min_length=1)
    analysis_type: Optional[str] = None


class CleanupRequest(BaseModel):
    max_age_hours: Optional[float] = Field(default=None, gt=0)


class DeletionResponse(BaseModel):
    """Invalidation / cleanup response."""
    success: bool
    entries_deleted: int
    duration_ms: float
    errors: List[str] = []


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/health", response_model=CacheHealthResponse)
def cache_health_check(db: Session = Depends(get_db)):
    """
    Check cache infrastructure health.

    The cache lives in the main database, so counting entries verifies
    connectivity.
    """
    healthy = True
    cached_entries = 0
    try:
        cached_entries = CacheStore(db).count()
    except Exception as e:
        logger.error(f"Cache health check failed: {e}")
        healthy = False

    return CacheHealthResponse(
        status="healthy" if healthy else "unhealthy",
        cached_entries=cached_entries,
        timestamp=utcnow(),
    )


@router.get("/stats", response_model=CacheStatsResponse)
async def get_cache_stats(
    business_id: Optional[str] = Query(default=None, description="Limit to one business"),
    cache: IntelligentCache = Depends(get_intelligent_cache),
):
    """Entry count, accesses per entry, average age and breakdown by type."""
    stats = await cache.get_stats(business_id)
    return CacheStatsResponse(**stats.to_dict(), refresh_queue=cache.refresh_queue.get_stats())


@router.post("/invalidate", response_model=DeletionResponse)
async def invalidate_cache(
    request: InvalidateRequest,
    cache: IntelligentCache = Depends(get_intelligent_cache),
):
    """
    Invalidate cached analyses for a business.

    Use this after the business's source data changes outside the normal
    update flow, or to force recomputation while debugging.
    """
    start = time.perf_counter()
    count = await cache.invalidate(request.business_id, request.analysis_type)
    duration_ms = (time.perf_counter() - start) * 1000

    return DeletionResponse(success=True, entries_deleted=count, duration_ms=duration_ms)


@router.post("/cleanup", response_model=DeletionResponse)
async def cleanup_cache(
    request: CleanupRequest,
    cache: IntelligentCache = Depends(get_intelligent_cache),
):
    """Delete entries older than max_age_hours (default 30 days)."""
    start = time.perf_counter()
    count = await cache.cleanup(request.max_age_hours)
    duration_ms = (time.perf_counter() - start) * 1000

    return DeletionResponse(success=True, entries_deleted=count, duration_ms=duration_ms)
