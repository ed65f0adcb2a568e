"""
Background Refresh Queue

Hand-off point between the cache and whatever recomputes analyses.

The cache only *requests* a refresh: it puts a RefreshRequest on the queue
and returns. A RefreshWorker drains the queue in a background task and calls
an injected handler (the analysis pipeline). Requests are deduplicated while
pending and rate-limited per key, so concurrent stale hits on the same key
produce one recompute instead of a storm.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional, Set

from marketlens.database.models import utcnow
from .config import CacheConfig, get_cache_config


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshRequest:
    """Message asking for one cache key to be recomputed."""
    key: str
    business_id: str
    analysis_type: str
    industry: Optional[str] = None
    score: Optional[float] = None
    requested_at: datetime = field(default_factory=utcnow)


RefreshHandler = Callable[[RefreshRequest], Awaitable[None]]


async def log_refresh(refresh: RefreshRequest) -> None:
    """Default handler when no analysis pipeline is wired in."""
    logger.info(
        f"Refresh due for {refresh.key} "
        f"(business={refresh.business_id}, type={refresh.analysis_type}, score={refresh.score})"
    )


class RefreshQueue:
    """
    Bounded, deduplicating queue of refresh requests.

    request() is synchronous and never raises, so it is safe to call from
    the read path.
    """

    def __init__(
        self,
        min_interval_seconds: float = 300.0,
        maxsize: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval_seconds = min_interval_seconds
        self._queue: "asyncio.Queue[RefreshRequest]" = asyncio.Queue(maxsize=maxsize)
        self._pending: Set[str] = set()
        self._last_requested: Dict[str, float] = {}
        self._clock = clock
        self._stats = {
            "accepted": 0,
            "deduplicated": 0,
            "rate_limited": 0,
            "dropped": 0,
        }

    @classmethod
    def from_config(cls, config: Optional[CacheConfig] = None) -> "RefreshQueue":
        """Queue sized and rate-limited from CACHE_REFRESH_* settings."""
        config = config or get_cache_config()
        return cls(
            min_interval_seconds=config.refresh_min_interval,
            maxsize=config.refresh_queue_size,
        )

    def request(self, refresh: RefreshRequest) -> bool:
        """
        Enqueue a refresh request.

        Returns:
            True if accepted, False if it was a duplicate, rate-limited,
            or the queue was full
        """
        key = refresh.key

        if key in self._pending:
            self._stats["deduplicated"] += 1
            logger.debug(f"Refresh already pending for {key}")
            return False

        now = self._clock()
        last = self._last_requested.get(key)
        if last is not None and now - last < self.min_interval_seconds:
            self._stats["rate_limited"] += 1
            logger.debug(f"Refresh for {key} rate-limited ({now - last:.0f}s since last)")
            return False

        try:
            self._queue.put_nowait(refresh)
        except asyncio.QueueFull:
            self._stats["dropped"] += 1
            logger.warning(f"Refresh queue full, dropping request for {key}")
            return False

        self._pending.add(key)
        self._last_requested[key] = now
        self._stats["accepted"] += 1
        logger.info(f"Background refresh requested for {key} (score={refresh.score})")
        return True

    async def get(self) -> RefreshRequest:
        return await self._queue.get()

    def get_nowait(self) -> RefreshRequest:
        return self._queue.get_nowait()

    def complete(self, refresh: RefreshRequest) -> None:
        """Release a key once its refresh finished (successfully or not)."""
        self._pending.discard(refresh.key)
        self._queue.task_done()

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def qsize(self) -> int:
        return self._queue.qsize()

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats, pending=len(self._pending))


class RefreshWorker:
    """
    Drains a RefreshQueue and calls the handler for each request.

    Handler failures are logged here and never propagate.
    """

    def __init__(self, queue: RefreshQueue, handler: RefreshHandler):
        self.queue = queue
        self.handler = handler
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.processed = 0
        self.failed = 0

    async def process(self, refresh: RefreshRequest) -> bool:
        """Run the handler for one request; True on success."""
        try:
            await self.handler(refresh)
            self.processed += 1
            logger.info(f"Background refresh completed for {refresh.key}")
            return True
        except Exception as e:
            self.failed += 1
            logger.error(f"Background refresh failed for {refresh.key}: {e}")
            return False
        finally:
            self.queue.complete(refresh)

    async def drain(self) -> int:
        """Process everything currently queued, then return the count handled."""
        handled = 0
        while True:
            try:
                refresh = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                return handled
            await self.process(refresh)
            handled += 1

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self._running:
            return

        self._running = True

        async def refresh_loop():
            while self._running:
                refresh = await self.queue.get()
                await self.process(refresh)

        self._task = asyncio.create_task(refresh_loop())
        logger.info("Background refresh worker started")

    async def stop(self) -> None:
        """Stop the background loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Background refresh worker stopped")
