"""
Intelligent Analysis Cache

Serves cached LLM analyses with a freshness judgment instead of a fixed TTL.

On every hit the entry is scored (see freshness.py) and one of three things
happens:
- use_cached: return the data
- refresh_background: return the data and queue a recompute
- refresh_immediate: report a miss so the caller recomputes now

The cache is a performance optimization, never a dependency: every public
method absorbs store and signal failures, logs them, and falls back to a
miss / no-op / zeroed result.
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, Optional, TypeVar

from .config import AnalysisTTL, CacheConfig, get_cache_config
from .freshness import FreshnessScore, FreshnessSignals, Recommendation, calculate_freshness
from .refresh import RefreshQueue, RefreshRequest
from .signals import ActivitySignalProvider, FingerprintProvider
from .store import CacheEntry, CacheStore, MalformedEntryError, cutoff_for_age
from marketlens.database.models import utcnow


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheContext:
    """Who is asking, and whether they want to bypass the cache."""
    business_id: str
    industry: Optional[str] = None
    force_refresh: bool = False


@dataclass
class CacheLookup(Generic[T]):
    """Result of IntelligentCache.get()."""
    data: Optional[T]
    freshness: Optional[FreshnessScore]
    from_cache: bool

    @classmethod
    def miss(cls, freshness: Optional[FreshnessScore] = None) -> "CacheLookup[T]":
        return cls(data=None, freshness=freshness, from_cache=False)


@dataclass
class CacheStats:
    """
    Aggregate cache statistics.

    hit_rate is total accesses / total entries: a popularity proxy, not a
    true hit/miss ratio (misses are not recorded).
    """
    total_entries: int = 0
    hit_rate: float = 0.0
    avg_age: float = 0.0  # hours
    by_type: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_entries": self.total_entries,
            "hit_rate": self.hit_rate,
            "avg_age": self.avg_age,
            "by_type": dict(self.by_type),
        }


class IntelligentCache:
    """
    Freshness-aware cache for expensive analyses.

    Usage:
        cache = IntelligentCache(
            store=CacheStore(db),
            fingerprints=DatabaseFingerprintProvider.for_session(db),
            activity=DatabaseActivityProvider.for_session(db),
            refresh_queue=queue,
        )

        lookup = await cache.get(key, CacheContext(business_id="b-1", industry="saas"))
        if not lookup.from_cache:
            result = await run_analysis(...)
            await cache.set(key, result, CacheContext(business_id="b-1"), analysis_type="strategic")
    """

    def __init__(
        self,
        store: CacheStore,
        fingerprints: FingerprintProvider,
        activity: ActivitySignalProvider,
        refresh_queue: RefreshQueue,
        config: Optional[CacheConfig] = None,
    ):
        self.store = store
        self.fingerprints = fingerprints
        self.activity = activity
        self.config = config or get_cache_config()
        self.refresh_queue = refresh_queue

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def get(self, key: str, context: CacheContext) -> CacheLookup:
        """
        Get a cached analysis with a freshness assessment.

        Args:
            key: Cache key built by the caller
            context: Business context; force_refresh bypasses the cache

        Returns:
            CacheLookup; from_cache is False whenever the caller must recompute
        """
        if context.force_refresh or not self.config.enabled:
            return CacheLookup.miss()

        try:
            entry = self.store.get(key)
            if entry is None:
                return CacheLookup.miss()

            self._record_access(key)

            freshness = await self.assess_freshness(entry, context)

            if freshness.recommendation == Recommendation.USE_CACHED:
                return CacheLookup(data=entry.data, freshness=freshness, from_cache=True)

            if freshness.recommendation == Recommendation.REFRESH_BACKGROUND:
                self._request_refresh(entry, context, freshness)
                return CacheLookup(data=entry.data, freshness=freshness, from_cache=True)

            logger.info(f"Cache entry {key} too stale (score={freshness.score}), forcing refresh")
            return CacheLookup.miss(freshness)

        except MalformedEntryError as e:
            logger.warning(f"Treating malformed cache entry as a miss: {e}")
            return CacheLookup.miss()
        except Exception as e:
            logger.error(f"Cache get error for {key}: {e}")
            return CacheLookup.miss()

    async def set(
        self,
        key: str,
        data: Any,
        context: CacheContext,
        analysis_type: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Store an analysis, replacing any entry under the same key.

        The current business-data fingerprint is stored alongside so later
        reads can detect source drift.
        """
        if not self.config.enabled:
            return

        try:
            business_data_hash = await self._fingerprint(context.business_id)

            entry_metadata = dict(metadata or {})
            entry_metadata["business_data_hash"] = business_data_hash
            entry_metadata["industry"] = context.industry

            self.store.upsert(
                key=key,
                data=data,
                business_id=context.business_id,
                analysis_type=analysis_type,
                metadata=entry_metadata,
            )
            logger.debug(f"Cached {analysis_type} analysis for business {context.business_id}")

        except Exception as e:
            logger.error(f"Cache set error for {key}: {e}")

    async def invalidate(self, business_id: str, analysis_type: Optional[str] = None) -> int:
        """Delete all entries for a business, optionally only one analysis type."""
        try:
            deleted = self.store.delete_by_business(business_id, analysis_type)
            scope = f" ({analysis_type})" if analysis_type else ""
            logger.info(f"Invalidated {deleted} cache entries for business {business_id}{scope}")
            return deleted
        except Exception as e:
            logger.error(f"Cache invalidate error for business {business_id}: {e}")
            return 0

    async def cleanup(self, max_age_hours: Optional[float] = None) -> int:
        """
        Delete entries older than `max_age_hours` (default 720 = 30 days).

        Returns:
            Number of entries deleted
        """
        if max_age_hours is None:
            max_age_hours = self.config.cleanup_max_age_hours

        try:
            deleted = self.store.delete_older_than(cutoff_for_age(max_age_hours))
            logger.info(f"Cleaned up {deleted} cache entries older than {max_age_hours}h")
            return deleted
        except Exception as e:
            logger.error(f"Cache cleanup error: {e}")
            return 0

    async def get_stats(self, business_id: Optional[str] = None) -> CacheStats:
        """Entry count, access-based hit rate, average age (hours), count by type."""
        try:
            entries = self.store.list_entries(business_id)
        except Exception as e:
            logger.error(f"Cache stats error: {e}")
            return CacheStats()

        if not entries:
            return CacheStats()

        now = utcnow()
        total_entries = len(entries)
        total_accesses = sum(entry.access_count for entry in entries)
        avg_age = sum(entry.age_hours(now) for entry in entries) / total_entries

        return CacheStats(
            total_entries=total_entries,
            hit_rate=total_accesses / max(1, total_entries),
            avg_age=avg_age,
            by_type=dict(Counter(entry.analysis_type for entry in entries)),
        )

    async def assess_freshness(
        self,
        entry: CacheEntry,
        context: CacheContext,
        now: Optional[datetime] = None,
    ) -> FreshnessScore:
        """Gather signals for `entry` and score them."""
        now = now or utcnow()
        industry = context.industry or entry.metadata.get("industry")

        signals = FreshnessSignals(
            age_hours=max(0.0, entry.age_hours(now)),
            ttl_hours=AnalysisTTL.for_type(entry.analysis_type),
            business_data_changed=await self._has_business_data_changed(
                context.business_id, entry.business_data_hash
            ),
            competitor_events=await self._competitor_events(context.business_id, entry.created_at),
            industry_volatility=self.activity.industry_volatility(industry),
            access_count=entry.access_count,
        )
        return calculate_freshness(signals, self.config.policy)

    # =========================================================================
    # BEST-EFFORT SIGNALS (swallow and log)
    # =========================================================================

    async def _fingerprint(self, business_id: str) -> str:
        """Current fingerprint, or "" if the provider is slow or failing."""
        try:
            return await asyncio.wait_for(
                self.fingerprints.fingerprint(business_id),
                timeout=self.config.fingerprint_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Fingerprint for business {business_id} timed out "
                f"after {self.config.fingerprint_timeout}s"
            )
            return ""
        except Exception as e:
            logger.warning(f"Fingerprint for business {business_id} failed: {e}")
            return ""

    async def _has_business_data_changed(self, business_id: str, previous_hash: Optional[str]) -> bool:
        """Missing stored hash or an unavailable fingerprint both count as changed."""
        if not previous_hash:
            return True

        current_hash = await self._fingerprint(business_id)
        if not current_hash:
            return True
        return current_hash != previous_hash

    async def _competitor_events(self, business_id: str, since: datetime) -> int:
        try:
            return await asyncio.wait_for(
                self.activity.competitor_events_since(business_id, since),
                timeout=self.config.activity_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Competitor activity lookup for {business_id} timed out")
            return 0
        except Exception as e:
            logger.warning(f"Competitor activity lookup for {business_id} failed: {e}")
            return 0

    def _record_access(self, key: str) -> None:
        """Bump access stats; a failure here must not fail the read."""
        try:
            self.store.record_access(key)
        except Exception as e:
            logger.warning(f"Failed to update access stats for {key}: {e}")

    def _request_refresh(self, entry: CacheEntry, context: CacheContext, freshness: FreshnessScore) -> None:
        try:
            self.refresh_queue.request(RefreshRequest(
                key=entry.key,
                business_id=context.business_id,
                analysis_type=entry.analysis_type,
                industry=context.industry or entry.metadata.get("industry"),
                score=freshness.score,
            ))
        except Exception as e:
            logger.error(f"Failed to request background refresh for {entry.key}: {e}")
