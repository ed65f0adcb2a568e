"""
Tests for the IntelligentCache orchestrator.

These tests verify:
- The three-way freshness decision on read
- force_refresh and CACHE_ENABLED bypasses
- Fingerprint drift detection and provider failure handling
- Invalidation scoping, age-based cleanup, statistics
- Errors never escaping public methods
"""

import asyncio
import time
import pytest
from unittest.mock import AsyncMock, MagicMock

from marketlens.cache import (
    CacheConfig,
    CacheContext,
    CacheStats,
    DatabaseActivityProvider,
    DatabaseFingerprintProvider,
    IntelligentCache,
    Recommendation,
)
from marketlens.database.models import AnalysisCacheEntry


CONTEXT = CacheContext(business_id="biz-1", industry="retail")


def seed(cache_store, key="biz-1:marketing", analysis_type="marketing", created=None,
         business_id="biz-1", business_data_hash="hash-v1"):
    cache_store.upsert(
        key=key,
        data={"positioning": "premium"},
        business_id=business_id,
        analysis_type=analysis_type,
        metadata={"business_data_hash": business_data_hash},
        now=created,
    )


# =============================================================================
# GET
# =============================================================================

class TestGet:
    """Test reads and the refresh decision."""

    @pytest.mark.asyncio
    async def test_miss_on_empty_store(self, intelligent_cache):
        lookup = await intelligent_cache.get("absent", CONTEXT)

        assert lookup.from_cache is False
        assert lookup.data is None
        assert lookup.freshness is None

    @pytest.mark.asyncio
    async def test_fresh_entry_served(self, intelligent_cache, cache_store):
        seed(cache_store)

        lookup = await intelligent_cache.get("biz-1:marketing", CONTEXT)

        assert lookup.from_cache is True
        assert lookup.data == {"positioning": "premium"}
        assert lookup.freshness.recommendation == Recommendation.USE_CACHED
        assert cache_store.get("biz-1:marketing").access_count == 2

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_scoring(self, intelligent_cache, cache_store, mock_fingerprints):
        seed(cache_store)

        lookup = await intelligent_cache.get(
            "biz-1:marketing",
            CacheContext(business_id="biz-1", force_refresh=True),
        )

        assert lookup.from_cache is False
        assert lookup.freshness is None
        mock_fingerprints.fingerprint.assert_not_awaited()
        assert cache_store.get("biz-1:marketing").access_count == 1

    @pytest.mark.asyncio
    async def test_changed_business_data_served_with_background_refresh(
        self, intelligent_cache, cache_store, mock_fingerprints, refresh_queue
    ):
        seed(cache_store)
        mock_fingerprints.fingerprint.return_value = "hash-v2"

        lookup = await intelligent_cache.get("biz-1:marketing", CONTEXT)

        assert lookup.from_cache is True
        assert lookup.data == {"positioning": "premium"}
        assert lookup.freshness.recommendation == Recommendation.REFRESH_BACKGROUND
        assert lookup.freshness.factors.business_data_changed is True
        assert refresh_queue.is_pending("biz-1:marketing")

        request = refresh_queue.get_nowait()
        assert request.business_id == "biz-1"
        assert request.analysis_type == "marketing"
        assert request.industry == "retail"

    @pytest.mark.asyncio
    async def test_repeated_stale_hits_queue_one_refresh(
        self, intelligent_cache, cache_store, mock_fingerprints, refresh_queue
    ):
        seed(cache_store)
        mock_fingerprints.fingerprint.return_value = "hash-v2"

        for _ in range(3):
            await intelligent_cache.get("biz-1:marketing", CONTEXT)

        assert refresh_queue.qsize() == 1
        assert refresh_queue.get_stats()["deduplicated"] == 2

    @pytest.mark.asyncio
    async def test_very_stale_entry_is_a_miss(
        self, intelligent_cache, cache_store, mock_fingerprints, mock_activity, hours_ago, refresh_queue
    ):
        seed(cache_store, analysis_type="quick", created=hours_ago(200))
        mock_fingerprints.fingerprint.return_value = "hash-v2"
        mock_activity.competitor_events_since.return_value = 12
        mock_activity.industry_volatility.return_value = 0.9

        lookup = await intelligent_cache.get("biz-1:marketing", CONTEXT)

        assert lookup.from_cache is False
        assert lookup.data is None
        assert lookup.freshness.recommendation == Recommendation.REFRESH_IMMEDIATE
        assert refresh_queue.qsize() == 0

    @pytest.mark.asyncio
    async def test_missing_stored_hash_counts_as_changed(self, intelligent_cache, cache_store):
        seed(cache_store, business_data_hash="")

        lookup = await intelligent_cache.get("biz-1:marketing", CONTEXT)

        assert lookup.freshness.factors.business_data_changed is True

    @pytest.mark.asyncio
    async def test_store_error_is_a_miss(self, mock_fingerprints, mock_activity, refresh_queue, cache_config):
        store = MagicMock()
        store.get.side_effect = RuntimeError("database is gone")
        cache = IntelligentCache(store, mock_fingerprints, mock_activity, refresh_queue, config=cache_config)

        lookup = await cache.get("k", CONTEXT)

        assert lookup.from_cache is False
        assert lookup.data is None

    @pytest.mark.asyncio
    async def test_malformed_entry_is_a_miss(self, intelligent_cache, cache_store, db_session):
        db_session.add(AnalysisCacheEntry(
            key="bad", business_id="biz-1", analysis_type="quick", data={"x": 1}, meta="oops",
        ))
        db_session.commit()

        lookup = await intelligent_cache.get("bad", CONTEXT)

        assert lookup.from_cache is False

    @pytest.mark.asyncio
    async def test_access_bump_failure_does_not_fail_read(
        self, intelligent_cache, cache_store, monkeypatch
    ):
        seed(cache_store)
        monkeypatch.setattr(cache_store, "record_access", MagicMock(side_effect=RuntimeError("locked")))

        lookup = await intelligent_cache.get("biz-1:marketing", CONTEXT)

        assert lookup.from_cache is True

    @pytest.mark.asyncio
    async def test_disabled_cache_always_misses(
        self, cache_store, mock_fingerprints, mock_activity, refresh_queue
    ):
        seed(cache_store)
        cache = IntelligentCache(
            cache_store, mock_fingerprints, mock_activity, refresh_queue,
            config=CacheConfig(enabled=False),
        )

        lookup = await cache.get("biz-1:marketing", CONTEXT)

        assert lookup.from_cache is False


# =============================================================================
# SIGNAL PROVIDERS
# =============================================================================

class TestSignalFailures:
    """Slow or failing providers degrade conservatively."""

    @pytest.mark.asyncio
    async def test_fingerprint_timeout_counts_as_changed(
        self, cache_store, mock_fingerprints, mock_activity, refresh_queue
    ):
        async def slow_fingerprint(business_id):
            await asyncio.sleep(1)
            return "hash-v1"

        seed(cache_store)
        mock_fingerprints.fingerprint = AsyncMock(side_effect=slow_fingerprint)
        cache = IntelligentCache(
            cache_store, mock_fingerprints, mock_activity, refresh_queue,
            config=CacheConfig(fingerprint_timeout=0.01),
        )

        lookup = await cache.get("biz-1:marketing", CONTEXT)

        assert lookup.freshness.factors.business_data_changed is True
        assert lookup.freshness.recommendation == Recommendation.REFRESH_BACKGROUND

    @pytest.mark.asyncio
    async def test_fingerprint_error_counts_as_changed(
        self, intelligent_cache, cache_store, mock_fingerprints
    ):
        seed(cache_store)
        mock_fingerprints.fingerprint.side_effect = ConnectionError("scraper down")

        lookup = await intelligent_cache.get("biz-1:marketing", CONTEXT)

        assert lookup.freshness.factors.business_data_changed is True

    @pytest.mark.asyncio
    async def test_competitor_lookup_failure_counts_as_quiet(
        self, intelligent_cache, cache_store, mock_activity
    ):
        seed(cache_store)
        mock_activity.competitor_events_since.side_effect = RuntimeError("timeout")

        lookup = await intelligent_cache.get("biz-1:marketing", CONTEXT)

        assert lookup.freshness.factors.competitor_activity == 0.0
        assert lookup.freshness.recommendation == Recommendation.USE_CACHED

    @pytest.mark.asyncio
    async def test_competitor_events_counted_since_creation(
        self, intelligent_cache, cache_store, mock_activity
    ):
        seed(cache_store)
        mock_activity.competitor_events_since.return_value = 5

        lookup = await intelligent_cache.get("biz-1:marketing", CONTEXT)

        assert lookup.freshness.factors.competitor_activity == 0.5
        business_id, since = mock_activity.competitor_events_since.await_args.args
        assert business_id == "biz-1"
        assert since == cache_store.get("biz-1:marketing").created_at

    @pytest.mark.asyncio
    async def test_slow_database_fingerprint_bounded_by_timeout(
        self, cache_store, mock_activity, refresh_queue
    ):
        slow_session = MagicMock()
        slow_session.__enter__.return_value = slow_session
        slow_session.get.side_effect = lambda *args, **kwargs: time.sleep(1.0)

        seed(cache_store)
        cache = IntelligentCache(
            cache_store, DatabaseFingerprintProvider(lambda: slow_session), mock_activity, refresh_queue,
            config=CacheConfig(fingerprint_timeout=0.2),
        )

        start = time.perf_counter()
        lookup = await cache.get("biz-1:marketing", CONTEXT)
        elapsed = time.perf_counter() - start

        assert elapsed < 0.8
        assert lookup.from_cache is True
        assert lookup.freshness.factors.business_data_changed is True

    @pytest.mark.asyncio
    async def test_slow_database_activity_bounded_by_timeout(
        self, cache_store, mock_fingerprints, refresh_queue
    ):
        slow_session = MagicMock()
        slow_session.__enter__.return_value = slow_session
        slow_session.query.side_effect = lambda *args, **kwargs: time.sleep(1.0)

        seed(cache_store)
        cache = IntelligentCache(
            cache_store, mock_fingerprints, DatabaseActivityProvider(lambda: slow_session), refresh_queue,
            config=CacheConfig(activity_timeout=0.2),
        )

        start = time.perf_counter()
        lookup = await cache.get("biz-1:marketing", CONTEXT)
        elapsed = time.perf_counter() - start

        assert elapsed < 0.8
        assert lookup.freshness.factors.competitor_activity == 0.0


# =============================================================================
# SET / INVALIDATE / CLEANUP
# =============================================================================

class TestWrites:
    """Test writes and deletions."""

    @pytest.mark.asyncio
    async def test_set_stores_fingerprint_and_industry(self, intelligent_cache, cache_store):
        await intelligent_cache.set(
            "biz-1:strategic",
            {"swot": []},
            CONTEXT,
            analysis_type="strategic",
            metadata={"competitor_count": 4},
        )

        entry = cache_store.get("biz-1:strategic")
        assert entry.data == {"swot": []}
        assert entry.metadata == {
            "competitor_count": 4,
            "business_data_hash": "hash-v1",
            "industry": "retail",
        }

    @pytest.mark.asyncio
    async def test_set_then_get_is_fresh(self, intelligent_cache):
        await intelligent_cache.set("k", {"a": 1}, CONTEXT, analysis_type="quick")

        lookup = await intelligent_cache.get("k", CONTEXT)

        assert lookup.from_cache is True
        assert lookup.freshness.recommendation == Recommendation.USE_CACHED

    @pytest.mark.asyncio
    async def test_set_with_failing_fingerprint_stores_empty_hash(
        self, intelligent_cache, cache_store, mock_fingerprints
    ):
        mock_fingerprints.fingerprint.side_effect = RuntimeError("no source data")

        await intelligent_cache.set("k", {"a": 1}, CONTEXT, analysis_type="quick")

        assert cache_store.get("k").business_data_hash is None

    @pytest.mark.asyncio
    async def test_set_swallows_store_errors(self, mock_fingerprints, mock_activity, refresh_queue, cache_config):
        store = MagicMock()
        store.upsert.side_effect = RuntimeError("disk full")
        cache = IntelligentCache(store, mock_fingerprints, mock_activity, refresh_queue, config=cache_config)

        await cache.set("k", {"a": 1}, CONTEXT, analysis_type="quick")

        store.upsert.assert_called_once()

    @pytest.mark.asyncio
    async def test_invalidate_scoping(self, intelligent_cache, cache_store):
        seed(cache_store, key="a:marketing", business_id="biz-a")
        seed(cache_store, key="a:quick", business_id="biz-a", analysis_type="quick")
        seed(cache_store, key="b:marketing", business_id="biz-b")

        assert await intelligent_cache.invalidate("biz-a", "quick") == 1
        assert cache_store.get("a:marketing") is not None

        assert await intelligent_cache.invalidate("biz-a") == 1
        assert cache_store.get("b:marketing") is not None

    @pytest.mark.asyncio
    async def test_invalidate_failure_returns_zero(self, mock_fingerprints, mock_activity, refresh_queue, cache_config):
        store = MagicMock()
        store.delete_by_business.side_effect = RuntimeError("boom")
        cache = IntelligentCache(store, mock_fingerprints, mock_activity, refresh_queue, config=cache_config)

        assert await cache.invalidate("biz-a") == 0

    @pytest.mark.asyncio
    async def test_cleanup_deletes_only_old_entries(self, intelligent_cache, cache_store, hours_ago):
        seed(cache_store, key="old", created=hours_ago(30))
        seed(cache_store, key="recent", created=hours_ago(1))

        assert await intelligent_cache.cleanup(24) == 1
        assert cache_store.get("old") is None
        assert cache_store.get("recent") is not None

    @pytest.mark.asyncio
    async def test_cleanup_default_age(self, intelligent_cache, cache_store, hours_ago):
        seed(cache_store, key="ancient", created=hours_ago(721))
        seed(cache_store, key="last_week", created=hours_ago(24 * 7))

        assert await intelligent_cache.cleanup() == 1
        assert cache_store.count() == 1


# =============================================================================
# STATS
# =============================================================================

class TestStats:
    """Test aggregate statistics."""

    @pytest.mark.asyncio
    async def test_empty_stats(self, intelligent_cache):
        stats = await intelligent_cache.get_stats()

        assert stats == CacheStats()

    @pytest.mark.asyncio
    async def test_stats_aggregate(self, intelligent_cache, cache_store, hours_ago):
        seed(cache_store, key="a", analysis_type="marketing", created=hours_ago(10))
        seed(cache_store, key="b", analysis_type="quick", created=hours_ago(20))
        seed(cache_store, key="c", analysis_type="quick", business_id="biz-2")
        cache_store.record_access("a")
        cache_store.record_access("a")

        stats = await intelligent_cache.get_stats("biz-1")

        assert stats.total_entries == 2
        assert stats.hit_rate == pytest.approx(2.0)
        assert stats.avg_age == pytest.approx(15.0, abs=0.1)
        assert stats.by_type == {"marketing": 1, "quick": 1}

        overall = await intelligent_cache.get_stats()
        assert overall.total_entries == 3
        assert overall.by_type == {"marketing": 1, "quick": 2}

    @pytest.mark.asyncio
    async def test_stats_failure_returns_zeros(self, mock_fingerprints, mock_activity, refresh_queue, cache_config):
        store = MagicMock()
        store.list_entries.side_effect = RuntimeError("boom")
        cache = IntelligentCache(store, mock_fingerprints, mock_activity, refresh_queue, config=cache_config)

        stats = await cache.get_stats()

        assert stats.to_dict() == {"total_entries": 0, "hit_rate": 0.0, "avg_age": 0.0, "by_type": {}}
