"""
MarketLens Analysis Cache

Freshness-aware caching for expensive LLM analyses.

Key components:
- IntelligentCache: get/set/invalidate/cleanup/get_stats orchestration
- calculate_freshness: pure multi-factor freshness score
- CacheStore: SQLAlchemy adapter for the analysis_cache table
- RefreshQueue / RefreshWorker: background refresh hand-off
- DatabaseFingerprintProvider / DatabaseActivityProvider: default signals

Usage:
    cache = IntelligentCache(
        store=CacheStore(db),
        fingerprints=DatabaseFingerprintProvider.for_session(db),
        activity=DatabaseActivityProvider.for_session(db),
        refresh_queue=queue,
    )
    lookup = await cache.get(key, CacheContext(business_id=business_id))
"""

from marketlens.cache.config import (
    AnalysisTTL,
    CacheConfig,
    FreshnessPolicy,
    INDUSTRY_VOLATILITY,
    get_cache_config,
)
from marketlens.cache.freshness import (
    FreshnessFactors,
    FreshnessScore,
    FreshnessSignals,
    Recommendation,
    calculate_age_score,
    calculate_freshness,
    get_industry_volatility,
    get_recommendation,
)
from marketlens.cache.store import CacheEntry, CacheStore, MalformedEntryError
from marketlens.cache.signals import (
    ActivitySignalProvider,
    DatabaseActivityProvider,
    DatabaseFingerprintProvider,
    FingerprintProvider,
    hash_business_data,
)
from marketlens.cache.refresh import RefreshQueue, RefreshRequest, RefreshWorker, log_refresh
from marketlens.cache.intelligent_cache import (
    CacheContext,
    CacheLookup,
    CacheStats,
    IntelligentCache,
)

__all__ = [
    # Config
    "AnalysisTTL",
    "CacheConfig",
    "FreshnessPolicy",
    "INDUSTRY_VOLATILITY",
    "get_cache_config",
    # Freshness
    "FreshnessFactors",
    "FreshnessScore",
    "FreshnessSignals",
    "Recommendation",
    "calculate_age_score",
    "calculate_freshness",
    "get_industry_volatility",
    "get_recommendation",
    # Store
    "CacheEntry",
    "CacheStore",
    "MalformedEntryError",
    # Signals
    "ActivitySignalProvider",
    "DatabaseActivityProvider",
    "DatabaseFingerprintProvider",
    "FingerprintProvider",
    "hash_business_data",
    # Refresh
    "RefreshQueue",
    "RefreshRequest",
    "RefreshWorker",
    "log_refresh",
    # Orchestrator
    "CacheContext",
    "CacheLookup",
    "CacheStats",
    "IntelligentCache",
]
