"""
Pytest Configuration and Shared Fixtures

Provides common fixtures and configuration for all test modules.
"""

import pytest
from datetime import datetime, timedelta
from typing import Dict, Any
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketlens.database.models import Base, utcnow
from marketlens.cache import (
    CacheConfig,
    CacheStore,
    IntelligentCache,
    RefreshQueue,
)
from marketlens.benchmarks import BenchmarkStatistics, BenchmarkStatisticsStore, IndustryBenchmarks


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database shared across connections."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Session bound to the in-memory database."""
    SessionLocal = sessionmaker(
        bind=db_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    yield session
    session.close()


# ============================================================================
# Cache Fixtures
# ============================================================================

@pytest.fixture
def cache_config() -> CacheConfig:
    """Cache config independent of the environment."""
    return CacheConfig(
        enabled=True,
        fingerprint_timeout=0.5,
        activity_timeout=0.5,
        refresh_min_interval=300,
        refresh_queue_size=100,
        cleanup_max_age_hours=720,
    )


@pytest.fixture
def mock_fingerprints():
    """Fingerprint provider whose source data never changes."""
    provider = MagicMock()
    provider.fingerprint = AsyncMock(return_value="hash-v1")
    return provider


@pytest.fixture
def mock_activity():
    """Quiet competitors in a zero-volatility industry."""
    provider = MagicMock()
    provider.competitor_events_since = AsyncMock(return_value=0)
    provider.industry_volatility = MagicMock(return_value=0.0)
    return provider


@pytest.fixture
def refresh_queue() -> RefreshQueue:
    return RefreshQueue(min_interval_seconds=300, maxsize=100)


@pytest.fixture
def cache_store(db_session) -> CacheStore:
    return CacheStore(db_session)


@pytest.fixture
def intelligent_cache(cache_store, mock_fingerprints, mock_activity, refresh_queue, cache_config):
    return IntelligentCache(
        store=cache_store,
        fingerprints=mock_fingerprints,
        activity=mock_activity,
        refresh_queue=refresh_queue,
        config=cache_config,
    )


@pytest.fixture
def hours_ago():
    """Factory for naive UTC timestamps in the past."""
    def _hours_ago(hours: float) -> datetime:
        return utcnow() - timedelta(hours=hours)
    return _hours_ago


# ============================================================================
# Benchmark Fixtures
# ============================================================================

@pytest.fixture
def conversion_rate_stats() -> BenchmarkStatistics:
    """Base conversion_rate table (multiplier 1.0)."""
    return BenchmarkStatistics(
        p10=0.5, p25=1.0, p50=2.0, p75=3.5, p90=5.0,
        mean=2.4, sample_size=100, synthetic=False,
    )


@pytest.fixture
def benchmark_store(db_session) -> BenchmarkStatisticsStore:
    return BenchmarkStatisticsStore(db_session)


@pytest.fixture
def benchmarks(benchmark_store) -> IndustryBenchmarks:
    return IndustryBenchmarks(benchmark_store)


@pytest.fixture
def sample_metrics() -> Dict[str, Any]:
    """Metrics for a mid-sized ecommerce business."""
    return {
        "conversion_rate": 2.0,
        "average_order_value": 180.0,
        "churn_rate": 0.5,
        "email_open_rate": 40.0,
    }


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
