"""
SQLAlchemy Models for MarketLens

Design Principles:
1. The cache table is the single source of truth for cached analyses
2. Benchmarks are unique per (industry, stage, metric); every write is also
   appended to a history table
3. Submissions and comparisons are append-only audit logs
4. Business and competitor tables are read by the freshness signals only

JSON columns use the generic JSON type with a JSONB variant on PostgreSQL,
so the same models run against SQLite in development and tests.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Text,
    Index, UniqueConstraint, JSON,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_id() -> str:
    return str(uuid4())


# =============================================================================
# ANALYSIS CACHE
# =============================================================================

class AnalysisCacheEntry(Base):
    """
    Cached LLM analysis keyed by a caller-built key.

    Keys are typically business id + analysis type + parameters. A write to an
    existing key replaces the whole row.
    """
    __tablename__ = "analysis_cache"

    key = Column(String(512), primary_key=True)
    business_id = Column(String(64), nullable=False)
    analysis_type = Column(String(50), nullable=False)  # strategic, marketing, competitive, quick

    data = Column(JSONType, nullable=False)
    meta = Column("metadata", JSONType, default=dict)
    """
    {
        "business_data_hash": "9f2c...",
        "industry": "saas",
        "competitor_count": 4
    }
    """

    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_accessed_at = Column(DateTime, nullable=False, default=utcnow)
    access_count = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("idx_cache_business_id", "business_id"),
        Index("idx_cache_analysis_type", "analysis_type"),
        Index("idx_cache_created_at", "created_at"),
    )


# =============================================================================
# FRESHNESS SIGNAL SOURCES
# =============================================================================

class Business(Base):
    """Source data for a business; fingerprinted to detect drift."""
    __tablename__ = "businesses"

    id = Column(String(64), primary_key=True, default=_new_id)
    site_url = Column(String(2048))
    site_content = Column(Text)
    business_name = Column(String(255))
    industry = Column(String(100))
    key_items = Column(JSONType, default=list)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class CompetitorTracking(Base):
    """Competitor events detected by monitoring (new pages, price changes, ...)."""
    __tablename__ = "competitor_tracking"

    id = Column(String(64), primary_key=True, default=_new_id)
    business_id = Column(String(64), nullable=False)
    competitor = Column(String(255))
    event_type = Column(String(50))
    details = Column(JSONType, default=dict)
    detected_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_competitor_tracking_business", "business_id", "detected_at"),
    )


# =============================================================================
# BENCHMARKS
# =============================================================================

class IndustryBenchmarkRecord(Base):
    """Current percentile table for one (industry, stage, metric)."""
    __tablename__ = "industry_benchmarks"

    id = Column(String(64), primary_key=True, default=_new_id)
    industry = Column(String(100), nullable=False)
    business_stage = Column(String(20), nullable=False)
    metric_name = Column(String(100), nullable=False)

    statistics = Column(JSONType, nullable=False)  # {p10, p25, p50, p75, p90, mean, sample_size}
    sample_size = Column(Integer, default=0)
    is_synthetic = Column(Boolean, nullable=False, default=True)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("industry", "business_stage", "metric_name", name="uq_benchmark_segment_metric"),
        Index("idx_benchmark_segment", "industry", "business_stage"),
    )


class BenchmarkHistory(Base):
    """Append-only snapshot written alongside every benchmark upsert."""
    __tablename__ = "benchmark_history"

    id = Column(String(64), primary_key=True, default=_new_id)
    industry = Column(String(100), nullable=False)
    business_stage = Column(String(20), nullable=False)
    metric_name = Column(String(100), nullable=False)
    statistics = Column(JSONType, nullable=False)
    is_synthetic = Column(Boolean, nullable=False, default=True)
    recorded_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_benchmark_history_lookup", "industry", "business_stage", "metric_name", "recorded_at"),
    )


class AnonymousMetricsSubmission(Base):
    """Anonymized metric submission; no business identifier is stored."""
    __tablename__ = "anonymous_metrics"

    id = Column(String(64), primary_key=True, default=_new_id)
    industry = Column(String(100), nullable=False)
    business_stage = Column(String(20), nullable=False)
    metrics = Column(JSONType, nullable=False)  # {metric_name: value}
    submitted_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_anonymous_metrics_segment", "industry", "business_stage"),
    )


class BenchmarkComparisonRecord(Base):
    """Audit log of every comparison served."""
    __tablename__ = "benchmark_comparisons"

    id = Column(String(64), primary_key=True, default=_new_id)
    business_id = Column(String(64), nullable=False)
    industry = Column(String(100), nullable=False)
    stage = Column(String(20), nullable=False)
    metrics = Column(JSONType, nullable=False)
    overall_score = Column(Float, nullable=False, default=0.0)
    strengths = Column(JSONType, default=list)
    improvement_areas = Column(JSONType, default=list)
    generated_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_benchmark_comparison_business", "business_id", "generated_at"),
    )
