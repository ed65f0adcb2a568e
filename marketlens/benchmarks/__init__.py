"""
MarketLens Industry Benchmarks

Percentile comparison of business metrics against industry/stage peers.

Key components:
- IndustryBenchmarks: compare, recommend, submit, recalculate
- calculate_percentile / determine_performance: pure percentile math
- BenchmarkStatisticsStore: SQLAlchemy adapter for benchmark tables
"""

from marketlens.benchmarks.metrics import (
    DEFAULT_STATISTICS,
    INDUSTRY_MULTIPLIERS,
    METRIC_RECOMMENDATIONS,
    STANDARD_METRICS,
    MetricCategory,
    MetricDefinition,
    format_metric_name,
    get_industry_multiplier,
    get_recommendation_for_metric,
    get_unit_suffix,
)
from marketlens.benchmarks.statistics import (
    MIN_SAMPLE_SIZE,
    BenchmarkStatistics,
    PerformanceTier,
    calculate_percentile,
    compute_statistics,
    determine_performance,
    rank_percentile,
    synthesize_statistics,
)
from marketlens.benchmarks.store import BenchmarkStatisticsStore
from marketlens.benchmarks.engine import (
    BenchmarkComparison,
    BenchmarkError,
    BenchmarkInsight,
    BenchmarkUnavailableError,
    BusinessStage,
    IndustryBenchmarks,
    InvalidBenchmarkRequest,
    MetricComparison,
)

__all__ = [
    # Metrics
    "DEFAULT_STATISTICS",
    "INDUSTRY_MULTIPLIERS",
    "METRIC_RECOMMENDATIONS",
    "STANDARD_METRICS",
    "MetricCategory",
    "MetricDefinition",
    "format_metric_name",
    "get_industry_multiplier",
    "get_recommendation_for_metric",
    "get_unit_suffix",
    # Statistics
    "MIN_SAMPLE_SIZE",
    "BenchmarkStatistics",
    "PerformanceTier",
    "calculate_percentile",
    "compute_statistics",
    "determine_performance",
    "rank_percentile",
    "synthesize_statistics",
    # Store
    "BenchmarkStatisticsStore",
    # Engine
    "BenchmarkComparison",
    "BenchmarkError",
    "BenchmarkInsight",
    "BenchmarkUnavailableError",
    "BusinessStage",
    "IndustryBenchmarks",
    "InvalidBenchmarkRequest",
    "MetricComparison",
]
