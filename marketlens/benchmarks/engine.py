"""
Industry Benchmark Engine

Compares a business's metrics to peer distributions for its industry and
stage, turns the positions into insights and recommendations, and keeps the
distributions current from anonymized submissions.

Benchmark lookup order per metric:
1. Stored statistics for (industry, stage, metric)
2. Synthetic placeholder (standard metrics only), persisted with synthetic=True
3. Skipped with a warning
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from marketlens.database.models import utcnow
from .metrics import (
    STANDARD_METRICS,
    format_metric_name,
    get_recommendation_for_metric,
    get_unit_suffix,
)
from .statistics import (
    MIN_SAMPLE_SIZE,
    BenchmarkStatistics,
    PerformanceTier,
    calculate_percentile,
    compute_statistics,
    determine_performance,
    synthesize_statistics,
)
from .store import BenchmarkStatisticsStore


logger = logging.getLogger(__name__)


# ============================================================================
# ERRORS
# ============================================================================

class BenchmarkError(Exception):
    """Base exception for benchmark operations."""


class InvalidBenchmarkRequest(BenchmarkError):
    """Caller supplied an unknown stage, empty industry or non-numeric metric."""


class BenchmarkUnavailableError(BenchmarkError):
    """Benchmark storage could not be read or written."""
    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause


class BusinessStage(Enum):
    STARTUP = "startup"
    GROWTH = "growth"
    ESTABLISHED = "established"
    ENTERPRISE = "enterprise"


# ============================================================================
# RESULT TYPES
# ============================================================================

@dataclass
class MetricComparison:
    """One metric placed on its peer distribution."""
    metric: str
    your_value: float
    benchmarks: Dict[str, float]
    percentile: float
    performance: PerformanceTier
    gap: float  # your_value - p50
    insights: List[str] = field(default_factory=list)
    synthetic: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "your_value": self.your_value,
            "benchmarks": dict(self.benchmarks),
            "percentile": self.percentile,
            "performance": self.performance.value,
            "gap": self.gap,
            "insights": list(self.insights),
            "synthetic": self.synthetic,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricComparison":
        return cls(
            metric=data["metric"],
            your_value=float(data["your_value"]),
            benchmarks={k: float(v) for k, v in data.get("benchmarks", {}).items()},
            percentile=float(data["percentile"]),
            performance=PerformanceTier(data["performance"]),
            gap=float(data.get("gap", 0.0)),
            insights=list(data.get("insights", [])),
            synthetic=bool(data.get("synthetic", False)),
        )


@dataclass
class BenchmarkComparison:
    """Full comparison of a business against its segment."""
    business_id: str
    industry: str
    stage: str
    metrics: List[MetricComparison]
    overall_score: float
    strengths: List[str]
    improvement_areas: List[str]
    generated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "business_id": self.business_id,
            "industry": self.industry,
            "stage": self.stage,
            "metrics": [m.to_dict() for m in self.metrics],
            "overall_score": self.overall_score,
            "strengths": list(self.strengths),
            "improvement_areas": list(self.improvement_areas),
            "generated_at": self.generated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchmarkComparison":
        generated_at = data.get("generated_at")
        if isinstance(generated_at, str):
            generated_at = datetime.fromisoformat(generated_at)
        return cls(
            business_id=data["business_id"],
            industry=data["industry"],
            stage=data["stage"],
            metrics=[MetricComparison.from_dict(m) for m in data.get("metrics", [])],
            overall_score=float(data.get("overall_score", 0.0)),
            strengths=list(data.get("strengths", [])),
            improvement_areas=list(data.get("improvement_areas", [])),
            generated_at=generated_at or utcnow(),
        )


@dataclass
class BenchmarkInsight:
    """An actionable recommendation for a weak metric."""
    metric: str
    insight: str
    recommendation: str
    priority: str  # high, medium, low
    potential_impact: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "metric": self.metric,
            "insight": self.insight,
            "recommendation": self.recommendation,
            "priority": self.priority,
            "potential_impact": self.potential_impact,
        }


# ============================================================================
# ENGINE
# ============================================================================

class IndustryBenchmarks:
    """
    Benchmark comparison engine.

    Usage:
        engine = IndustryBenchmarks(BenchmarkStatisticsStore(db))

        comparison = await engine.compare_to_industry(
            business_id="b-1",
            industry="saas",
            stage="growth",
            metrics={"conversion_rate": 2.4, "churn_rate": 6.0},
        )
        recommendations = await engine.generate_recommendations(comparison)
    """

    MAX_RECOMMENDATIONS = 3

    def __init__(self, store: BenchmarkStatisticsStore):
        self.store = store
        self._background: Set[asyncio.Task] = set()

    # =========================================================================
    # COMPARISON
    # =========================================================================

    async def compare_to_industry(
        self,
        business_id: str,
        industry: str,
        stage: str,
        metrics: Dict[str, float],
    ) -> BenchmarkComparison:
        """
        Compare business metrics to the industry/stage distribution.

        Raises:
            InvalidBenchmarkRequest: Unknown stage, empty industry, bad metric value
            BenchmarkUnavailableError: Benchmark storage failed
        """
        industry = self._normalize_industry(industry)
        stage = self._validate_stage(stage)
        values = self._validate_metrics(metrics)

        segment = self._load_segment(industry, stage)

        comparisons: List[MetricComparison] = []
        for metric_name, value in values.items():
            stats = segment.get(metric_name) or self._synthesize(industry, stage, metric_name)
            if stats is None:
                logger.warning(f"No benchmark found for {metric_name} in {industry}/{stage}")
                continue

            percentile = calculate_percentile(value, stats)
            comparisons.append(MetricComparison(
                metric=metric_name,
                your_value=value,
                benchmarks=stats.percentiles(),
                percentile=percentile,
                performance=determine_performance(percentile),
                gap=value - stats.p50,
                insights=self._metric_insights(metric_name, value, stats, percentile),
                synthetic=stats.synthetic,
            ))

        overall_score = (
            sum(c.percentile for c in comparisons) / len(comparisons)
            if comparisons else 0.0
        )

        strengths = [
            f"{format_metric_name(c.metric)}: {c.percentile:g}th percentile"
            for c in comparisons
            if c.percentile >= 75
        ]

        weakest = sorted((c for c in comparisons if c.percentile < 50), key=lambda c: c.percentile)
        improvement_areas = [
            f"{format_metric_name(c.metric)}: {c.percentile:g}th percentile "
            f"({abs(c.gap):.1f}{get_unit_suffix(c.metric)} below median)"
            for c in weakest
        ]

        comparison = BenchmarkComparison(
            business_id=business_id,
            industry=industry,
            stage=stage,
            metrics=comparisons,
            overall_score=overall_score,
            strengths=strengths,
            improvement_areas=improvement_areas,
            generated_at=utcnow(),
        )

        try:
            self.store.record_comparison(comparison.to_dict(), comparison.generated_at)
        except Exception as e:
            logger.error(f"Failed to store benchmark comparison for {business_id}: {e}")
            raise BenchmarkUnavailableError("Could not store benchmark comparison", e) from e

        logger.info(
            f"Benchmarked {len(comparisons)} metrics for {business_id} "
            f"({industry}/{stage}): overall {overall_score:.1f}"
        )
        return comparison

    async def generate_recommendations(self, comparison: BenchmarkComparison) -> List[BenchmarkInsight]:
        """Recommendations for the (up to three) weakest below-median metrics."""
        weakest = sorted(
            (m for m in comparison.metrics if m.percentile < 50),
            key=lambda m: m.percentile,
        )[:self.MAX_RECOMMENDATIONS]

        recommendations = []
        for metric in weakest:
            rec = get_recommendation_for_metric(metric.metric)
            recommendations.append(BenchmarkInsight(
                metric=metric.metric,
                insight=metric.insights[0] if metric.insights else "",
                recommendation=rec["action"],
                priority=rec["priority"],
                potential_impact=rec["impact"],
            ))
        return recommendations

    # =========================================================================
    # SUBMISSIONS & RECALCULATION
    # =========================================================================

    async def submit_metrics_anonymously(
        self,
        industry: str,
        stage: str,
        metrics: Dict[str, float],
    ) -> None:
        """
        Store an anonymized submission and recalculate the segment in the
        background. Recalculation failures are logged, not raised.
        """
        industry = self._normalize_industry(industry)
        stage = self._validate_stage(stage)
        values = self._validate_metrics(metrics)

        try:
            self.store.add_submission(industry, stage, values)
        except Exception as e:
            logger.error(f"Failed to store anonymous submission for {industry}/{stage}: {e}")
            raise BenchmarkUnavailableError("Could not store submission", e) from e

        task = asyncio.create_task(self._recalculate_in_background(industry, stage))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def recalculate_benchmarks(self, industry: str, stage: str) -> int:
        """
        Rebuild real statistics from submissions.

        Segments with fewer than MIN_SAMPLE_SIZE submissions, and metrics with
        fewer than MIN_SAMPLE_SIZE values, keep their existing statistics.

        Returns:
            Number of metrics recalculated
        """
        industry = self._normalize_industry(industry)
        stage = self._validate_stage(stage)

        try:
            submissions = self.store.get_submissions(industry, stage)
        except Exception as e:
            raise BenchmarkUnavailableError("Could not read submissions", e) from e

        if len(submissions) < MIN_SAMPLE_SIZE:
            logger.debug(
                f"Only {len(submissions)} submissions for {industry}/{stage}, "
                f"need {MIN_SAMPLE_SIZE}"
            )
            return 0

        metric_names = set(STANDARD_METRICS)
        for submission in submissions:
            metric_names.update(submission.keys())

        recalculated = 0
        for metric_name in sorted(metric_names):
            values = [
                float(submission[metric_name])
                for submission in submissions
                if self._is_number(submission.get(metric_name))
            ]
            if len(values) < MIN_SAMPLE_SIZE:
                continue

            try:
                self.store.upsert(industry, stage, metric_name, compute_statistics(values))
            except Exception as e:
                raise BenchmarkUnavailableError(f"Could not store benchmark {metric_name}", e) from e
            recalculated += 1

        logger.info(f"Recalculated {recalculated} benchmarks for {industry}/{stage}")
        return recalculated

    async def drain(self) -> None:
        """Wait for outstanding background recalculations."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _recalculate_in_background(self, industry: str, stage: str) -> None:
        try:
            await self.recalculate_benchmarks(industry, stage)
        except Exception as e:
            logger.error(f"Background benchmark recalculation failed for {industry}/{stage}: {e}")

    # =========================================================================
    # DISCOVERY & HISTORY
    # =========================================================================

    async def get_available_industries(self) -> List[str]:
        try:
            return self.store.list_industries()
        except Exception as e:
            raise BenchmarkUnavailableError("Could not list industries", e) from e

    async def get_benchmark_history(
        self,
        industry: str,
        stage: str,
        metric: str,
        months: int = 12,
    ) -> List[Dict[str, Any]]:
        """Benchmark snapshots over the last `months` (30-day months), oldest first."""
        industry = self._normalize_industry(industry)
        stage = self._validate_stage(stage)
        if months < 1:
            raise InvalidBenchmarkRequest(f"months must be >= 1, got {months}")

        since = utcnow() - timedelta(days=30 * months)
        try:
            return self.store.get_history(industry, stage, metric, since)
        except Exception as e:
            raise BenchmarkUnavailableError("Could not read benchmark history", e) from e

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _load_segment(self, industry: str, stage: str) -> Dict[str, BenchmarkStatistics]:
        try:
            return self.store.get_segment(industry, stage)
        except Exception as e:
            logger.error(f"Failed to load benchmarks for {industry}/{stage}: {e}")
            raise BenchmarkUnavailableError("Could not load benchmarks", e) from e

    def _synthesize(self, industry: str, stage: str, metric_name: str) -> Optional[BenchmarkStatistics]:
        """Placeholder statistics for a standard metric, persisted for reuse."""
        stats = synthesize_statistics(metric_name, industry)
        if stats is None:
            return None

        try:
            self.store.upsert(industry, stage, metric_name, stats)
        except Exception as e:
            logger.error(f"Failed to store synthetic benchmark {metric_name}: {e}")
            raise BenchmarkUnavailableError("Could not store synthetic benchmark", e) from e

        logger.info(f"Using synthetic {metric_name} benchmark for {industry}/{stage}")
        return stats

    def _metric_insights(
        self,
        metric_name: str,
        value: float,
        stats: BenchmarkStatistics,
        percentile: float,
    ) -> List[str]:
        name = format_metric_name(metric_name)
        unit = get_unit_suffix(metric_name)
        tier = determine_performance(percentile)

        if tier == PerformanceTier.TOP_10:
            return [
                f"Excellent performance - you're in the top 10% for {name}",
                "This is a competitive advantage to leverage in marketing",
            ]
        if tier == PerformanceTier.TOP_25:
            return [
                f"Strong performance - you're in the top 25% for {name}",
                f"Consider pushing to break into top 10% ({stats.p90:g}{unit})",
            ]
        if tier == PerformanceTier.ABOVE_AVERAGE:
            return [
                f"Above average for {name}",
                f"Target the 75th percentile: {stats.p75:g}{unit}",
            ]
        if tier == PerformanceTier.AVERAGE:
            return [
                f"Average performance for {name}",
                f"Improvement opportunity: reach median ({stats.p50:g}{unit})",
            ]
        return [
            f"Below average for {name} - priority improvement area",
            f"Industry median is {stats.p50:g}{unit} vs your {value:g}{unit}",
        ]

    @staticmethod
    def _normalize_industry(industry: str) -> str:
        normalized = (industry or "").strip().lower()
        if not normalized:
            raise InvalidBenchmarkRequest("industry is required")
        return normalized

    @staticmethod
    def _validate_stage(stage: str) -> str:
        try:
            return BusinessStage((stage or "").strip().lower()).value
        except ValueError:
            valid = ", ".join(s.value for s in BusinessStage)
            raise InvalidBenchmarkRequest(f"Invalid stage '{stage}', expected one of: {valid}") from None

    @staticmethod
    def _is_number(value: Any) -> bool:
        return (
            isinstance(value, (int, float))
            and not isinstance(value, bool)
            and math.isfinite(value)
        )

    def _validate_metrics(self, metrics: Dict[str, float]) -> Dict[str, float]:
        if not isinstance(metrics, dict):
            raise InvalidBenchmarkRequest("metrics must be a mapping of name to value")

        values = {}
        for name, value in metrics.items():
            if not self._is_number(value):
                raise InvalidBenchmarkRequest(f"Metric {name} must be a finite number, got {value!r}")
            values[name] = float(value)
        return values
