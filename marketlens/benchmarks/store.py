"""
Benchmark Statistics Store

SQLAlchemy adapter for the benchmark tables:
- industry_benchmarks: current percentile table per (industry, stage, metric)
- benchmark_history: snapshot of every write, for trend views
- anonymous_metrics: raw anonymized submissions
- benchmark_comparisons: audit log of served comparisons
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from marketlens.database.models import (
    AnonymousMetricsSubmission,
    BenchmarkComparisonRecord,
    BenchmarkHistory,
    IndustryBenchmarkRecord,
    utcnow,
)
from .statistics import BenchmarkStatistics


logger = logging.getLogger(__name__)


class BenchmarkStatisticsStore:
    """Persistence for benchmark tables. Errors propagate to the engine."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # BENCHMARK TABLES
    # =========================================================================

    def get_segment(self, industry: str, stage: str) -> Dict[str, BenchmarkStatistics]:
        """All stored statistics for one (industry, stage), keyed by metric."""
        records = self.db.query(IndustryBenchmarkRecord).filter(
            IndustryBenchmarkRecord.industry == industry,
            IndustryBenchmarkRecord.business_stage == stage,
        ).populate_existing().all()

        segment = {}
        for record in records:
            try:
                segment[record.metric_name] = BenchmarkStatistics.from_dict(
                    record.statistics, synthetic=record.is_synthetic
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(
                    f"Ignoring unreadable benchmark {industry}/{stage}/{record.metric_name}: {e}"
                )
        return segment

    def upsert(
        self,
        industry: str,
        stage: str,
        metric_name: str,
        statistics: BenchmarkStatistics,
        now: Optional[datetime] = None,
    ) -> None:
        """Replace the current table for a metric and append a history snapshot."""
        now = now or utcnow()
        payload = statistics.to_dict()
        try:
            record = self.db.query(IndustryBenchmarkRecord).filter(
                IndustryBenchmarkRecord.industry == industry,
                IndustryBenchmarkRecord.business_stage == stage,
                IndustryBenchmarkRecord.metric_name == metric_name,
            ).first()

            if record is None:
                record = IndustryBenchmarkRecord(
                    industry=industry,
                    business_stage=stage,
                    metric_name=metric_name,
                )
                self.db.add(record)

            record.statistics = payload
            record.sample_size = statistics.sample_size
            record.is_synthetic = statistics.synthetic
            record.updated_at = now

            self.db.add(BenchmarkHistory(
                industry=industry,
                business_stage=stage,
                metric_name=metric_name,
                statistics=payload,
                is_synthetic=statistics.synthetic,
                recorded_at=now,
            ))

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def list_industries(self) -> List[str]:
        rows = self.db.query(IndustryBenchmarkRecord.industry).distinct().order_by(
            IndustryBenchmarkRecord.industry
        ).all()
        return [row[0] for row in rows]

    def get_history(
        self,
        industry: str,
        stage: str,
        metric_name: str,
        since: datetime,
    ) -> List[Dict[str, Any]]:
        """Snapshots recorded at or after `since`, oldest first."""
        records = self.db.query(BenchmarkHistory).filter(
            BenchmarkHistory.industry == industry,
            BenchmarkHistory.business_stage == stage,
            BenchmarkHistory.metric_name == metric_name,
            BenchmarkHistory.recorded_at >= since,
        ).order_by(BenchmarkHistory.recorded_at.asc()).all()

        return [
            {"date": record.recorded_at, "statistics": record.statistics}
            for record in records
        ]

    # =========================================================================
    # SUBMISSIONS & AUDIT
    # =========================================================================

    def add_submission(self, industry: str, stage: str, metrics: Dict[str, float]) -> None:
        try:
            self.db.add(AnonymousMetricsSubmission(
                industry=industry,
                business_stage=stage,
                metrics=dict(metrics),
                submitted_at=utcnow(),
            ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def get_submissions(self, industry: str, stage: str) -> List[Dict[str, float]]:
        rows = self.db.query(AnonymousMetricsSubmission.metrics).filter(
            AnonymousMetricsSubmission.industry == industry,
            AnonymousMetricsSubmission.business_stage == stage,
        ).all()
        return [row[0] for row in rows if isinstance(row[0], dict)]

    def record_comparison(self, comparison: Dict[str, Any], generated_at: datetime) -> None:
        try:
            self.db.add(BenchmarkComparisonRecord(
                business_id=comparison["business_id"],
                industry=comparison["industry"],
                stage=comparison["stage"],
                metrics=comparison["metrics"],
                overall_score=comparison["overall_score"],
                strengths=comparison["strengths"],
                improvement_areas=comparison["improvement_areas"],
                generated_at=generated_at,
            ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def count_comparisons(self, business_id: Optional[str] = None) -> int:
        query = self.db.query(BenchmarkComparisonRecord)
        if business_id:
            query = query.filter(BenchmarkComparisonRecord.business_id == business_id)
        return query.count()
