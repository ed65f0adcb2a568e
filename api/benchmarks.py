"""
Industry Benchmark API

Endpoints:
- Compare a business's metrics to its industry/stage peers
- Recommendations for a previously generated comparison
- Anonymous metric submission (feeds benchmark recalculation)
- Industry discovery and benchmark history
"""

import logging
from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketlens.benchmarks import (
    BenchmarkComparison,
    BenchmarkError,
    BenchmarkStatisticsStore,
    IndustryBenchmarks,
    InvalidBenchmarkRequest,
)
from marketlens.database.session import get_db


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/benchmarks", tags=["Industry Benchmarks"])


def get_benchmark_engine(db: Session = Depends(get_db)) -> IndustryBenchmarks:
    return IndustryBenchmarks(BenchmarkStatisticsStore(db))


def _http_error(e: BenchmarkError) -> HTTPException:
    if isinstance(e, InvalidBenchmarkRequest):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Benchmark request failed: {e}")
    return HTTPException(status_code=500, detail="Benchmark data unavailable")


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CompareRequest(BaseModel):
    business_id: str = Field(..., min_length=1)
    industry: str = Field(..., description="Industry slug, e.g. 'saas', 'ecommerce'")
    stage: str = Field(..., description="startup, growth, established or enterprise")
    metrics: Dict[str, float] = Field(..., description="Metric name -> value")


class MetricComparisonModel(BaseModel):
    metric: str
    your_value: float
    benchmarks: Dict[str, float]
    percentile: float
    performance: str
    gap: float
    insights: List[str] = []
    synthetic: bool = False


class ComparisonModel(BaseModel):
    business_id: str
    industry: str
    stage: str
    metrics: List[MetricComparisonModel]
    overall_score: float
    strengths: List[str]
    improvement_areas: List[str]
    generated_at: datetime


class InsightModel(BaseModel):
    metric: str
    insight: str
    recommendation: str
    priority: str
    potential_impact: str


class SubmitRequest(BaseModel):
    industry: str
    stage: str
    metrics: Dict[str, float]


class SubmitResponse(BaseModel):
    success: bool
    message: str


class HistoryPoint(BaseModel):
    date: datetime
    statistics: Dict[str, Any]


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/compare", response_model=ComparisonModel)
async def compare_to_industry(
    request: CompareRequest,
    engine: IndustryBenchmarks = Depends(get_benchmark_engine),
):
    """Place each metric on its peer distribution and summarize."""
    try:
        comparison = await engine.compare_to_industry(
            business_id=request.business_id,
            industry=request.industry,
            stage=request.stage,
            metrics=request.metrics,
        )
    except BenchmarkError as e:
        raise _http_error(e)

    return comparison.to_dict()


@router.post("/recommendations", response_model=List[InsightModel])
async def get_recommendations(
    comparison: ComparisonModel,
    engine: IndustryBenchmarks = Depends(get_benchmark_engine),
):
    """Actionable recommendations for the weakest below-median metrics."""
    try:
        parsed = BenchmarkComparison.from_dict(comparison.model_dump())
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid comparison: {e}")

    insights = await engine.generate_recommendations(parsed)
    return [insight.to_dict() for insight in insights]


@router.post("/submit", response_model=SubmitResponse)
async def submit_metrics(
    request: SubmitRequest,
    background_tasks: BackgroundTasks,
    engine: IndustryBenchmarks = Depends(get_benchmark_engine),
):
    """
    Contribute anonymized metrics.

    Nothing identifying the business is stored; the segment's benchmarks are
    recalculated once enough submissions exist.
    """
    try:
        await engine.submit_metrics_anonymously(request.industry, request.stage, request.metrics)
    except BenchmarkError as e:
        raise _http_error(e)

    # Recalculation completes before the request is torn down
    background_tasks.add_task(engine.drain)
    return SubmitResponse(success=True, message="Metrics submitted anonymously")


@router.get("/industries", response_model=List[str])
async def list_industries(engine: IndustryBenchmarks = Depends(get_benchmark_engine)):
    """Industries that have stored benchmarks."""
    try:
        return await engine.get_available_industries()
    except BenchmarkError as e:
        raise _http_error(e)


@router.get("/history", response_model=List[HistoryPoint])
async def benchmark_history(
    industry: str,
    stage: str,
    metric: str,
    months: int = Query(default=12, ge=1, le=120),
    engine: IndustryBenchmarks = Depends(get_benchmark_engine),
):
    """Benchmark snapshots for one metric, oldest first."""
    try:
        return await engine.get_benchmark_history(industry, stage, metric, months)
    except BenchmarkError as e:
        raise _http_error(e)
