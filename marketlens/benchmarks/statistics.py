"""
Benchmark Statistics and Percentile Math

Percentile rank is piecewise-linear between the five known points of a
distribution:

    value <= p10          -> 10
    p10 < value <= p25    -> 10 + (value − p10) / (p25 − p10) × 15
    p25 < value <= p50    -> 25 + (value − p25) / (p50 − p25) × 25
    p50 < value <= p75    -> 50 + (value − p50) / (p75 − p50) × 25
    p75 < value <= p90    -> 75 + (value − p75) / (p90 − p75) × 15
    value > p90           -> 90 + min(10, (value − p90) / p90 × 10)

Performance tiers:
    >=90: top_10
    >=75: top_25
    >=50: above_average
    >=25: average
    <25: below_average
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .metrics import DEFAULT_STATISTICS, get_industry_multiplier


PERCENTILE_POINTS = ("p10", "p25", "p50", "p75", "p90")

# Minimum submissions before real statistics replace placeholders
MIN_SAMPLE_SIZE = 5


class PerformanceTier(Enum):
    """Where a value sits in the peer distribution."""
    TOP_10 = "top_10"
    TOP_25 = "top_25"
    ABOVE_AVERAGE = "above_average"
    AVERAGE = "average"
    BELOW_AVERAGE = "below_average"


@dataclass
class BenchmarkStatistics:
    """
    Percentile table for one (industry, stage, metric).

    `synthetic` marks placeholder tables derived from industry multipliers;
    real tables computed from submissions have synthetic=False.
    """
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    mean: float
    sample_size: int
    synthetic: bool = False

    def __post_init__(self):
        points = [self.p10, self.p25, self.p50, self.p75, self.p90]
        if any(a > b for a, b in zip(points, points[1:])):
            raise ValueError(f"Percentiles must be ascending, got {points}")
        if self.sample_size < 0:
            raise ValueError(f"sample_size must be >= 0, got {self.sample_size}")

    def percentiles(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in PERCENTILE_POINTS}

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.percentiles(),
            "mean": self.mean,
            "sample_size": self.sample_size,
            "synthetic": self.synthetic,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], synthetic: Optional[bool] = None) -> "BenchmarkStatistics":
        """Accepts both sample_size and the legacy sampleSize key."""
        sample_size = data.get("sample_size", data.get("sampleSize", 0))
        return cls(
            p10=float(data["p10"]),
            p25=float(data["p25"]),
            p50=float(data["p50"]),
            p75=float(data["p75"]),
            p90=float(data["p90"]),
            mean=float(data.get("mean", data["p50"])),
            sample_size=int(sample_size or 0),
            synthetic=bool(data.get("synthetic", False)) if synthetic is None else synthetic,
        )


# ============================================================================
# PERCENTILE RANK
# ============================================================================

def calculate_percentile(value: float, stats: BenchmarkStatistics) -> float:
    """
    Position of `value` (10-100) on the p10..p90 curve.

    Args:
        value: The business's metric value
        stats: Peer distribution

    Returns:
        Percentile rounded to 2 decimals
    """
    if value <= stats.p10:
        return 10.0
    if value <= stats.p25:
        percentile = 10 + (value - stats.p10) / (stats.p25 - stats.p10) * 15
    elif value <= stats.p50:
        percentile = 25 + (value - stats.p25) / (stats.p50 - stats.p25) * 25
    elif value <= stats.p75:
        percentile = 50 + (value - stats.p50) / (stats.p75 - stats.p50) * 25
    elif value <= stats.p90:
        percentile = 75 + (value - stats.p75) / (stats.p90 - stats.p75) * 15
    elif stats.p90 > 0:
        percentile = 90 + min(10.0, (value - stats.p90) / stats.p90 * 10)
    else:
        # No scale to measure the tail against
        percentile = 100.0

    return round(min(100.0, percentile), 2)


def determine_performance(percentile: float) -> PerformanceTier:
    """Map a percentile to a performance tier."""
    if percentile >= 90:
        return PerformanceTier.TOP_10
    if percentile >= 75:
        return PerformanceTier.TOP_25
    if percentile >= 50:
        return PerformanceTier.ABOVE_AVERAGE
    if percentile >= 25:
        return PerformanceTier.AVERAGE
    return PerformanceTier.BELOW_AVERAGE


# ============================================================================
# AGGREGATION
# ============================================================================

def rank_percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile: sorted_values[floor(p × n)], clamped to the last value."""
    if not sorted_values:
        raise ValueError("Cannot take a percentile of an empty sample")
    index = math.floor(p * len(sorted_values))
    return sorted_values[min(index, len(sorted_values) - 1)]


def compute_statistics(values: List[float]) -> BenchmarkStatistics:
    """
    Build a real (non-synthetic) percentile table from raw submissions.

    Args:
        values: Metric values from anonymized submissions

    Returns:
        BenchmarkStatistics with synthetic=False
    """
    ordered = sorted(values)
    return BenchmarkStatistics(
        p10=rank_percentile(ordered, 0.10),
        p25=rank_percentile(ordered, 0.25),
        p50=rank_percentile(ordered, 0.50),
        p75=rank_percentile(ordered, 0.75),
        p90=rank_percentile(ordered, 0.90),
        mean=sum(ordered) / len(ordered),
        sample_size=len(ordered),
        synthetic=False,
    )


def synthesize_statistics(metric_name: str, industry: Optional[str]) -> Optional[BenchmarkStatistics]:
    """
    Placeholder statistics for a standard metric: base table × industry multiplier.

    Returns:
        Synthetic BenchmarkStatistics, or None for metrics with no base table
    """
    base = DEFAULT_STATISTICS.get(metric_name)
    if base is None:
        return None

    multiplier = get_industry_multiplier(industry)
    return BenchmarkStatistics(
        p10=base["p10"] * multiplier,
        p25=base["p25"] * multiplier,
        p50=base["p50"] * multiplier,
        p75=base["p75"] * multiplier,
        p90=base["p90"] * multiplier,
        mean=base["mean"] * multiplier,
        sample_size=int(base["sample_size"]),
        synthetic=True,
    )
