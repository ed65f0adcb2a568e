"""
Freshness Score Calculator

Decides how trustworthy a cached analysis still is.

Formula:
    Freshness = (
        Age_Score × 0.30 +
        Business_Data_Unchanged × 0.25 +
        (1 − Competitor_Activity) × 0.20 +
        (1 − Industry_Volatility) × 0.15 +
        Access_Frequency × 0.10
    )

Where:
    Age_Score = max(0, 1 − age_hours / ttl_hours)
    Competitor_Activity = min(1, events_since_creation / 10)
    Access_Frequency = min(1, (access_count / max(1, age_hours)) / 10)

Thresholds:
    >=0.7: use_cached - serve as-is
    0.3-0.7: refresh_background - serve, and request a recompute
    <0.3: refresh_immediate - treat as a miss

Everything here is pure: signal gathering (fingerprints, competitor counts)
happens in IntelligentCache, which hands the results in as FreshnessSignals.
"""

import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional

from .config import FreshnessPolicy, INDUSTRY_VOLATILITY, DEFAULT_VOLATILITY

logger = logging.getLogger(__name__)


class Recommendation(Enum):
    """What the caller should do with a cached entry."""
    USE_CACHED = "use_cached"
    REFRESH_BACKGROUND = "refresh_background"
    REFRESH_IMMEDIATE = "refresh_immediate"


@dataclass
class FreshnessSignals:
    """Raw inputs for one freshness assessment."""
    age_hours: float
    ttl_hours: float
    business_data_changed: bool
    competitor_events: int
    industry_volatility: float
    access_count: int


@dataclass
class FreshnessFactors:
    """Per-factor breakdown (all 0-1 except the boolean)."""
    age: float
    business_data_changed: bool
    competitor_activity: float   # 0 = quiet, 1 = saturated
    industry_volatility: float   # coefficient from the volatility table
    access_frequency: float


@dataclass
class FreshnessScore:
    """Composite freshness judgment for one cache entry."""
    score: float
    factors: FreshnessFactors
    should_refresh: bool
    recommendation: Recommendation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "factors": asdict(self.factors),
            "should_refresh": self.should_refresh,
            "recommendation": self.recommendation.value,
        }


# =============================================================================
# FACTOR SCORES
# =============================================================================

def calculate_age_score(age_hours: float, ttl_hours: float) -> float:
    """Linear decay from 1 (just written) to 0 (at or past TTL)."""
    if ttl_hours <= 0:
        return 0.0
    return max(0.0, 1.0 - max(0.0, age_hours) / ttl_hours)


def calculate_competitor_activity(events: int, cap: int = 10) -> float:
    """Normalize an event count to 0-1; `cap` events saturate."""
    if cap <= 0:
        return 1.0 if events > 0 else 0.0
    return min(1.0, max(0, events) / cap)


def calculate_access_score(
    access_count: int,
    age_hours: float,
    normalizer: float = 10.0,
) -> float:
    """Popular entries (many reads per hour of age) decay slower."""
    rate = max(0, access_count) / max(1.0, age_hours)
    return min(1.0, rate / normalizer)


def get_industry_volatility(industry: Optional[str]) -> float:
    """
    Look up the volatility coefficient for an industry.

    Args:
        industry: Industry name (case-insensitive); None means "general"

    Returns:
        Coefficient (0.4-0.9), 0.5 for unknown industries
    """
    if not industry:
        return INDUSTRY_VOLATILITY["general"]
    return INDUSTRY_VOLATILITY.get(industry.strip().lower(), DEFAULT_VOLATILITY)


def get_recommendation(score: float, policy: Optional[FreshnessPolicy] = None) -> Recommendation:
    """
    Map a composite score to a recommendation.

    Boundaries are inclusive on the fresher side: a score equal to the
    freshness threshold is served, one equal to the stale threshold is
    served with a background refresh.
    """
    policy = policy or FreshnessPolicy()
    if score >= policy.freshness_threshold:
        return Recommendation.USE_CACHED
    if score >= policy.stale_threshold:
        return Recommendation.REFRESH_BACKGROUND
    return Recommendation.REFRESH_IMMEDIATE


# =============================================================================
# COMPOSITE
# =============================================================================

def calculate_freshness(
    signals: FreshnessSignals,
    policy: Optional[FreshnessPolicy] = None,
) -> FreshnessScore:
    """
    Calculate the composite freshness score.

    Args:
        signals: Gathered inputs for the entry being assessed
        policy: Weights and thresholds (defaults to FreshnessPolicy())

    Returns:
        FreshnessScore with factor breakdown and recommendation
    """
    policy = policy or FreshnessPolicy()

    age_score = calculate_age_score(signals.age_hours, signals.ttl_hours)
    data_score = 0.0 if signals.business_data_changed else 1.0
    competitor_activity = calculate_competitor_activity(
        signals.competitor_events, policy.competitor_event_cap
    )
    competitor_score = max(0.0, 1.0 - competitor_activity)
    industry_score = max(0.0, 1.0 - signals.industry_volatility)
    access_score = calculate_access_score(
        signals.access_count, signals.age_hours, policy.access_rate_normalizer
    )

    raw = (
        age_score * policy.age_weight +
        data_score * policy.business_data_weight +
        competitor_score * policy.competitor_weight +
        industry_score * policy.industry_weight +
        access_score * policy.access_weight
    )
    score = round(min(1.0, max(0.0, raw)), policy.score_precision)

    recommendation = get_recommendation(score, policy)

    return FreshnessScore(
        score=score,
        factors=FreshnessFactors(
            age=age_score,
            business_data_changed=signals.business_data_changed,
            competitor_activity=competitor_activity,
            industry_volatility=signals.industry_volatility,
            access_frequency=access_score,
        ),
        should_refresh=score < policy.freshness_threshold,
        recommendation=recommendation,
    )
