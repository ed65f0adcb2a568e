"""
Benchmark Metric Catalogue and Constants

Contains the standard metric definitions, placeholder percentile tables,
industry multipliers, and the recommendation lookup used by the
benchmark engine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


# ============================================================================
# METRIC DEFINITIONS
# ============================================================================

class MetricCategory(Enum):
    TRAFFIC = "traffic"
    CONVERSION = "conversion"
    REVENUE = "revenue"
    ENGAGEMENT = "engagement"
    MARKETING = "marketing"
    OPERATIONS = "operations"


@dataclass(frozen=True)
class MetricDefinition:
    """A metric businesses can be benchmarked on."""
    name: str
    unit: str           # visitors, percentage, dollars, hours
    description: str
    category: MetricCategory


STANDARD_METRICS: Dict[str, MetricDefinition] = {
    m.name: m for m in (
        MetricDefinition("monthly_traffic", "visitors", "Monthly website visitors", MetricCategory.TRAFFIC),
        MetricDefinition("conversion_rate", "percentage", "Visitor to customer conversion rate", MetricCategory.CONVERSION),
        MetricDefinition("average_order_value", "dollars", "Average transaction value", MetricCategory.REVENUE),
        MetricDefinition("customer_acquisition_cost", "dollars", "Cost to acquire one customer", MetricCategory.MARKETING),
        MetricDefinition("customer_lifetime_value", "dollars", "Total value of a customer relationship", MetricCategory.REVENUE),
        MetricDefinition("monthly_recurring_revenue", "dollars", "Predictable monthly revenue", MetricCategory.REVENUE),
        MetricDefinition("churn_rate", "percentage", "Monthly customer churn rate", MetricCategory.ENGAGEMENT),
        MetricDefinition("email_open_rate", "percentage", "Email marketing open rate", MetricCategory.MARKETING),
        MetricDefinition("social_engagement_rate", "percentage", "Social media engagement rate", MetricCategory.MARKETING),
        MetricDefinition("support_response_time", "hours", "Average customer support response time", MetricCategory.OPERATIONS),
    )
}


UNIT_SUFFIXES: Dict[str, str] = {
    "percentage": "%",
    "dollars": "$",
    "hours": "h",
}


def get_unit_suffix(metric_name: str) -> str:
    """Display suffix for a metric's unit ("" for counts and unknown metrics)."""
    metric = STANDARD_METRICS.get(metric_name)
    if not metric:
        return ""
    return UNIT_SUFFIXES.get(metric.unit, "")


def format_metric_name(metric_name: str) -> str:
    """conversion_rate -> Conversion Rate"""
    return " ".join(word[:1].upper() + word[1:] for word in metric_name.split("_"))


# ============================================================================
# PLACEHOLDER BENCHMARKS
# ============================================================================

# Example distributions used until real submissions exist. Statistics built
# from these are always flagged synthetic.
DEFAULT_STATISTICS: Dict[str, Dict[str, float]] = {
    "monthly_traffic": {"p10": 500, "p25": 2000, "p50": 10000, "p75": 50000, "p90": 200000, "mean": 52000, "sample_size": 100},
    "conversion_rate": {"p10": 0.5, "p25": 1.0, "p50": 2.0, "p75": 3.5, "p90": 5.0, "mean": 2.4, "sample_size": 100},
    "average_order_value": {"p10": 25, "p25": 50, "p50": 100, "p75": 200, "p90": 500, "mean": 175, "sample_size": 100},
    "customer_acquisition_cost": {"p10": 10, "p25": 25, "p50": 50, "p75": 100, "p90": 200, "mean": 77, "sample_size": 100},
    "customer_lifetime_value": {"p10": 100, "p25": 250, "p50": 500, "p75": 1000, "p90": 2500, "mean": 770, "sample_size": 100},
    "monthly_recurring_revenue": {"p10": 1000, "p25": 5000, "p50": 20000, "p75": 100000, "p90": 500000, "mean": 125000, "sample_size": 100},
    "churn_rate": {"p10": 1, "p25": 3, "p50": 5, "p75": 8, "p90": 12, "mean": 5.8, "sample_size": 100},
    "email_open_rate": {"p10": 10, "p25": 15, "p50": 20, "p75": 28, "p90": 35, "mean": 22, "sample_size": 100},
    "social_engagement_rate": {"p10": 0.5, "p25": 1.0, "p50": 2.0, "p75": 4.0, "p90": 7.0, "mean": 2.9, "sample_size": 100},
    "support_response_time": {"p10": 0.5, "p25": 1, "p50": 2, "p75": 6, "p90": 24, "mean": 6.5, "sample_size": 100},
}

INDUSTRY_MULTIPLIERS: Dict[str, float] = {
    "technology": 1.2,
    "ecommerce": 1.0,
    "saas": 1.3,
    "healthcare": 0.8,
    "finance": 0.9,
    "retail": 1.0,
}


def get_industry_multiplier(industry: Optional[str]) -> float:
    """Scaling applied to placeholder tables (0.8-1.3, 1.0 if unknown)."""
    if not industry:
        return 1.0
    return INDUSTRY_MULTIPLIERS.get(industry.strip().lower(), 1.0)


# ============================================================================
# RECOMMENDATIONS
# ============================================================================

METRIC_RECOMMENDATIONS: Dict[str, Dict[str, str]] = {
    "monthly_traffic": {
        "action": "Invest in SEO and content marketing to increase organic traffic",
        "priority": "high",
        "impact": "More traffic typically correlates with higher revenue opportunities",
    },
    "conversion_rate": {
        "action": "Optimize landing pages, improve CTAs, and streamline checkout process",
        "priority": "high",
        "impact": "Even small conversion rate improvements significantly impact revenue",
    },
    "average_order_value": {
        "action": "Implement upselling, cross-selling, and bundle offers",
        "priority": "medium",
        "impact": "Increasing AOV is often easier than acquiring new customers",
    },
    "customer_acquisition_cost": {
        "action": "Optimize ad spend, improve targeting, focus on organic channels",
        "priority": "high",
        "impact": "Lower CAC directly improves profitability and scalability",
    },
    "customer_lifetime_value": {
        "action": "Improve retention programs, add subscription options, increase engagement",
        "priority": "medium",
        "impact": "Higher LTV enables more aggressive customer acquisition",
    },
    "churn_rate": {
        "action": "Implement proactive customer success, improve onboarding, add value features",
        "priority": "high",
        "impact": "Reducing churn compounds growth and improves unit economics",
    },
    "email_open_rate": {
        "action": "Test subject lines, segment lists, optimize send times",
        "priority": "medium",
        "impact": "Better email performance increases ROI of marketing efforts",
    },
}


def get_recommendation_for_metric(metric_name: str) -> Dict[str, str]:
    """Static recommendation for a metric, with a generic fallback."""
    recommendation = METRIC_RECOMMENDATIONS.get(metric_name)
    if recommendation:
        return recommendation
    return {
        "action": f"Focus on improving {format_metric_name(metric_name)} to match industry standards",
        "priority": "medium",
        "impact": "Aligning with benchmarks improves competitive positioning",
    }
