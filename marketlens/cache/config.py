"""
Cache Configuration

Centralized policy for the analysis cache: TTLs per analysis type, freshness
weights and decision thresholds, and runtime toggles read from the
environment.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict


@dataclass(frozen=True)
class AnalysisTTL:
    """
    Time-to-live (hours) by analysis type.

    An entry at or past its TTL contributes nothing to the age factor;
    it can still be served if the other signals are strong.
    """

    STRATEGIC: float = 168.0    # 7 days - positioning rarely shifts
    MARKETING: float = 72.0     # 3 days
    COMPETITIVE: float = 48.0   # 2 days - competitors move faster
    QUICK: float = 24.0         # 1 day
    DEFAULT: float = 72.0

    @classmethod
    def for_type(cls, analysis_type: str) -> float:
        """Get TTL hours for an analysis type."""
        mapping = {
            "strategic": cls.STRATEGIC,
            "marketing": cls.MARKETING,
            "competitive": cls.COMPETITIVE,
            "quick": cls.QUICK,
        }
        return mapping.get((analysis_type or "").lower(), cls.DEFAULT)


# Industry volatility coefficients (0-1, higher = more volatile)
INDUSTRY_VOLATILITY: Dict[str, float] = {
    "technology": 0.8,
    "crypto": 0.9,
    "fashion": 0.7,
    "healthcare": 0.4,
    "finance": 0.6,
    "retail": 0.5,
    "general": 0.5,
}

DEFAULT_VOLATILITY = 0.5


@dataclass(frozen=True)
class FreshnessPolicy:
    """
    Weights and thresholds for the composite freshness score.

    Weights sum to 1.0, so the composite stays in [0, 1].
    """

    age_weight: float = 0.30
    business_data_weight: float = 0.25
    competitor_weight: float = 0.20
    industry_weight: float = 0.15
    access_weight: float = 0.10

    freshness_threshold: float = 0.7   # At or above: serve cached
    stale_threshold: float = 0.3       # Below: treat as a miss

    competitor_event_cap: int = 10     # Events at which competitor activity saturates
    access_rate_normalizer: float = 10.0  # Accesses/hour that count as fully popular
    score_precision: int = 6           # Composite is rounded before thresholding


@dataclass
class CacheConfig:
    """
    Runtime cache configuration.

    Settings can be overridden via environment variables:
    - CACHE_ENABLED: Enable/disable caching globally
    - CACHE_FINGERPRINT_TIMEOUT: Seconds allowed for the data-drift check
    - CACHE_ACTIVITY_TIMEOUT: Seconds allowed for the competitor lookup
    - CACHE_REFRESH_MIN_INTERVAL: Seconds between refresh requests per key
    - CACHE_REFRESH_QUEUE_SIZE: Maximum pending refresh requests
    - CACHE_CLEANUP_MAX_AGE_HOURS: Default age for cleanup()
    """

    enabled: bool = field(default_factory=lambda: os.getenv(
        "CACHE_ENABLED",
        "true"
    ).lower() == "true")

    fingerprint_timeout: float = field(default_factory=lambda: float(os.getenv(
        "CACHE_FINGERPRINT_TIMEOUT",
        "2.0"
    )))

    activity_timeout: float = field(default_factory=lambda: float(os.getenv(
        "CACHE_ACTIVITY_TIMEOUT",
        "2.0"
    )))

    refresh_min_interval: float = field(default_factory=lambda: float(os.getenv(
        "CACHE_REFRESH_MIN_INTERVAL",
        "300"
    )))

    refresh_queue_size: int = field(default_factory=lambda: int(os.getenv(
        "CACHE_REFRESH_QUEUE_SIZE",
        "1000"
    )))

    cleanup_max_age_hours: float = field(default_factory=lambda: float(os.getenv(
        "CACHE_CLEANUP_MAX_AGE_HOURS",
        "720"
    )))

    policy: FreshnessPolicy = field(default_factory=FreshnessPolicy)


@lru_cache(maxsize=1)
def get_cache_config() -> CacheConfig:
    """Get singleton cache configuration."""
    return CacheConfig()
