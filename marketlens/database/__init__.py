"""
MarketLens Database Layer

Usage:
    from marketlens.database import init_db, get_db_context, AnalysisCacheEntry

    init_db()

    with get_db_context() as db:
        db.query(AnalysisCacheEntry).count()
"""

# Models
from .models import (
    Base,
    utcnow,
    # Cache
    AnalysisCacheEntry,
    # Freshness signal sources
    Business,
    CompetitorTracking,
    # Benchmarks
    IndustryBenchmarkRecord,
    BenchmarkHistory,
    AnonymousMetricsSubmission,
    BenchmarkComparisonRecord,
)

# Session management
from .session import (
    get_database_url,
    create_db_engine,
    get_engine,
    dispose_engine,
    get_session_factory,
    get_db,
    get_db_context,
    init_db,
    check_db_connection,
)

__all__ = [
    # Models
    "Base",
    "utcnow",
    "AnalysisCacheEntry",
    "Business",
    "CompetitorTracking",
    "IndustryBenchmarkRecord",
    "BenchmarkHistory",
    "AnonymousMetricsSubmission",
    "BenchmarkComparisonRecord",
    # Session
    "get_database_url",
    "create_db_engine",
    "get_engine",
    "dispose_engine",
    "get_session_factory",
    "get_db",
    "get_db_context",
    "init_db",
    "check_db_connection",
]
