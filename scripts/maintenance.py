#!/usr/bin/env python3
"""
Maintenance Runner

Scheduled housekeeping for the cache and benchmarks:
1. Cache cleanup (delete entries older than N hours)
2. Cache statistics
3. Benchmark recalculation for one or more segments

Usage:
    # Delete cache entries older than 30 days (default):
    python scripts/maintenance.py cleanup

    # Custom age:
    python scripts/maintenance.py cleanup --max-age-hours 168

    # Stats for one business:
    python scripts/maintenance.py stats --business-id biz-123

    # Recalculate benchmarks:
    python scripts/maintenance.py recalculate --industry saas --stage growth
"""

import asyncio
import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def build_cache(db):
    from marketlens.cache import (
        CacheStore,
        DatabaseActivityProvider,
        DatabaseFingerprintProvider,
        IntelligentCache,
        RefreshQueue,
    )

    # cleanup and stats never read entries, so nothing is ever queued here
    return IntelligentCache(
        store=CacheStore(db),
        fingerprints=DatabaseFingerprintProvider.for_session(db),
        activity=DatabaseActivityProvider.for_session(db),
        refresh_queue=RefreshQueue.from_config(),
    )


async def run_cleanup(max_age_hours: float = None) -> int:
    from marketlens.database import get_db_context

    with get_db_context() as db:
        deleted = await build_cache(db).cleanup(max_age_hours)

    logger.info(f"Cleanup complete: {deleted} entries deleted")
    return deleted


async def run_stats(business_id: str = None) -> dict:
    from marketlens.database import get_db_context

    with get_db_context() as db:
        stats = await build_cache(db).get_stats(business_id)

    return stats.to_dict()


async def run_recalculate(industries: list, stages: list) -> int:
    from marketlens.benchmarks import BenchmarkError, BenchmarkStatisticsStore, IndustryBenchmarks
    from marketlens.database import get_db_context

    total = 0
    with get_db_context() as db:
        engine = IndustryBenchmarks(BenchmarkStatisticsStore(db))
        for industry in industries:
            for stage in stages:
                try:
                    total += await engine.recalculate_benchmarks(industry, stage)
                except BenchmarkError as e:
                    logger.error(f"Recalculation failed for {industry}/{stage}: {e}")

    logger.info(f"Recalculated {total} benchmarks")
    return total


def main():
    parser = argparse.ArgumentParser(description="Cache and benchmark maintenance")
    subparsers = parser.add_subparsers(dest="command", required=True)

    cleanup = subparsers.add_parser("cleanup", help="Delete old cache entries")
    cleanup.add_argument("--max-age-hours", type=float, default=None, help="Default: 720 (30 days)")

    stats = subparsers.add_parser("stats", help="Print cache statistics")
    stats.add_argument("--business-id", default=None)

    recalc = subparsers.add_parser("recalculate", help="Rebuild benchmarks from submissions")
    recalc.add_argument("--industry", action="append", required=True, help="Repeatable")
    recalc.add_argument(
        "--stage",
        action="append",
        default=None,
        help="Repeatable (default: all stages)",
    )

    args = parser.parse_args()

    load_dotenv()

    from marketlens.database import init_db
    init_db()

    if args.command == "cleanup":
        asyncio.run(run_cleanup(args.max_age_hours))
    elif args.command == "stats":
        print(json.dumps(asyncio.run(run_stats(args.business_id)), indent=2))
    elif args.command == "recalculate":
        from marketlens.benchmarks import BusinessStage
        stages = args.stage or [s.value for s in BusinessStage]
        asyncio.run(run_recalculate(args.industry, stages))


if __name__ == "__main__":
    main()
