"""
MarketLens Intelligence Core

Shared engine behind the marketing-intelligence dashboards:
1. Caches expensive LLM analyses and decides when they have gone stale
2. Compares a business's metrics against industry/stage benchmarks
3. Rebuilds benchmark tables from anonymized submissions
"""

__version__ = "0.1.0"
