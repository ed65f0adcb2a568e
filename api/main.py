"""
MarketLens API

FastAPI application exposing cache management and industry benchmarks.

Run locally:
    uvicorn api.main:app --reload
"""

import logging
import sys

from dotenv import load_dotenv
from fastapi import FastAPI

from marketlens import __version__
from marketlens.database import check_db_connection, dispose_engine, init_db
from marketlens.utils.config import get_settings

from api.benchmarks import router as benchmarks_router
from api.cache import router as cache_router, start_refresh_worker, stop_refresh_worker

# CACHE_* toggles are read from the process environment
load_dotenv()

# Configure logging to stdout (hosting platforms treat stderr as errors)
logging.basicConfig(
    level=getattr(logging, get_settings().LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

app = FastAPI(
    title="MarketLens Intelligence API",
    description="Freshness-aware analysis cache and industry benchmarks",
    version=__version__,
)

app.include_router(cache_router)
app.include_router(benchmarks_router)


# ============================================================================
# STARTUP / SHUTDOWN
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize the database and start the background refresh worker."""
    logger.info("Initializing database...")
    try:
        init_db()
        if not check_db_connection():
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")

    start_refresh_worker(app)


@app.on_event("shutdown")
async def shutdown_event():
    await stop_refresh_worker(app)
    dispose_engine()


@app.get("/")
async def root():
    return {"service": "MarketLens Intelligence API", "version": __version__}


@app.get("/api/health")
async def health():
    """Health check including database status."""
    return {
        "status": "healthy",
        "version": __version__,
        "database": "connected" if check_db_connection() else "disconnected",
    }


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
