"""
Freshness Signal Providers

External inputs to the freshness score:
- FingerprintProvider: content hash of a business's current source data
- ActivitySignalProvider: competitor events since a timestamp, and the
  static industry volatility coefficient

The protocols are what IntelligentCache depends on. The SQL-backed classes
read the businesses and competitor_tracking tables and are the defaults
wired by the application. They open their own short-lived sessions in a
worker thread rather than sharing the request session.
"""

import asyncio
import hashlib
import json
import logging
from datetime import datetime
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session, sessionmaker

from marketlens.database.models import Business, CompetitorTracking
from .freshness import get_industry_volatility


logger = logging.getLogger(__name__)


class FingerprintProvider(Protocol):
    async def fingerprint(self, business_id: str) -> str:
        """Hash of the business's current source data ("" if unknown)."""
        ...


class ActivitySignalProvider(Protocol):
    async def competitor_events_since(self, business_id: str, since: datetime) -> int:
        """Number of competitor-tracking events detected since `since`."""
        ...

    def industry_volatility(self, industry: Optional[str]) -> float:
        """Static volatility coefficient (0-1) for an industry."""
        ...


# Fields that define "the business changed" for cache purposes
FINGERPRINT_FIELDS = ("site_url", "site_content", "business_name", "industry", "key_items")


def hash_business_data(payload: dict) -> str:
    """SHA-256 of the canonical JSON form of `payload`."""
    canonical = json.dumps(payload, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def session_factory_for(db: Session) -> sessionmaker:
    """Session factory bound to the same engine as `db`."""
    return sessionmaker(bind=db.get_bind(), autoflush=False, expire_on_commit=False)


class DatabaseFingerprintProvider:
    """
    Fingerprints a row of the businesses table.

    The read runs in a worker thread on a session the thread owns, so the
    caller's timeout bounds it and a slow database never blocks the loop.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @classmethod
    def for_session(cls, db: Session) -> "DatabaseFingerprintProvider":
        """Provider reading through the same engine as `db`."""
        return cls(session_factory_for(db))

    async def fingerprint(self, business_id: str) -> str:
        return await asyncio.to_thread(self._fingerprint, business_id)

    def _fingerprint(self, business_id: str) -> str:
        with self.session_factory() as db:
            business = db.get(Business, business_id)
            if business is None:
                logger.debug(f"No source data for business {business_id}")
                return ""

            payload = {name: getattr(business, name) for name in FINGERPRINT_FIELDS}
        return hash_business_data(payload)


class DatabaseActivityProvider:
    """Counts competitor_tracking rows; volatility comes from the static table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @classmethod
    def for_session(cls, db: Session) -> "DatabaseActivityProvider":
        return cls(session_factory_for(db))

    async def competitor_events_since(self, business_id: str, since: datetime) -> int:
        return await asyncio.to_thread(self._count_events, business_id, since)

    def _count_events(self, business_id: str, since: datetime) -> int:
        with self.session_factory() as db:
            return db.query(CompetitorTracking).filter(
                CompetitorTracking.business_id == business_id,
                CompetitorTracking.detected_at >= since,
            ).count()

    def industry_volatility(self, industry: Optional[str]) -> float:
        return get_industry_volatility(industry)
