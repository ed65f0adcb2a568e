"""
Analysis Cache Store

SQLAlchemy adapter for the analysis_cache table. Pure persistence: no
freshness policy lives here. Errors propagate to the caller, which decides
whether they are fatal (IntelligentCache absorbs them).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from marketlens.database.models import AnalysisCacheEntry, utcnow


logger = logging.getLogger(__name__)


class MalformedEntryError(ValueError):
    """Stored row does not have the shape of a cache entry."""


@dataclass
class CacheEntry:
    """Detached view of an analysis_cache row."""
    key: str
    data: Any
    business_id: str
    analysis_type: str
    created_at: datetime
    last_accessed_at: datetime
    access_count: int = 1
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def business_data_hash(self) -> Optional[str]:
        return self.metadata.get("business_data_hash") or None

    def age_hours(self, now: Optional[datetime] = None) -> float:
        now = now or utcnow()
        return (now - self.created_at).total_seconds() / 3600

    @classmethod
    def from_record(cls, record: AnalysisCacheEntry) -> "CacheEntry":
        """Validate and copy a row; raises MalformedEntryError on bad shape."""
        if record.data is None:
            raise MalformedEntryError(f"Cache entry {record.key} has no payload")
        if not isinstance(record.created_at, datetime):
            raise MalformedEntryError(f"Cache entry {record.key} has invalid created_at")
        if not isinstance(record.access_count, int) or isinstance(record.access_count, bool):
            raise MalformedEntryError(f"Cache entry {record.key} has invalid access_count")

        metadata = record.meta if record.meta is not None else {}
        if not isinstance(metadata, dict):
            raise MalformedEntryError(f"Cache entry {record.key} has invalid metadata")

        return cls(
            key=record.key,
            data=record.data,
            business_id=record.business_id,
            analysis_type=record.analysis_type,
            created_at=record.created_at,
            last_accessed_at=record.last_accessed_at or record.created_at,
            access_count=record.access_count,
            metadata=dict(metadata),
        )


class CacheStore:
    """
    Key -> entry mapping backed by the analysis_cache table.

    One instance per session; the session's owner controls its lifetime.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> Optional[CacheEntry]:
        """
        Fetch one entry.

        Returns:
            CacheEntry, or None if the key is absent

        Raises:
            MalformedEntryError: the stored row has an unexpected shape
        """
        record = self.db.get(AnalysisCacheEntry, key, populate_existing=True)
        if record is None:
            return None
        return CacheEntry.from_record(record)

    def upsert(
        self,
        key: str,
        data: Any,
        business_id: str,
        analysis_type: str,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Insert or fully replace the entry under `key`.

        Resets created_at/last_accessed_at to now and access_count to 1.
        """
        now = now or utcnow()
        try:
            record = self.db.get(AnalysisCacheEntry, key, populate_existing=True)
            if record is None:
                record = AnalysisCacheEntry(key=key)
                self.db.add(record)

            record.data = data
            record.business_id = business_id
            record.analysis_type = analysis_type
            record.meta = dict(metadata or {})
            record.created_at = now
            record.last_accessed_at = now
            record.access_count = 1

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def record_access(self, key: str, now: Optional[datetime] = None) -> bool:
        """Atomically bump access_count and last_accessed_at; False if key vanished."""
        now = now or utcnow()
        try:
            updated = self.db.query(AnalysisCacheEntry).filter(
                AnalysisCacheEntry.key == key,
            ).update(
                {
                    AnalysisCacheEntry.access_count: AnalysisCacheEntry.access_count + 1,
                    AnalysisCacheEntry.last_accessed_at: now,
                },
                synchronize_session=False,
            )
            self.db.commit()
            return updated > 0
        except Exception:
            self.db.rollback()
            raise

    def delete_by_business(self, business_id: str, analysis_type: Optional[str] = None) -> int:
        """Delete all entries for a business, optionally one analysis type only."""
        try:
            query = self.db.query(AnalysisCacheEntry).filter(
                AnalysisCacheEntry.business_id == business_id,
            )
            if analysis_type:
                query = query.filter(AnalysisCacheEntry.analysis_type == analysis_type)

            deleted = query.delete()
            self.db.commit()
            return deleted
        except Exception:
            self.db.rollback()
            raise

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete entries created strictly before `cutoff`, across all businesses."""
        try:
            deleted = self.db.query(AnalysisCacheEntry).filter(
                AnalysisCacheEntry.created_at < cutoff,
            ).delete()
            self.db.commit()
            return deleted
        except Exception:
            self.db.rollback()
            raise

    def list_entries(self, business_id: Optional[str] = None) -> List[CacheEntry]:
        """All entries, optionally for one business. Malformed rows are skipped."""
        query = self.db.query(AnalysisCacheEntry)
        if business_id:
            query = query.filter(AnalysisCacheEntry.business_id == business_id)

        entries = []
        for record in query.populate_existing().all():
            try:
                entries.append(CacheEntry.from_record(record))
            except MalformedEntryError as e:
                logger.warning(f"Skipping malformed cache entry: {e}")
        return entries

    def count(self) -> int:
        return self.db.query(AnalysisCacheEntry).count()


def cutoff_for_age(max_age_hours: float, now: Optional[datetime] = None) -> datetime:
    """Timestamp before which entries are older than `max_age_hours`."""
    return (now or utcnow()) - timedelta(hours=max_age_hours)
