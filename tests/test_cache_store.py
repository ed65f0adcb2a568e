"""
Tests for the SQL-backed cache store.

Runs against an in-memory SQLite database.
"""

import pytest
from datetime import timedelta

from marketlens.cache.store import CacheEntry, CacheStore, MalformedEntryError, cutoff_for_age
from marketlens.database.models import AnalysisCacheEntry, utcnow


def put(store: CacheStore, key: str, business_id: str = "biz-1", analysis_type: str = "marketing", now=None):
    store.upsert(
        key=key,
        data={"summary": f"analysis for {key}"},
        business_id=business_id,
        analysis_type=analysis_type,
        metadata={"business_data_hash": "hash-v1"},
        now=now,
    )


class TestUpsert:
    """Test insert and full replacement."""

    def test_get_missing_key(self, cache_store):
        assert cache_store.get("nope") is None

    def test_insert_and_get(self, cache_store):
        put(cache_store, "k1")

        entry = cache_store.get("k1")
        assert isinstance(entry, CacheEntry)
        assert entry.data == {"summary": "analysis for k1"}
        assert entry.access_count == 1
        assert entry.business_data_hash == "hash-v1"

    def test_upsert_replaces_and_resets(self, cache_store, hours_ago):
        put(cache_store, "k1", now=hours_ago(10))
        cache_store.record_access("k1")
        cache_store.record_access("k1")

        cache_store.upsert(
            key="k1",
            data={"summary": "v2"},
            business_id="biz-1",
            analysis_type="strategic",
            metadata={},
        )

        entry = cache_store.get("k1")
        assert entry.data == {"summary": "v2"}
        assert entry.analysis_type == "strategic"
        assert entry.access_count == 1
        assert entry.age_hours() < 1
        assert entry.business_data_hash is None
        assert cache_store.count() == 1

    def test_upsert_idempotent(self, cache_store):
        put(cache_store, "k1")
        put(cache_store, "k1")

        assert cache_store.count() == 1
        assert cache_store.get("k1").access_count == 1


class TestAccessTracking:
    """Test access stat bumps."""

    def test_record_access_increments(self, cache_store):
        put(cache_store, "k1")

        assert cache_store.record_access("k1") is True
        assert cache_store.record_access("k1") is True

        assert cache_store.get("k1").access_count == 3

    def test_record_access_missing_key(self, cache_store):
        assert cache_store.record_access("gone") is False


class TestDeletion:
    """Test invalidation and age-based cleanup."""

    def test_delete_by_business(self, cache_store):
        put(cache_store, "a1", business_id="biz-a")
        put(cache_store, "a2", business_id="biz-a", analysis_type="quick")
        put(cache_store, "b1", business_id="biz-b")

        assert cache_store.delete_by_business("biz-a") == 2
        assert cache_store.get("a1") is None
        assert cache_store.get("b1") is not None

    def test_delete_by_business_and_type(self, cache_store):
        put(cache_store, "a1", business_id="biz-a", analysis_type="marketing")
        put(cache_store, "a2", business_id="biz-a", analysis_type="quick")

        assert cache_store.delete_by_business("biz-a", "quick") == 1
        assert cache_store.get("a1") is not None
        assert cache_store.get("a2") is None

    def test_delete_older_than(self, cache_store, hours_ago):
        put(cache_store, "old", now=hours_ago(30))
        put(cache_store, "new", now=hours_ago(1))

        assert cache_store.delete_older_than(cutoff_for_age(24)) == 1
        assert cache_store.get("old") is None
        assert cache_store.get("new") is not None

    def test_cutoff_for_age(self):
        now = utcnow()
        assert cutoff_for_age(24, now) == now - timedelta(hours=24)


class TestListing:
    """Test listing and malformed rows."""

    def test_list_entries_filtered(self, cache_store):
        put(cache_store, "a1", business_id="biz-a")
        put(cache_store, "b1", business_id="biz-b")

        assert {e.key for e in cache_store.list_entries()} == {"a1", "b1"}
        assert [e.key for e in cache_store.list_entries("biz-b")] == ["b1"]

    def test_malformed_metadata_raises_on_get(self, cache_store, db_session):
        db_session.add(AnalysisCacheEntry(
            key="bad",
            business_id="biz-1",
            analysis_type="quick",
            data={"x": 1},
            meta=["not", "a", "dict"],
        ))
        db_session.commit()

        with pytest.raises(MalformedEntryError):
            cache_store.get("bad")

    def test_malformed_rows_skipped_in_listing(self, cache_store, db_session):
        put(cache_store, "good")
        db_session.add(AnalysisCacheEntry(
            key="bad",
            business_id="biz-1",
            analysis_type="quick",
            data={"x": 1},
            meta="oops",
        ))
        db_session.commit()

        assert [e.key for e in cache_store.list_entries()] == ["good"]
