"""
Unit tests for storage layer.

Tests schema creation, usage ledger, snapshot rows and cached responses.
"""

import os
import tempfile
from datetime import date, datetime, timedelta

import pytest

from tiered_answers.core.tiers import ModelTier
from tiered_answers.storage.db import get_connection
from tiered_answers.storage.models import CachedResponse, SnapshotRecord, UsageLogEntry
from tiered_answers.storage.repository import (
    UsageRepository,
    delete_expired_responses,
    fetch_cached_response,
    fetch_snapshot,
    fetch_usage_entries,
    initialize_schema,
    insert_usage_entry,
    upsert_cached_response,
    upsert_snapshot,
)


def _entry(ts, tier=ModelTier.MID, input_tokens=100, output_tokens=50, **kwargs):
    return UsageLogEntry(timestamp=ts, tier=tier, input_tokens=input_tokens, output_tokens=output_tokens, **kwargs)


def _cached(query_hash="abc", created=datetime(2026, 3, 10, 9, 0), ttl_hours=12):
    return CachedResponse(
        query_hash=query_hash,
        response_text="Reserve is 50 MW.",
        model_tier=ModelTier.MID,
        created_at=created,
        expires_at=created + timedelta(hours=ttl_hours),
        suggestions=["Is this adequate?"],
        actions=[{"label": "View", "route": "/intel/gpl"}],
    )


class TestStorageSchema:
    """Test database schema creation and structure."""

    def test_schema_creation(self):
        """Verify all three tables are created."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
                tables = {row[0] for row in cursor.fetchall()}
                assert {"ai_usage_log", "ai_metric_snapshot", "ai_response_cache"} <= tables
            finally:
                conn.close()

    def test_schema_creation_is_idempotent(self, db_path):
        initialize_schema(db_path)
        initialize_schema(db_path)


class TestUsageLedger:
    """Test usage log insertion and range queries."""

    def test_insert_and_fetch(self, db_path):
        ts = datetime(2026, 3, 10, 12, 0, 0)
        insert_usage_entry(_entry(ts, query_type="general", session_id="s1"), db_path)

        entries = fetch_usage_entries(datetime(2026, 3, 10), db_path=db_path)

        assert len(entries) == 1
        entry = entries[0]
        assert entry.timestamp == ts
        assert entry.tier == ModelTier.MID
        assert entry.total_tokens == 150
        assert entry.query_type == "general"
        assert entry.session_id == "s1"
        assert entry.cached is False

    def test_range_is_half_open_and_ordered(self, db_path):
        repo = UsageRepository(db_path)
        repo.record(_entry(datetime(2026, 3, 11, 0, 0)))
        repo.record(_entry(datetime(2026, 3, 10, 23, 59)))
        repo.record(_entry(datetime(2026, 3, 10, 0, 0)))
        repo.record(_entry(datetime(2026, 3, 9, 23, 59)))

        entries = repo.get_entries_since(datetime(2026, 3, 10), datetime(2026, 3, 11))

        assert [e.timestamp for e in entries] == [datetime(2026, 3, 10, 0, 0), datetime(2026, 3, 10, 23, 59)]

    def test_flags_round_trip(self, db_path):
        insert_usage_entry(_entry(datetime(2026, 3, 10, 8), ModelTier.CHEAP, 0, 0, local_answer=True), db_path)

        entry = fetch_usage_entries(datetime(2026, 3, 10), db_path=db_path)[0]
        assert entry.local_answer is True
        assert entry.total_tokens == 0


class TestUsageLogEntryValidation:
    """Test usage entry invariants."""

    def test_negative_tokens_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            _entry(datetime.now(), input_tokens=-1)

    def test_cached_entries_carry_zero_tokens(self):
        with pytest.raises(ValueError, match="zero tokens"):
            _entry(datetime.now(), cached=True)


class TestSnapshotRows:
    """Test per-day snapshot upserts."""

    def test_upsert_overwrites_same_day(self, db_path):
        day = date(2026, 3, 10)
        upsert_snapshot(SnapshotRecord(day, {"v": 1}, datetime(2026, 3, 10, 6)), db_path)
        upsert_snapshot(SnapshotRecord(day, {"v": 2}, datetime(2026, 3, 10, 7)), db_path)

        record = fetch_snapshot(day, db_path)
        assert record.snapshot_data == {"v": 2}
        assert record.updated_at == datetime(2026, 3, 10, 7)

        conn = get_connection(db_path)
        try:
            assert conn.execute("SELECT COUNT(*) FROM ai_metric_snapshot").fetchone()[0] == 1
        finally:
            conn.close()

    def test_missing_day_returns_none(self, db_path):
        assert fetch_snapshot(date(2026, 1, 1), db_path) is None


class TestCachedResponses:
    """Test the response cache table."""

    def test_fetch_before_expiry(self, db_path):
        upsert_cached_response(_cached(), "what is the reserve", "/", 100, 40, db_path)

        hit = fetch_cached_response("abc", datetime(2026, 3, 10, 20, 59), db_path)

        assert hit.response_text == "Reserve is 50 MW."
        assert hit.suggestions == ["Is this adequate?"]
        assert hit.actions == [{"label": "View", "route": "/intel/gpl"}]

    def test_expired_row_never_returned(self, db_path):
        upsert_cached_response(_cached(), "what is the reserve", "/", db_path=db_path)

        assert fetch_cached_response("abc", datetime(2026, 3, 10, 21, 0), db_path) is None

    def test_upsert_overwrites(self, db_path):
        upsert_cached_response(_cached(), "q", "/", db_path=db_path)
        newer = CachedResponse("abc", "Updated", ModelTier.CHEAP, datetime(2026, 3, 10, 10), datetime(2026, 3, 11, 10))
        upsert_cached_response(newer, "q", "/", db_path=db_path)

        hit = fetch_cached_response("abc", datetime(2026, 3, 10, 11), db_path)
        assert hit.response_text == "Updated"
        assert hit.model_tier == ModelTier.CHEAP

    def test_delete_expired_counts_rows(self, db_path):
        upsert_cached_response(_cached("a", ttl_hours=1), "q", "/", db_path=db_path)
        upsert_cached_response(_cached("b", ttl_hours=2), "q", "/", db_path=db_path)
        upsert_cached_response(_cached("c", ttl_hours=24), "q", "/", db_path=db_path)

        removed = delete_expired_responses(datetime(2026, 3, 10, 11, 0), db_path)

        assert removed == 2
        assert fetch_cached_response("c", datetime(2026, 3, 10, 11, 0), db_path) is not None
