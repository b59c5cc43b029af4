"""
Repository pattern for data access.

Handles the three shared stores: the append-only usage log, the per-day
snapshot table and the response cache. Every function opens its own
connection so concurrent requests never share mutable state.
"""

import json
from datetime import date, datetime
from typing import List, Optional

from tiered_answers.core.tiers import ModelTier

from .db import DEFAULT_DB_PATH, get_connection
from .models import CachedResponse, SnapshotRecord, UsageLogEntry

_USAGE_COLUMNS = """
    created_at, model_tier, input_tokens, output_tokens, cached,
    local_answer, current_page, session_id, model_id, query_type
"""


class UsageRepository:
    """Repository for reading and appending usage log entries.

    This class provides a higher-level interface to the usage functions
    below, bound to one database path.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def record(self, entry: UsageLogEntry) -> None:
        insert_usage_entry(entry, self.db_path)

    def get_entries_since(self, since: datetime, until: Optional[datetime] = None) -> List[UsageLogEntry]:
        """Get usage entries in ``[since, until)``, oldest first.

        Args:
            since: Inclusive lower bound on the entry timestamp
            until: Optional exclusive upper bound

        Returns:
            List of usage entries ordered by timestamp (oldest first)
        """
        return fetch_usage_entries(since, until, self.db_path)


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the usage, snapshot and cache tables if they don't exist.

    ``ai_usage_log`` is an append-only ledger. No UPDATE or DELETE is ever
    performed on it.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS ai_usage_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at TEXT NOT NULL,
                model_tier TEXT NOT NULL CHECK (model_tier IN ('cheap', 'mid', 'premium')),
                input_tokens INTEGER NOT NULL DEFAULT 0,
                output_tokens INTEGER NOT NULL DEFAULT 0,
                cached INTEGER NOT NULL DEFAULT 0,
                local_answer INTEGER NOT NULL DEFAULT 0,
                current_page TEXT,
                session_id TEXT NOT NULL DEFAULT 'anonymous',
                model_id TEXT NOT NULL DEFAULT '',
                query_type TEXT
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_ai_usage_created ON ai_usage_log (created_at)")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS ai_metric_snapshot (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                snapshot_date TEXT NOT NULL UNIQUE,
                snapshot_data TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS ai_response_cache (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                query_hash TEXT NOT NULL UNIQUE,
                query_text TEXT NOT NULL,
                current_page TEXT NOT NULL DEFAULT '/',
                model_tier TEXT NOT NULL CHECK (model_tier IN ('cheap', 'mid', 'premium')),
                response_text TEXT NOT NULL,
                suggestions TEXT,
                actions TEXT,
                usage_input_tokens INTEGER,
                usage_output_tokens INTEGER,
                created_at TEXT NOT NULL,
                expires_at TEXT NOT NULL
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_ai_cache_expires ON ai_response_cache (expires_at)")
        conn.commit()
    finally:
        conn.close()


# ── Usage log ────────────────────────────────────────────────────────────────

def insert_usage_entry(entry: UsageLogEntry, db_path: str = DEFAULT_DB_PATH) -> None:
    """Append a single usage entry to the ledger.

    Args:
        entry: The usage entry to record
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute(f"""
            INSERT INTO ai_usage_log ({_USAGE_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            entry.timestamp.isoformat(),
            entry.tier.value,
            entry.input_tokens,
            entry.output_tokens,
            int(entry.cached),
            int(entry.local_answer),
            entry.current_page,
            entry.session_id,
            entry.model_id,
            entry.query_type
        ))
        conn.commit()
    finally:
        conn.close()


def fetch_usage_entries(
    since: datetime,
    until: Optional[datetime] = None,
    db_path: str = DEFAULT_DB_PATH
) -> List[UsageLogEntry]:
    """Fetch usage entries with ``since <= timestamp < until``, oldest first.

    Args:
        since: Inclusive lower bound
        until: Optional exclusive upper bound
        db_path: Path to SQLite database file

    Returns:
        List of usage entries ordered by timestamp (oldest first)
    """
    conn = get_connection(db_path)
    try:
        query = f"SELECT {_USAGE_COLUMNS} FROM ai_usage_log WHERE created_at >= ?"
        params = [since.isoformat()]
        if until is not None:
            query += " AND created_at < ?"
            params.append(until.isoformat())
        query += " ORDER BY created_at ASC, id ASC"

        cursor = conn.execute(query, params)
        entries = []
        for row in cursor.fetchall():
            entries.append(UsageLogEntry(
                timestamp=datetime.fromisoformat(row[0]),
                tier=ModelTier(row[1]),
                input_tokens=row[2],
                output_tokens=row[3],
                cached=bool(row[4]),
                local_answer=bool(row[5]),
                current_page=row[6],
                session_id=row[7],
                model_id=row[8],
                query_type=row[9]
            ))
        return entries
    finally:
        conn.close()


# ── Snapshots ────────────────────────────────────────────────────────────────

def upsert_snapshot(record: SnapshotRecord, db_path: str = DEFAULT_DB_PATH) -> None:
    """Insert or replace the snapshot for ``record.snapshot_date``.

    Re-running for the same day overwrites the prior row; last writer wins.
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            INSERT INTO ai_metric_snapshot (snapshot_date, snapshot_data, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(snapshot_date) DO UPDATE SET
                snapshot_data = excluded.snapshot_data,
                updated_at = excluded.updated_at
        """, (
            record.snapshot_date.isoformat(),
            json.dumps(record.snapshot_data, sort_keys=True),
            record.updated_at.isoformat()
        ))
        conn.commit()
    finally:
        conn.close()


def fetch_snapshot(day: date, db_path: str = DEFAULT_DB_PATH) -> Optional[SnapshotRecord]:
    """Fetch the stored snapshot for a calendar day, or None."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "SELECT snapshot_date, snapshot_data, updated_at FROM ai_metric_snapshot WHERE snapshot_date = ?",
            (day.isoformat(),)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return SnapshotRecord(
            snapshot_date=date.fromisoformat(row[0]),
            snapshot_data=json.loads(row[1]),
            updated_at=datetime.fromisoformat(row[2])
        )
    finally:
        conn.close()


# ── Response cache ───────────────────────────────────────────────────────────

def upsert_cached_response(
    response: CachedResponse,
    query_text: str,
    current_page: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    db_path: str = DEFAULT_DB_PATH
) -> None:
    """Store a response under its hash, overwriting any previous entry."""
    conn = get_connection(db_path)
    try:
        conn.execute("""
            INSERT INTO ai_response_cache
            (query_hash, query_text, current_page, model_tier, response_text,
             suggestions, actions, usage_input_tokens, usage_output_tokens,
             created_at, expires_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(query_hash) DO UPDATE SET
                query_text = excluded.query_text,
                current_page = excluded.current_page,
                model_tier = excluded.model_tier,
                response_text = excluded.response_text,
                suggestions = excluded.suggestions,
                actions = excluded.actions,
                usage_input_tokens = excluded.usage_input_tokens,
                usage_output_tokens = excluded.usage_output_tokens,
                created_at = excluded.created_at,
                expires_at = excluded.expires_at
        """, (
            response.query_hash,
            query_text[:500],
            current_page,
            response.model_tier.value,
            response.response_text,
            json.dumps(list(response.suggestions)),
            json.dumps(list(response.actions)),
            input_tokens,
            output_tokens,
            response.created_at.isoformat(),
            response.expires_at.isoformat()
        ))
        conn.commit()
    finally:
        conn.close()


def fetch_cached_response(
    query_hash: str,
    now: datetime,
    db_path: str = DEFAULT_DB_PATH
) -> Optional[CachedResponse]:
    """Fetch an unexpired cached response, or None.

    Expiry is checked here, at read time, so a stale row is never returned
    even when the cleanup sweep has not run.
    """
    conn = get_connection(db_path)
    try:
        cursor = conn.execute("""
            SELECT query_hash, response_text, model_tier, created_at, expires_at,
                   suggestions, actions
            FROM ai_response_cache
            WHERE query_hash = ? AND expires_at > ?
        """, (query_hash, now.isoformat()))
        row = cursor.fetchone()
        if row is None:
            return None
        return CachedResponse(
            query_hash=row[0],
            response_text=row[1],
            model_tier=ModelTier(row[2]),
            created_at=datetime.fromisoformat(row[3]),
            expires_at=datetime.fromisoformat(row[4]),
            suggestions=json.loads(row[5]) if row[5] else [],
            actions=json.loads(row[6]) if row[6] else []
        )
    finally:
        conn.close()


def delete_expired_responses(now: datetime, db_path: str = DEFAULT_DB_PATH) -> int:
    """Delete every cached response whose expiry has passed.

    Returns:
        Number of rows removed
    """
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "DELETE FROM ai_response_cache WHERE expires_at <= ?",
            (now.isoformat(),)
        )
        conn.commit()
        return cursor.rowcount
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
