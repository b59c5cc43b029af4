"""
Database connection management.

Provides the SQLite connection behind the snapshot, cache and usage stores.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "tiered_answers.db"


def get_connection(db_path: str = DEFAULT_DB_PATH, timeout: float = 5.0) -> sqlite3.Connection:
    """Create and return a SQLite database connection.

    Concurrent writers rely on SQLite's own locking for single-row upserts
    and inserts; ``timeout`` bounds how long a writer waits for the lock.

    Args:
        db_path: Path to SQLite database file
        timeout: Seconds to wait on a locked database

    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), timeout=timeout)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
