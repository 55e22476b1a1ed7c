"""
SQLite durable store - one table per application kind.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator, Iterable

from .config import DB_PATH


@contextmanager
def get_db(db_path: str = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    conn = sqlite3.connect(db_path or DB_PATH, timeout=5)
    try:
        yield conn
    finally:
        conn.close()


def init_db(collections: Iterable[str], db_path: str = None):
    """Initialize the database with one table per collection."""
    with get_db(db_path) as conn:
        cursor = conn.cursor()

        for collection in collections:
            cursor.execute(f'''
                CREATE TABLE IF NOT EXISTS {collection} (
                    id TEXT PRIMARY KEY,
                    citizen_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    fields TEXT NOT NULL,  -- JSON payload validated per kind
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            ''')
            cursor.execute(
                f'CREATE INDEX IF NOT EXISTS idx_{collection}_citizen ON {collection}(citizen_id, created_at DESC)'
            )

        conn.commit()


def health_check(collections: Iterable[str], db_path: str = None) -> bool:
    """Check database health."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            table_names = [table[0] for table in cursor.fetchall()]

            return all(collection in table_names for collection in collections)
    except sqlite3.Error:
        return False
