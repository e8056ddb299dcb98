"""Database connection manager for SQLite."""

import logging
import sqlite3
from contextlib import contextmanager

from clinic_booking import config

from .schema import SCHEMA

logger = logging.getLogger(__name__)

DB_PATH = config.DB_PATH


def get_connection() -> sqlite3.Connection:
    """Get a database connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(DB_PATH, timeout=config.BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_database() -> None:
    """Initialize the database with schema."""
    conn = get_connection()
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
    logger.debug("Schema applied to %s", DB_PATH)


@contextmanager
def transaction(immediate: bool = False):
    """Yield a connection inside a transaction, committing on success.

    With ``immediate`` the write lock is taken up front (``BEGIN IMMEDIATE``)
    so reads made inside the block cannot be invalidated by another writer
    before the commit.
    """
    conn = get_connection()
    try:
        if immediate:
            conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()


def count_references(conn: sqlite3.Connection, references: dict[str, str], row_id: str) -> dict[str, int]:
    """Count rows in each ``table: column`` pointing at ``row_id``; zero counts are dropped."""
    counts = {}
    for table, column in references.items():
        count = conn.execute(
            f"SELECT COUNT(*) FROM {table} WHERE {column} = ?", (row_id,)
        ).fetchone()[0]
        if count:
            counts[table] = count
    return counts


def row_exists(conn: sqlite3.Connection, table: str, row_id: str) -> bool:
    return conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (row_id,)).fetchone() is not None
