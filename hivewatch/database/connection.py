"""Database connection management.

Simple SQLite connection handling with schema initialization.
"""

import logging
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from hivewatch.config import Config

logger = logging.getLogger(__name__)

# Schema file location
SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def _resolve_path(db_path: Path | str | None) -> Path:
    return Path(db_path) if db_path else Path(Config.DATABASE_PATH)


def get_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    """Get a database connection.

    Args:
        db_path: Path to database file. Uses Config.DATABASE_PATH if not specified.

    Returns:
        SQLite connection with row factory set to sqlite3.Row
    """
    path = _resolve_path(db_path)

    # check_same_thread=False: the scheduler thread and API workers share the file
    conn = sqlite3.connect(path, timeout=30.0, check_same_thread=False)
    conn.row_factory = sqlite3.Row

    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=30000")

    return conn


@contextmanager
def get_db(db_path: Path | str | None = None) -> Generator[sqlite3.Connection, None, None]:
    """Context manager for database connections.

    Usage:
        with get_db() as conn:
            cursor = conn.execute("SELECT key FROM kv_state")
            keys = cursor.fetchall()
    """
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: Path | str | None = None) -> None:
    """Initialize database with schema.

    Creates the data directory and tables if they don't exist. Safe to call
    multiple times.

    Raises:
        RuntimeError: If the file exists but is not a SQLite database
    """
    path = _resolve_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    schema_sql = SCHEMA_PATH.read_text()

    try:
        with get_db(path) as conn:
            conn.executescript(schema_sql)
            conn.execute("SELECT key FROM kv_state LIMIT 1")
    except sqlite3.DatabaseError as e:
        if "file is not a database" in str(e):
            logger.error("[STATE] Database file '%s' is not a SQLite database", path)
            raise RuntimeError(
                f"Incompatible database file at '{path}'. "
                "Please use a fresh data directory or delete the existing file."
            ) from e
        raise

    logger.info("[STATE] Database ready at %s", path)


def reset_db(db_path: Path | str | None = None) -> None:
    """Drop all state and recreate the schema. Used by tests."""
    path = _resolve_path(db_path)
    with get_db(path) as conn:
        conn.execute("DROP TABLE IF EXISTS kv_state")
    init_db(path)
