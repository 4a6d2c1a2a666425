# renograte/db.py
# Database abstraction layer supporting PostgreSQL (production) and SQLite (dev/tests)

import sqlite3
from contextlib import contextmanager
from pathlib import Path as FsPath
from typing import Any, Dict, Generator, Iterator, List, Optional, Union
from urllib.parse import urlparse

from sqlalchemy import create_engine, pool, text
from sqlalchemy.engine import Connection, Engine

from renograte.config import DATABASE_PATH, DATABASE_URL, IS_POSTGRES

DbConnection = Union[sqlite3.Connection, Connection]

# Global engine (SQLAlchemy) or None for SQLite
_engine: Optional[Engine] = None


def init_engine() -> None:
    """Initialize SQLAlchemy engine for PostgreSQL if DATABASE_URL is set."""
    global _engine

    if not IS_POSTGRES:
        _engine = None
        print("[DB] Using SQLite (local dev mode)")
        return

    parsed = urlparse(DATABASE_URL)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid DATABASE_URL: {DATABASE_URL[:20]}...")

    # Hosted providers hand out postgres:// which SQLAlchemy no longer accepts
    url = DATABASE_URL
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]

    _engine = create_engine(
        url,
        poolclass=pool.QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        echo=False,
    )

    print(f"[DB] Using PostgreSQL ({parsed.hostname})")


def sqlite_path() -> str:
    """Resolve the SQLite file; relative paths live next to this package."""
    return str(FsPath(__file__).resolve().parent / DATABASE_PATH)


def connect() -> DbConnection:
    """
    Open a new connection.

    SQLite connections run in autocommit mode; writes that must be atomic go
    through transaction(), which takes the write lock up front.
    """
    if IS_POSTGRES:
        if _engine is None:
            init_engine()
        return _engine.connect()

    conn = sqlite3.connect(
        sqlite_path(),
        timeout=10,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db_connection() -> Generator[DbConnection, None, None]:
    """Context manager for database connections."""
    conn = connect()
    try:
        yield conn
    finally:
        conn.close()


def get_db() -> Iterator[DbConnection]:
    """FastAPI dependency: one connection per request, closed afterwards."""
    with get_db_connection() as conn:
        yield conn


@contextmanager
def transaction(conn: DbConnection) -> Generator[DbConnection, None, None]:
    """
    Run a block as a single transaction: commit on success, roll back on error.

    SQLite uses BEGIN IMMEDIATE so two writers racing on the same rows
    serialize on the database lock instead of deadlocking on lock upgrade.
    """
    if IS_POSTGRES:
        if conn.in_transaction():
            conn.commit()
        with conn.begin():
            yield conn
        return

    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def execute_query(
    conn: DbConnection,
    query: str,
    params: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    Execute a query with named parameters.

    Both sqlite3 and SQLAlchemy's text() accept :name placeholders, so the
    same SQL runs on either engine.
    """
    if IS_POSTGRES:
        return conn.execute(text(query), params or {})
    return conn.execute(query, params or {})


def row_to_dict(row: Any) -> Dict[str, Any]:
    """
    Convert a sqlite3.Row or SQLAlchemy Row to a plain dict.

    Returns {} for None.
    """
    if row is None:
        return {}
    if hasattr(row, "_mapping"):
        return dict(row._mapping)
    return dict(row)


def fetch_one(
    conn: DbConnection,
    query: str,
    params: Optional[Dict[str, Any]] = None,
) -> Optional[Dict[str, Any]]:
    """Execute and return the first row as a dict, or None."""
    rows = fetch_all(conn, query, params)
    return rows[0] if rows else None


def fetch_all(
    conn: DbConnection,
    query: str,
    params: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """Execute and return all rows as dicts (also drains RETURNING results)."""
    result = execute_query(conn, query, params)
    return [row_to_dict(row) for row in result.fetchall()]


# Initialize engine on module import if Postgres mode
if IS_POSTGRES and _engine is None:
    init_engine()
