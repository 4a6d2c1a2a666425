# renograte/migrate.py
# Database migration module for PostgreSQL and SQLite
# Run: python -m renograte.migrate [--purge-tokens]

import sys

from renograte.db import IS_POSTGRES, execute_query, get_db_connection, transaction


def run_migrations() -> None:
    """
    Run all database migrations (idempotent).
    Creates tables and indexes if missing. Safe to run multiple times.
    """
    print("[MIGRATE] Starting database migrations...")

    with get_db_connection() as conn:
        with transaction(conn):
            if IS_POSTGRES:
                _run_postgres_migrations(conn)
            else:
                _run_sqlite_migrations(conn)

    print("[MIGRATE] All migrations complete!")


def _run_postgres_migrations(conn) -> None:
    """PostgreSQL-specific DDL."""
    print("[MIGRATE] Running PostgreSQL migrations...")

    execute_query(conn, """
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            name TEXT,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT,
            role TEXT NOT NULL DEFAULT 'user',
            email_verified TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    execute_query(conn, """
        CREATE TABLE IF NOT EXISTS member_profiles (
            id SERIAL PRIMARY KEY,
            user_id INTEGER UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            status TEXT NOT NULL DEFAULT 'pending',
            is_early_access BOOLEAN NOT NULL DEFAULT FALSE,
            admin_feedback TEXT,
            company TEXT,
            phone TEXT,
            business_type TEXT,
            license_number TEXT,
            plan TEXT,
            billing_cycle TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    for table in ("password_reset_tokens", "verification_tokens"):
        execute_query(conn, f"""
            CREATE TABLE IF NOT EXISTS {table} (
                token TEXT PRIMARY KEY,
                identifier TEXT NOT NULL,
                expires TEXT NOT NULL
            )
        """)
        execute_query(conn, f"CREATE INDEX IF NOT EXISTS idx_{table}_identifier ON {table}(identifier)")
        execute_query(conn, f"CREATE INDEX IF NOT EXISTS idx_{table}_expires ON {table}(expires)")

    print("[MIGRATE] PostgreSQL migrations complete")


def _run_sqlite_migrations(conn) -> None:
    """SQLite-specific DDL."""
    print("[MIGRATE] Running SQLite migrations...")

    execute_query(conn, """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT,
            role TEXT NOT NULL DEFAULT 'user',
            email_verified TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """)

    execute_query(conn, """
        CREATE TABLE IF NOT EXISTS member_profiles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER UNIQUE NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            is_early_access INTEGER NOT NULL DEFAULT 0,
            admin_feedback TEXT,
            company TEXT,
            phone TEXT,
            business_type TEXT,
            license_number TEXT,
            plan TEXT,
            billing_cycle TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
        )
    """)

    for table in ("password_reset_tokens", "verification_tokens"):
        execute_query(conn, f"""
            CREATE TABLE IF NOT EXISTS {table} (
                token TEXT PRIMARY KEY,
                identifier TEXT NOT NULL,
                expires TEXT NOT NULL
            )
        """)
        execute_query(conn, f"CREATE INDEX IF NOT EXISTS idx_{table}_identifier ON {table}(identifier)")
        execute_query(conn, f"CREATE INDEX IF NOT EXISTS idx_{table}_expires ON {table}(expires)")

    print("[MIGRATE] SQLite migrations complete")


def purge_tokens() -> int:
    """Delete expired reset and verification tokens (optional reaper)."""
    from renograte.tokens import purge_expired_tokens

    with get_db_connection() as conn:
        removed = purge_expired_tokens(conn)
    print(f"[MIGRATE] Purged {removed} expired token(s)")
    return removed


if __name__ == "__main__":
    run_migrations()
    if "--purge-tokens" in sys.argv[1:]:
        purge_tokens()
