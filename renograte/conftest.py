"""
renograte/conftest.py

Shared pytest fixtures: an isolated SQLite database per test, a recording
mailer in place of SMTP, and helpers for creating users and credentials.

Run:
    pytest renograte -v
"""

import os
import re

# Tests always run against SQLite, never a configured Postgres
os.environ.pop("DATABASE_URL", None)

import pytest
from fastapi.testclient import TestClient

from renograte.db import get_db_connection
from renograte.mailer import Mailer, get_mailer
from renograte.main import app
from renograte.migrate import run_migrations
from renograte.models import UserRole
from renograte.session import issue_credential
from renograte.users import create_user, load_principal, mark_email_verified, set_role

TOKEN_RE = re.compile(r"token=([0-9a-f]{64})")


class RecordingMailer(Mailer):
    """Keeps messages in memory; set fail=True to simulate SMTP failure."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to_email, subject, body_html):
        self.sent.append({"to": to_email, "subject": subject, "body": body_html})
        return not self.fail

    def last_token(self):
        match = TOKEN_RE.search(self.sent[-1]["body"])
        assert match, "Mail body should contain a token link"
        return match.group(1)


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    """Point the app at a fresh, migrated database file."""
    path = str(tmp_path / "renograte_test.db")
    monkeypatch.setattr("renograte.db.DATABASE_PATH", path)
    run_migrations()
    return path


@pytest.fixture
def conn(db_path):
    with get_db_connection() as c:
        yield c


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def client(db_path, mailer):
    app.dependency_overrides[get_mailer] = lambda: mailer
    # Unhandled errors are answered by the app's 500 handler instead of re-raised
    test_client = TestClient(app, raise_server_exceptions=False)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(conn):
    """Factory: create a user directly in the database and return its Principal."""

    def _make_user(
        email="user@example.com",
        role=UserRole.user,
        verified=True,
        password="password123",
        name="Test User",
    ):
        row = create_user(conn, name, email, password)
        if verified:
            mark_email_verified(conn, email)
        if role != UserRole.user:
            set_role(conn, row["id"], role)
        return load_principal(conn, row["id"])

    return _make_user


@pytest.fixture
def auth_headers():
    """Factory: Authorization header carrying a fresh credential for a Principal."""

    def _auth_headers(principal):
        return {"Authorization": f"Bearer {issue_credential(principal)}"}

    return _auth_headers
