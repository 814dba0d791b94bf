"""
Pytest configuration and fixtures for the Wellness Tracker API tests.

Supabase is replaced by an in-memory MockSupabase that understands the
query-builder chains the routers use and records every executed query.
"""
import os
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

# Set environment variables before importing main
os.environ["SUPABASE_URL"] = "https://test.supabase.co"
os.environ["SUPABASE_SERVICE_KEY"] = "test-key"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["RATE_LIMIT_DEFAULT"] = "1000/minute"
os.environ["RATE_LIMIT_WRITES"] = "1000/minute"
os.environ["RATE_LIMIT_AUTH"] = "5/minute"
os.environ.pop("REDIS_URL", None)

from main import app  # noqa: E402

TEST_USER_ID = "123e4567-e89b-12d3-a456-426614174000"
OTHER_USER_ID = "223e4567-e89b-12d3-a456-426614174999"


class MockQueryBuilder:
    """
    Chainable stand-in for a PostgREST request builder.

    Supports table().select/insert/update/upsert/delete() followed by
    eq/gte/lte/order/limit and an awaited execute(). eq() filters are
    applied to selects, updates and deletes against the table rows held by
    the owning MockSupabase.
    """

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.operation = "select"
        self.payload = None
        self.options = {}
        self.filters = []

    def select(self, *args, **kwargs):
        return self

    def insert(self, payload, **kwargs):
        self.operation, self.payload, self.options = "insert", payload, kwargs
        return self

    def update(self, payload, **kwargs):
        self.operation, self.payload, self.options = "update", payload, kwargs
        return self

    def upsert(self, payload, **kwargs):
        self.operation, self.payload, self.options = "upsert", payload, kwargs
        return self

    def delete(self, **kwargs):
        self.operation = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def gte(self, *args, **kwargs):
        return self

    def lte(self, *args, **kwargs):
        return self

    def order(self, *args, **kwargs):
        return self

    def limit(self, *args, **kwargs):
        return self

    def _matches(self, row):
        return all(row.get(column) == value for column, value in self.filters)

    async def execute(self):
        self.db.calls.append(self)

        errors = self.db.errors.get((self.table, self.operation))
        if errors:
            raise errors.pop(0)

        rows = self.db.rows.setdefault(self.table, [])
        if self.operation == "select":
            data = [dict(row) for row in rows if self._matches(row)]
        elif self.operation in ("insert", "upsert"):
            conflict = self.options.get("on_conflict")
            if self.operation == "upsert" and conflict:
                columns = conflict.split(",")
                rows[:] = [r for r in rows
                           if any(r.get(c) != self.payload.get(c) for c in columns)]
            row = {
                "id": str(uuid.uuid4()),
                "created_at": datetime.now(timezone.utc).isoformat(),
                **self.payload,
            }
            rows.append(row)
            data = [dict(row)]
        elif self.operation == "update":
            data = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    data.append(dict(row))
        else:
            data = [dict(row) for row in rows if self._matches(row)]
            self.db.rows[self.table] = [row for row in rows if not self._matches(row)]

        response = MagicMock()
        response.data = data
        return response


class MockSupabase:
    """In-memory Supabase AsyncClient double."""

    def __init__(self):
        self.rows = {}
        self.errors = {}
        self.calls = []
        self.channels = []
        self.auth = MagicMock()
        self.auth.sign_in_with_otp = AsyncMock(return_value=MagicMock())
        self.remove_channel = AsyncMock()

    def table(self, name):
        return MockQueryBuilder(self, name)

    def fail(self, table, operation, error):
        """Make the next `operation` on `table` raise `error`."""
        self.errors.setdefault((table, operation), []).append(error)

    def calls_for(self, table, operation=None):
        return [c for c in self.calls
                if c.table == table and (operation is None or c.operation == operation)]

    def channel(self, name):
        channel = MagicMock()
        channel.name = name
        channel.subscribe = AsyncMock(return_value=channel)
        self.channels.append(channel)
        return channel


def _reset_globals():
    import services.couple_store as couple_store
    import services.guardian_monitor as guardian_monitor
    from services.session_store import get_session_registry
    from api.rate_limiter import limiter

    get_session_registry().clear()
    couple_store._store_instance = None
    guardian_monitor._registry = None
    # MemoryStorage has no public "clear everything"; reset() drops the limits too
    limiter._storage.storage.clear()


@pytest.fixture
def mock_db():
    return MockSupabase()


def _make_client(mock_db, user=None):
    from api.dependencies import (
        CurrentUser,
        get_current_user,
        get_supabase_anon_client,
        get_supabase_client,
    )

    _reset_globals()
    app.dependency_overrides.clear()

    async def override_client():
        return mock_db

    app.dependency_overrides[get_supabase_client] = override_client
    app.dependency_overrides[get_supabase_anon_client] = override_client

    if user is not None:
        async def override_user():
            return CurrentUser(id=user, email="user@example.com")
        app.dependency_overrides[get_current_user] = override_user

    return TestClient(app)


@pytest.fixture
def client(mock_db):
    """Anonymous (local-only) client."""
    yield _make_client(mock_db)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(mock_db):
    """Client signed in as TEST_USER_ID."""
    yield _make_client(mock_db, user=TEST_USER_ID)
    app.dependency_overrides.clear()
