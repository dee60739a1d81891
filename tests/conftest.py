"""
Pytest configuration and fixtures for the environments API tests.

Fixtures provide:
- An in-memory stand-in for the Supabase client (table query builder + auth)
- A FastAPI test client wired to it through dependency overrides
- Seeded organizations, users and environments
"""

import copy
import json
import os
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

os.environ.setdefault("API_KEY_ENCRYPTION_SECRET", "test-encryption-secret")
os.environ.setdefault("ENVIRONMENT", "development")


# =============================================================================
# In-memory Supabase
# =============================================================================

def _contains(haystack, needle):
    if isinstance(needle, dict):
        return isinstance(haystack, dict) and all(
            k in haystack and _contains(haystack[k], v) for k, v in needle.items()
        )
    if isinstance(needle, list):
        return isinstance(haystack, list) and all(
            any(_contains(item, n) for item in haystack) for n in needle
        )
    return haystack == needle


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.values = None
        self.filters = []
        self.order_by = None
        self.limit_count = None

    def select(self, columns="*"):
        self.op, self.columns = "select", columns
        return self

    def insert(self, values):
        self.op, self.values = "insert", values
        return self

    def update(self, values):
        self.op, self.values = "update", values
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def contains(self, column, value):
        if isinstance(value, str):
            value = json.loads(value)
        self.filters.append(lambda row: _contains(row.get(column), value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def _project(self, row):
        if self.columns.strip() == "*":
            return copy.deepcopy(row)
        names = [c.strip() for c in self.columns.split(",")]
        return {n: copy.deepcopy(row.get(n)) for n in names}

    def execute(self):
        self.db.calls.append((self.table, self.op, copy.deepcopy(self.values)))
        if self.db.fail_with is not None:
            raise self.db.fail_with
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            values = self.values if isinstance(self.values, list) else [self.values]
            inserted = []
            for value in values:
                row = copy.deepcopy(value)
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_at", self.db.next_timestamp())
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return SimpleNamespace(data=inserted)

        matched = [row for row in rows if self._matches(row)]

        if self.op == "update":
            for row in matched:
                row.update(copy.deepcopy(self.values))
            return SimpleNamespace(data=copy.deepcopy(matched))

        if self.op == "delete":
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
            return SimpleNamespace(data=copy.deepcopy(matched))

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: r.get(column) or "", reverse=desc)
        if self.limit_count is not None:
            matched = matched[:self.limit_count]
        return SimpleNamespace(data=[self._project(row) for row in matched])


class FakeAuth:
    def __init__(self):
        self.users = {}

    def get_user(self, jwt=None):
        if jwt not in self.users:
            raise Exception("invalid JWT: unable to parse or verify signature")
        return SimpleNamespace(user=self.users[jwt])


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.fail_with = None
        self.auth = FakeAuth()
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def table(self, name):
        return FakeQuery(self, name)

    def next_timestamp(self):
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def add_user(self, token, user_id, organization_id=None, environment_id=None):
        app_metadata = {}
        if organization_id:
            app_metadata["organization_id"] = organization_id
        if environment_id:
            app_metadata["environment_id"] = environment_id
        self.auth.users[token] = SimpleNamespace(
            id=user_id,
            email=f"{user_id.lower()}@example.com",
            user_metadata={},
            app_metadata=app_metadata,
        )

    def writes(self, op):
        return [values for table, kind, values in self.calls if kind == op]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def key_manager():
    from app.modules.environments.api_keys import ApiKeyManager
    return ApiKeyManager("test-encryption-secret")


@pytest.fixture
def client(supabase):
    """FastAPI test client whose Supabase dependencies resolve to the fake."""
    from fastapi.testclient import TestClient
    from app.main import app
    from app.database.supabase_client import get_supabase, get_service_supabase
    from app.modules.auth.service import clear_auth_cache

    clear_auth_cache()
    app.dependency_overrides[get_supabase] = lambda: supabase
    app.dependency_overrides[get_service_supabase] = lambda: supabase
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
    clear_auth_cache()


@pytest.fixture
def production(supabase):
    """Production environment of organization O1, created by U1."""
    from app.modules.environments.commands import CreateEnvironmentCommand
    from app.modules.environments.usecases import CreateEnvironment

    return CreateEnvironment(supabase).execute(
        CreateEnvironmentCommand(name="Production", organization_id="O1", user_id="U1")
    )


@pytest.fixture
def user_headers(supabase, production):
    """U1 in O1, currently working in the Production environment."""
    supabase.add_user("token-u1", "U1", organization_id="O1", environment_id=production.id)
    return {"Authorization": "Bearer token-u1"}


@pytest.fixture
def other_org_headers(supabase):
    supabase.add_user("token-u2", "U2", organization_id="O2")
    return {"Authorization": "Bearer token-u2"}