"""
Pytest configuration and fixtures for ERDoc tests.

FakeSupabase is an in-memory stand-in for the PostgREST query builder: enough
of select/insert/update/upsert/delete and the filters used by erdoc.db.client
to run the routes end to end without a database.
"""

import itertools
import os
import uuid
from copy import deepcopy

import pytest

# Set test environment before importing erdoc modules
os.environ["ERDOC_ENV"] = "development"
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-key")
os.environ.pop("SLACK_WEBHOOK_URL", None)

from fastapi.testclient import TestClient
from supabase import PostgrestAPIError

from erdoc.web.app import app
from erdoc.web.auth import AuthenticatedUser, get_current_user, get_db

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


# ---------------------------------------------------------------------------
# FakeSupabase
# ---------------------------------------------------------------------------


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """One fluent query against a FakeSupabase table."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.order_by = None
        self.max_rows = None
        self.single = False

    # Operations -----------------------------------------------------------

    def select(self, columns="*"):
        self.op = "select"
        return self

    def insert(self, data):
        self.op, self.payload = "insert", data
        return self

    def update(self, data):
        self.op, self.payload = "update", data
        return self

    def upsert(self, data, on_conflict=None, **kwargs):
        self.op, self.payload, self.on_conflict = "upsert", data, on_conflict
        return self

    def delete(self):
        self.op = "delete"
        return self

    # Filters ----------------------------------------------------------------

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def is_(self, column, value):
        assert value == "null"
        self.filters.append(lambda row: row.get(column) is None)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    def maybe_single(self):
        self.single = True
        return self

    # Execution --------------------------------------------------------------

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        if (self.table_name, self.op) in self.db.fail_on:
            raise PostgrestAPIError({"message": "simulated failure", "code": "500", "hint": "", "details": ""})

        rows = self.db.tables.setdefault(self.table_name, [])

        if self.op == "select":
            result = [deepcopy(r) for r in rows if self._matches(r)]
            if self.order_by:
                column, desc = self.order_by
                result.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
            if self.max_rows is not None:
                result = result[: self.max_rows]
            if self.single:
                return FakeResponse(result[0]) if result else None
            return FakeResponse(result)

        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self.db.add_row(self.table_name, item) for item in items]
            return FakeResponse(deepcopy(created))

        if self.op == "upsert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = self.on_conflict.split(",") if self.on_conflict else ["id"]
            result = []
            for item in items:
                existing = next(
                    (r for r in rows if all(r.get(k) == item.get(k) for k in keys)),
                    None,
                )
                if existing:
                    existing.update(item)
                    result.append(existing)
                else:
                    result.append(self.db.add_row(self.table_name, item))
            return FakeResponse(deepcopy(result))

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(deepcopy(row))
            return FakeResponse(updated)

        if self.op == "delete":
            deleted = [r for r in rows if self._matches(r)]
            self.db.tables[self.table_name] = [r for r in rows if not self._matches(r)]
            return FakeResponse(deepcopy(deleted))

        raise AssertionError(f"Unsupported op {self.op}")


class FakeRpc:
    def __init__(self, db, name, params):
        self.db, self.name, self.params = db, name, params

    def execute(self):
        if ("rpc", self.name) in self.db.fail_on:
            raise PostgrestAPIError({"message": "rpc failed", "code": "500", "hint": "", "details": ""})
        self.db.rpc_calls.append((self.name, self.params))
        return FakeResponse(f"audit-{len(self.db.rpc_calls)}")


class FakeSupabase:
    """In-memory tables plus a record of RPC calls."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.rpc_calls: list[tuple[str, dict]] = []
        self.fail_on: set[tuple[str, str]] = set()
        self._clock = itertools.count(1)

    def add_row(self, table: str, item: dict) -> dict:
        row = {
            "id": str(uuid.uuid4()),
            "created_at": f"2026-01-01T00:00:{next(self._clock):02d}+00:00",
            **item,
        }
        self.tables.setdefault(table, []).append(row)
        return row

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, function_name: str, params: dict) -> FakeRpc:
        return FakeRpc(self, function_name, params)

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_db():
    return FakeSupabase()


def seed_member(db: FakeSupabase, user_id: str = USER_ID, step: str | None = "started") -> dict:
    """Membership plus its self person."""
    membership = db.add_row("memberships", {
        "user_id": user_id,
        "plan_type": "family",
        "status": "active",
        "onboarding_step": step,
        "vitals_kit_status": None,
    })
    person = db.add_row("people", {
        "membership_id": membership["id"],
        "first_name": "Dana",
        "last_name": "Reyes",
        "date_of_birth": "1985-04-12",
        "relationship": "self",
        "phone": "(801) 555-0100",
        "intake_complete": False,
    })
    return {"membership": membership, "person": person}


@pytest.fixture
def member(fake_db):
    return seed_member(fake_db)


@pytest.fixture
def client(fake_db):
    """TestClient acting as USER_ID against fake_db."""
    app.dependency_overrides[get_current_user] = lambda: AuthenticatedUser(
        id=USER_ID, email="dana@example.com", access_token="test-token"
    )
    app.dependency_overrides[get_db] = lambda: fake_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def set_step(db: FakeSupabase, membership_id: str, step: str | None) -> None:
    for row in db.rows("memberships"):
        if row["id"] == membership_id:
            row["onboarding_step"] = step


def get_step(db: FakeSupabase, membership_id: str) -> str | None:
    return next(r for r in db.rows("memberships") if r["id"] == membership_id)["onboarding_step"]
