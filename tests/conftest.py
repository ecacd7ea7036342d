"""
Shared test fixtures.

The mock Supabase client keeps table rows in memory and applies filters,
so services can be exercised end to end without a database.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are loaded at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("EDGE_WEBHOOK_SECRET", "test-webhook-secret")

import copy
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Generator, Optional

import pytest

WEBHOOK_SECRET = os.environ["EDGE_WEBHOOK_SECRET"]


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseError(Exception):
    """Raised by the mock when a failure was injected."""
    pass


class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: Optional[int] = None):
        self.data = data if data is not None else []
        if count is not None:
            self.count = count
        else:
            self.count = len(self.data) if isinstance(self.data, list) else (1 if self.data else 0)


class MockSupabaseQuery:
    """Chainable query over one in-memory table."""

    def __init__(self, client: "MockSupabaseClient", table: str, operation: str, payload: Any = None, **options):
        self._client = client
        self._table = table
        self._operation = operation
        self._payload = payload
        self._options = options
        self._filters: list = []
        self._order: list = []
        self._range: Optional[tuple[int, int]] = None
        self._limit: Optional[int] = None
        self._is_single = False
        self._negate_next = False

    # Filters

    def _add_filter(self, predicate):
        if self._negate_next:
            self._negate_next = False
            self._filters.append(lambda row: not predicate(row))
        else:
            self._filters.append(predicate)
        return self

    def eq(self, column, value):
        return self._add_filter(lambda row: row.get(column) == value)

    def neq(self, column, value):
        return self._add_filter(lambda row: row.get(column) != value)

    def in_(self, column, values):
        allowed = list(values)
        return self._add_filter(lambda row: row.get(column) in allowed)

    def is_(self, column, value):
        if value == "null":
            return self._add_filter(lambda row: row.get(column) is None)
        return self._add_filter(lambda row: row.get(column) is value)

    @property
    def not_(self):
        self._negate_next = True
        return self

    # Modifiers

    def select(self, *args, **kwargs):
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order.append((column, desc))
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def single(self):
        self._is_single = True
        return self

    def _matches(self, row: dict) -> bool:
        return all(predicate(row) for predicate in self._filters)

    def execute(self) -> MockSupabaseResponse:
        self._client._record(self._table, self._operation, self._payload)
        rows = self._client.tables[self._table]

        if self._operation == "select":
            found = [copy.deepcopy(r) for r in rows if self._matches(r)]
            for column, desc in reversed(self._order):
                found.sort(key=lambda r: (r.get(column) is None, str(r.get(column))), reverse=desc)
            total = len(found)
            if self._range:
                found = found[self._range[0]:self._range[1] + 1]
            if self._limit is not None:
                found = found[:self._limit]
            if self._is_single:
                return MockSupabaseResponse(data=found[0] if found else None, count=total)
            return MockSupabaseResponse(data=found, count=total)

        if self._operation == "insert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = []
            now = datetime.utcnow().isoformat() + "Z"
            for item in payload:
                row = copy.deepcopy(item)
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_at", now)
                row.setdefault("updated_at", now)
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return MockSupabaseResponse(data=inserted)

        if self._operation == "upsert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            conflict = [c.strip() for c in self._options.get("on_conflict", "id").split(",")]
            written = []
            for item in payload:
                existing = next(
                    (r for r in rows if all(r.get(c) == item.get(c) for c in conflict)),
                    None
                )
                if existing is not None:
                    existing.update(copy.deepcopy(item))
                    written.append(copy.deepcopy(existing))
                else:
                    row = copy.deepcopy(item)
                    row.setdefault("id", str(uuid.uuid4()))
                    rows.append(row)
                    written.append(copy.deepcopy(row))
            return MockSupabaseResponse(data=written)

        if self._operation == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self._payload))
                    updated.append(copy.deepcopy(row))
            return MockSupabaseResponse(data=updated)

        if self._operation == "delete":
            deleted = [r for r in rows if self._matches(r)]
            self._client.tables[self._table] = [r for r in rows if not self._matches(r)]
            return MockSupabaseResponse(data=copy.deepcopy(deleted))

        raise ValueError(f"Unknown operation {self._operation}")


class MockSupabaseTable:
    """Entry point of table queries."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self._client = client
        self._name = name

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._client, self._name, "select")

    def insert(self, data):
        return MockSupabaseQuery(self._client, self._name, "insert", data)

    def upsert(self, data, on_conflict: str = "id", **kwargs):
        return MockSupabaseQuery(self._client, self._name, "upsert", data, on_conflict=on_conflict)

    def update(self, data):
        return MockSupabaseQuery(self._client, self._name, "update", data)

    def delete(self):
        return MockSupabaseQuery(self._client, self._name, "delete")


class MockRpcCall:
    def __init__(self, client: "MockSupabaseClient", name: str, params: dict):
        self._client = client
        self._name = name
        self._params = params

    def execute(self) -> MockSupabaseResponse:
        self._client.rpc_calls.append((self._name, self._params))
        if self._name in self._client.rpc_failures:
            raise MockSupabaseError(f"rpc {self._name} failed")
        return MockSupabaseResponse(data=None)


class MockStorageBucket:
    def __init__(self, client: "MockSupabaseClient", bucket: str):
        self._client = client
        self._bucket = bucket

    def upload(self, path: str, content: bytes, *args, **kwargs):
        if self._client.storage_fails:
            raise MockSupabaseError("storage unavailable")
        self._client.files[(self._bucket, path)] = content
        return {"Key": f"{self._bucket}/{path}"}

    def download(self, path: str) -> bytes:
        if (self._bucket, path) not in self._client.files:
            raise MockSupabaseError(f"object {path} not found")
        return self._client.files[(self._bucket, path)]


class MockStorage:
    def __init__(self, client: "MockSupabaseClient"):
        self._client = client

    def from_(self, bucket: str) -> MockStorageBucket:
        return MockStorageBucket(self._client, bucket)


class MockSupabaseClient:
    """
    Mock Supabase client with in-memory tables.

    Usage:
        mock_supabase.set_table_data("import_batches", [...])
        mock_supabase.fail_on("brand_category_mappings", "insert", call_number=3)
    """

    def __init__(self):
        self.tables: dict[str, list[dict]] = defaultdict(list)
        self.calls: list[tuple[str, str, Any]] = []
        self.rpc_calls: list[tuple[str, dict]] = []
        self.rpc_failures: set[str] = set()
        self.files: dict[tuple[str, str], bytes] = {}
        self.storage_fails = False
        self.storage = MockStorage(self)
        self._failures: dict[tuple[str, str], set[int]] = defaultdict(set)
        self._call_counts: dict[tuple[str, str], int] = defaultdict(int)

    def set_table_data(self, table_name: str, data: list):
        """Configure rows of a table."""
        self.tables[table_name] = copy.deepcopy(data)

    def table(self, name: str) -> MockSupabaseTable:
        return MockSupabaseTable(self, name)

    def rpc(self, name: str, params: Optional[dict] = None) -> MockRpcCall:
        return MockRpcCall(self, name, params or {})

    def fail_on(self, table: str, operation: str, call_number: int = 1):
        """Make the n-th `operation` on `table` raise."""
        self._failures[(table, operation)].add(call_number)

    def _record(self, table: str, operation: str, payload: Any):
        key = (table, operation)
        self._call_counts[key] += 1
        self.calls.append((table, operation, copy.deepcopy(payload)))
        if self._call_counts[key] in self._failures[key]:
            raise MockSupabaseError(f"{operation} on {table} failed")

    def calls_for(self, table: str, operation: str) -> list:
        """Payloads of every `operation` issued on `table`, in order."""
        return [payload for t, op, payload in self.calls if t == table and op == operation]

    def rpc_names(self) -> list[str]:
        return [name for name, _ in self.rpc_calls]


# ===================
# FIXTURES
# ===================

SERVICE_MODULES = [
    "services.diff_engine",
    "services.import_batch_service",
    "services.template_service",
    "services.audit_session",
    "services.import_executor",
    "services.process_import_service",
    "services.bulk_replace_service",
]

SINGLETONS = [
    ("services.diff_engine", "_repository"),
    ("services.import_batch_service", "_import_batch_service"),
    ("services.template_service", "_template_service"),
    ("services.process_import_service", "_process_import_service"),
    ("services.bulk_replace_service", "_bulk_replace_service"),
    ("services.draft_store", "_draft_store"),
    ("services.import_wizard_service", "_import_wizard_service"),
]


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("import_batches", [
                {"id": "1", "status": "pending", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase, monkeypatch) -> Generator:
    """
    Patch the database client with mock and reset service singletons.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("import_batches", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    import importlib

    monkeypatch.setattr("config.database.get_supabase_client", lambda: mock_supabase)
    for module_name in SERVICE_MODULES:
        monkeypatch.setattr(f"{module_name}.get_supabase_client", lambda: mock_supabase)
    for module_name, attr in SINGLETONS:
        monkeypatch.setattr(importlib.import_module(module_name), attr, None)

    yield mock_supabase


@pytest.fixture
def webhook_headers() -> dict:
    """Headers of an authenticated function call."""
    return {"Authorization": f"Bearer {WEBHOOK_SECRET}"}


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("import_batches", [...])
            response = test_client_with_mock_db.get("/api/imports/batches")
    """
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
