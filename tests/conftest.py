"""Shared pytest fixtures: an in-memory Supabase table store and an authenticated API client."""

from __future__ import annotations

import json
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from rbac_console.core.dependencies import get_auth_service, get_current_user
from rbac_console.core.rate_limit import limiter
from rbac_console.database.supabase_client import get_supabase
from rbac_console.main import app
from rbac_console.modules.assistant.gemini_client import GeminiClient, get_gemini_client
from rbac_console.modules.auth.service import AuthService, clear_user_cache
from rbac_console.scripts.seed_rbac import seed

ADMIN_USER = {
    "id": "7d3c1f0e-8a51-4d8e-9f7a-3b2c1d0e9f8a",
    "email": "admin@example.com",
    "user_metadata": {},
    "app_metadata": {},
}

# Embedded resource name -> foreign key column on the referencing table
_FOREIGN_KEYS = {"roles": "role_id", "permissions": "permission_id"}
_UNIQUE = {
    "permissions": ("name",),
    "roles": ("name",),
    "role_permissions": ("role_id", "permission_id"),
}
_CASCADES = {
    "roles": [("role_permissions", "role_id"), ("user_roles", "role_id")],
    "permissions": [("role_permissions", "permission_id")],
}
_CONSTRAINT_NAMES = {
    "permissions": "permissions_name_key",
    "roles": "roles_name_key",
    "role_permissions": "role_permissions_pkey",
}


def api_error(code: str, message: str, details: str = "") -> APIError:
    return APIError({"message": message, "code": code, "details": details, "hint": None})


def _like_to_regex(pattern: str) -> re.Pattern:
    parts, escaped = [], False
    for ch in pattern:
        if escaped:
            parts.append(re.escape(ch))
            escaped = False
        elif ch == "\\":
            escaped = True
        else:
            parts.append(".*" if ch == "%" else "." if ch == "_" else re.escape(ch))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def _split_columns(columns: str) -> list[str]:
    """Split a select string on commas outside of embedded resource parentheses."""
    tokens, depth, current = [], 0, ""
    for ch in columns:
        if ch == "," and depth == 0:
            tokens.append(current.strip())
            current = ""
            continue
        depth += ch == "("
        depth -= ch == ")"
        current += ch
    if current.strip():
        tokens.append(current.strip())
    return tokens


class FakeResponse:
    def __init__(self, data: list[dict[str, Any]], count: int | None = None) -> None:
        self.data = data
        self.count = count


class FakeQuery:
    """Chainable stand-in for the postgrest request builder."""

    def __init__(self, db: FakeSupabase, table: str) -> None:
        self.db = db
        self.table_name = table
        self._action = "select"
        self._columns = "*"
        self._count: str | None = None
        self._head = False
        self._filters: list[Callable[[dict[str, Any]], bool]] = []
        self._order: list[tuple[str, bool]] = []
        self._range: tuple[int, int] | None = None
        self._limit: int | None = None
        self._payload: Any = None
        self._on_conflict: str | None = None

    def select(self, columns: str = "*", count: str | None = None, head: bool = False) -> FakeQuery:
        self._columns = columns
        self._count = count
        self._head = head
        return self

    def insert(self, payload: Any) -> FakeQuery:
        self._action, self._payload = "insert", payload
        return self

    def upsert(self, payload: Any, on_conflict: str | None = None) -> FakeQuery:
        self._action, self._payload, self._on_conflict = "upsert", payload, on_conflict
        return self

    def update(self, payload: dict[str, Any]) -> FakeQuery:
        self._action, self._payload = "update", payload
        return self

    def delete(self) -> FakeQuery:
        self._action = "delete"
        return self

    def eq(self, column: str, value: Any) -> FakeQuery:
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column: str, value: Any) -> FakeQuery:
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column: str, values: list[Any]) -> FakeQuery:
        allowed = set(values)
        self._filters.append(lambda row: row.get(column) in allowed)
        return self

    def ilike(self, column: str, pattern: str) -> FakeQuery:
        regex = _like_to_regex(pattern)
        self._filters.append(lambda row: regex.fullmatch(row.get(column) or "") is not None)
        return self

    def or_(self, expression: str) -> FakeQuery:
        checks = []
        for clause in expression.split(","):
            column, operator, pattern = clause.split(".", 2)
            assert operator == "ilike", operator
            checks.append((column, _like_to_regex(pattern)))
        self._filters.append(
            lambda row: any(regex.fullmatch(row.get(column) or "") for column, regex in checks)
        )
        return self

    def order(self, column: str, desc: bool = False) -> FakeQuery:
        self._order.append((column, desc))
        return self

    def range(self, start: int, end: int) -> FakeQuery:
        self._range = (start, end)
        return self

    def limit(self, size: int) -> FakeQuery:
        self._limit = size
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(check(row) for check in self._filters)

    def _project(self, row: dict[str, Any]) -> dict[str, Any] | None:
        projected: dict[str, Any] = {}
        for token in _split_columns(self._columns):
            if "(" not in token:
                if token == "*":
                    projected.update(row)
                else:
                    projected[token] = row.get(token)
                continue
            name, inner = token.split("(", 1)
            required = name.endswith("!inner")
            name = name.replace("!inner", "").strip()
            target = self.db.find(name, "id", row.get(_FOREIGN_KEYS[name]))
            if target is None:
                if required:
                    return None
                projected[name] = None
                continue
            columns = [c.strip() for c in inner.rstrip(")").split(",")]
            projected[name] = dict(target) if columns == ["*"] else {c: target.get(c) for c in columns}
        return projected

    def _select(self) -> FakeResponse:
        rows = [row for row in self.db.tables.setdefault(self.table_name, []) if self._matches(row)]
        for column, desc in reversed(self._order):
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        projected = [p for p in (self._project(row) for row in rows) if p is not None]
        count = len(projected) if self._count else None
        if self._range:
            projected = projected[self._range[0]:self._range[1] + 1]
        if self._limit is not None:
            projected = projected[:self._limit]
        return FakeResponse([] if self._head else projected, count)

    def execute(self) -> FakeResponse:
        error = self.db.errors.get((self.table_name, self._action))
        if error is not None:
            raise error
        if self._action == "select":
            return self._select()
        if self._action in ("insert", "upsert"):
            rows = self._payload if isinstance(self._payload, list) else [self._payload]
            return FakeResponse([self.db.insert(self.table_name, row, upsert=self._action == "upsert") for row in rows])
        if self._action == "update":
            return FakeResponse(self.db.update(self.table_name, self._matches, self._payload))
        return FakeResponse(self.db.delete(self.table_name, self._matches))


class FakeSupabase:
    """In-memory tables honouring the RBAC schema's unique keys and cascades."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            "permissions": [],
            "roles": [],
            "role_permissions": [],
            "user_roles": [],
        }
        self.errors: dict[tuple[str, str], Exception] = {}
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def fail(self, table: str, action: str, error: Exception) -> None:
        self.errors[(table, action)] = error

    def _tick(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def find(self, table: str, column: str, value: Any) -> dict[str, Any] | None:
        return next((row for row in self.tables.get(table, []) if row.get(column) == value), None)

    def _conflict(self, table: str, row: dict[str, Any], ignore: dict[str, Any] | None = None) -> dict[str, Any] | None:
        keys = _UNIQUE.get(table)
        if not keys:
            return None
        for existing in self.tables[table]:
            if existing is not ignore and all(existing.get(k) == row.get(k) for k in keys):
                return existing
        return None

    def insert(self, table: str, row: dict[str, Any], upsert: bool = False) -> dict[str, Any]:
        row = dict(row)
        existing = self._conflict(table, row)
        if existing is not None:
            if upsert:
                return dict(existing)
            raise api_error(
                "23505",
                "duplicate key value violates unique constraint",
                f'Key already exists. constraint "{_CONSTRAINT_NAMES[table]}"',
            )
        for target, column in _FOREIGN_KEYS.items():
            if column in row and self.find(target, "id", row[column]) is None:
                raise api_error("23503", "insert or update violates foreign key constraint")
        if table in ("permissions", "roles"):
            row.setdefault("id", str(uuid.uuid4()))
        if table == "permissions":
            row.setdefault("description", None)
        row.setdefault("created_at", self._tick())
        self.tables.setdefault(table, []).append(row)
        return dict(row)

    def update(self, table: str, predicate: Callable, changes: dict[str, Any]) -> list[dict[str, Any]]:
        updated = []
        for row in self.tables.get(table, []):
            if predicate(row):
                candidate = {**row, **changes}
                if self._conflict(table, candidate, ignore=row) is not None:
                    raise api_error("23505", "duplicate key value violates unique constraint",
                                    f'constraint "{_CONSTRAINT_NAMES[table]}"')
                row.update(changes)
                updated.append(dict(row))
        return updated

    def delete(self, table: str, predicate: Callable) -> list[dict[str, Any]]:
        removed = [row for row in self.tables.get(table, []) if predicate(row)]
        self.tables[table] = [row for row in self.tables.get(table, []) if not predicate(row)]
        for row in removed:
            for child, column in _CASCADES.get(table, []):
                self.tables[child] = [r for r in self.tables.get(child, []) if r.get(column) != row["id"]]
        return [dict(row) for row in removed]

    # Convenience lookups for assertions
    def names(self, table: str) -> list[str]:
        return sorted(row["name"] for row in self.tables[table])

    def id_of(self, table: str, name: str) -> str:
        return self.find(table, "name", name)["id"]

    def permissions_of(self, role_name: str) -> list[str]:
        role_id = self.id_of("roles", role_name)
        ids = {rp["permission_id"] for rp in self.tables["role_permissions"] if rp["role_id"] == role_id}
        return sorted(p["name"] for p in self.tables["permissions"] if p["id"] in ids)


def model_reply(command_type: str, parameters: dict[str, Any], confidence: float = 0.9, **extra: Any) -> str:
    """Text shaped like a Gemini completion wrapping the JSON answer."""
    payload = {"type": command_type, "parameters": parameters, "confidence": confidence, **extra}
    return f"```json\n{json.dumps(payload)}\n```"


@pytest.fixture()
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture()
def seeded_db(fake_db: FakeSupabase) -> FakeSupabase:
    """Database holding the default permission matrix."""
    seed(fake_db)
    return fake_db


@pytest.fixture()
def gemini() -> MagicMock:
    client = MagicMock(spec=GeminiClient)
    client.available = True
    client.model = "gemini-1.5-flash"
    client.generate = AsyncMock(return_value=model_reply("unknown", {}, 0.1))
    return client


@pytest.fixture()
def client(seeded_db: FakeSupabase, gemini: MagicMock) -> TestClient:
    app.dependency_overrides[get_supabase] = lambda: seeded_db
    app.dependency_overrides[get_current_user] = lambda: ADMIN_USER
    app.dependency_overrides[get_gemini_client] = lambda: gemini
    limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    clear_user_cache()


@pytest.fixture()
def auth_backend() -> MagicMock:
    """Supabase client whose ``auth`` namespace is scripted per test."""
    return MagicMock()


@pytest.fixture()
def anonymous_client(seeded_db: FakeSupabase, auth_backend: MagicMock) -> TestClient:
    """Client whose requests go through the real auth dependency."""
    app.dependency_overrides[get_supabase] = lambda: seeded_db
    app.dependency_overrides[get_auth_service] = lambda: AuthService(auth_backend)
    limiter.reset()
    clear_user_cache()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    clear_user_cache()
