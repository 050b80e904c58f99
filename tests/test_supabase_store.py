from __future__ import annotations

import pytest

from api import storage, supabase_store
from samurai_core import config

VEC = {"delegation": 2.4, "org_drag": 1.4, "comm_gap": 1.8, "update_power": 2.7, "gen_gap": 1.8,
       "harassment_awareness": 1.8}


class _APIError(Exception):
    def __init__(self, code: str, message: str = "api error"):
        super().__init__(message)
        self.code = code


class _Result:
    def __init__(self, data):
        self.data = data


class _Query:
    def __init__(self, client, op: str, payload=None):
        self.client, self.op, self.payload = client, op, payload
        self.filters: list[tuple[str, str, object]] = []

    def eq(self, col, value):
        self.filters.append(("eq", col, value))
        return self

    def is_(self, col, value):
        self.filters.append(("is", col, value))
        return self

    def limit(self, n):
        return self

    def _matches(self, row) -> bool:
        for kind, col, value in self.filters:
            if kind == "eq" and row.get(col) != value:
                return False
            if kind == "is" and value == "null" and row.get(col) is not None:
                return False
        return True

    def execute(self):
        return self.client.run(self)


class _Table:
    def __init__(self, client):
        self.client = client

    def select(self, cols="*"):
        return _Query(self.client, "select")

    def update(self, fields):
        return _Query(self.client, "update", fields)

    def insert(self, row):
        return _Query(self.client, "insert", row)

    def upsert(self, row, on_conflict=None):
        return _Query(self.client, "upsert", row)


class _FakeSupabase:
    """Single results table keyed by id, enough for the finalize chain."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.insert_error: Exception | None = None
        self.ops: list[str] = []

    def table(self, name):
        assert name == config.RESULTS_TABLE
        return _Table(self)

    def run(self, q: _Query) -> _Result:
        self.ops.append(q.op)
        if q.op == "select":
            return _Result([dict(r) for r in self.rows.values() if q._matches(r)])
        if q.op == "update":
            hit = [r for r in self.rows.values() if q._matches(r)]
            for r in hit:
                r.update(q.payload)
            return _Result([dict(r) for r in hit])
        if q.op == "insert":
            if self.insert_error is not None:
                raise self.insert_error
            if q.payload["id"] in self.rows:
                raise _APIError(supabase_store._UNIQUE_VIOLATION, "duplicate key")
            self.rows[q.payload["id"]] = dict(q.payload)
            return _Result([dict(q.payload)])
        if q.op == "upsert":
            row = self.rows.setdefault(q.payload["id"], {"finalized_at": None})
            row.update(q.payload)
            return _Result([dict(row)])
        raise AssertionError(q.op)


@pytest.fixture
def sb(monkeypatch):
    fake = _FakeSupabase()
    monkeypatch.setattr(supabase_store, "_CLIENT", fake)
    return fake


def test_finalize_creates_missing_row(sb):
    assert supabase_store.finalize_result("r1", "sanada", VEC) == {"created": True, "updated": False}
    row = sb.rows["r1"]
    assert row["samurai_type_key"] == "sanada"
    assert row["finalized_at"]
    assert row["score_updatePower"] == 2.7
    assert sb.ops == ["update", "select", "insert"]


def test_finalize_completes_open_row(sb):
    sb.rows["r2"] = {"id": "r2", "email": "sato@example.com", "finalized_at": None}
    assert supabase_store.finalize_result("r2", "oda", VEC) == {"created": False, "updated": True}
    assert sb.rows["r2"]["samurai_type_key"] == "oda"
    assert sb.rows["r2"]["email"] == "sato@example.com"
    assert sb.ops == ["update"]


def test_finalize_keeps_finalized_row(sb):
    supabase_store.finalize_result("r3", "sanada", VEC)
    stamp = sb.rows["r3"]["finalized_at"]

    assert supabase_store.finalize_result("r3", "imagawa", dict(VEC, update_power=0.2)) == {
        "created": False, "updated": False,
    }
    assert sb.rows["r3"]["samurai_type_key"] == "sanada"
    assert sb.rows["r3"]["finalized_at"] == stamp


def test_finalize_insert_race_is_a_no_op(sb):
    sb.insert_error = _APIError(supabase_store._UNIQUE_VIOLATION, "duplicate key value")
    assert supabase_store.finalize_result("r4", "oda", VEC) == {"created": False, "updated": False}


def test_finalize_other_insert_errors_raise(sb):
    sb.insert_error = _APIError("42501", "permission denied")
    with pytest.raises(supabase_store.StorageError):
        supabase_store.finalize_result("r5", "oda", VEC)


def test_storage_dispatches_to_supabase(sb, monkeypatch):
    monkeypatch.setattr(config, "STORAGE_BACKEND", "supabase")
    assert storage.finalize_result("r6", "tokugawa", VEC)["created"] is True
    storage.merge_result("r6", {"company_size": "51-100", "samurai_type_key": "oda"})
    row = storage.load_result("r6")
    assert row["samurai_type_key"] == "tokugawa"
    assert row["company_size"] == "51-100"


def test_missing_credentials_raise_storage_error(monkeypatch):
    monkeypatch.setattr(supabase_store, "_CLIENT", None)
    monkeypatch.setattr(config, "SUPABASE_URL", "")
    with pytest.raises(supabase_store.StorageError):
        supabase_store.get_supabase_client()
