from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from samurai_core import config
from samurai_core.snapshot import snapshot_fields

from .storage import StorageError, utcnow_iso

log = logging.getLogger(__name__)

_CLIENT = None
_UNIQUE_VIOLATION = "23505"


def get_supabase_client():
    global _CLIENT
    if _CLIENT is None:
        if not config.SUPABASE_URL or not config.SUPABASE_KEY:
            raise StorageError("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY are not set")
        from supabase import create_client

        _CLIENT = create_client(config.SUPABASE_URL.strip(), config.SUPABASE_KEY.strip())
    return _CLIENT


def _run(query, what: str):
    try:
        return query.execute()
    except Exception as exc:
        raise StorageError(f"supabase {what} failed: {exc}") from exc


def load_result(rid: str) -> Optional[Dict[str, Any]]:
    sb = get_supabase_client()
    res = _run(sb.table(config.RESULTS_TABLE).select("*").eq("id", rid).limit(1), "select result")
    rows = res.data or []
    return rows[0] if rows else None


def merge_result(rid: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
    sb = get_supabase_client()
    row = {"id": rid, **fields, "updated_at": utcnow_iso()}
    res = _run(sb.table(config.RESULTS_TABLE).upsert(row, on_conflict="id"), "upsert result")
    rows = res.data or []
    return rows[0] if rows else row


def finalize_result(rid: str, type_slug: str, vector: Mapping[str, Any]) -> Dict[str, bool]:
    sb = get_supabase_client()
    table = config.RESULTS_TABLE
    fields = snapshot_fields(type_slug, vector, utcnow_iso())

    # only rows that are still open get the snapshot
    res = _run(
        sb.table(table).update(fields).eq("id", rid).is_("finalized_at", "null"),
        "finalize update",
    )
    if res.data:
        return {"created": False, "updated": True}

    if load_result(rid) is not None:
        log.info("result %s already finalized; snapshot kept", rid)
        return {"created": False, "updated": False}

    try:
        sb.table(table).insert({"id": rid, **fields}).execute()
    except Exception as exc:
        if getattr(exc, "code", None) == _UNIQUE_VIOLATION:
            log.info("result %s created concurrently; treated as finalized", rid)
            return {"created": False, "updated": False}
        raise StorageError(f"supabase finalize insert failed: {exc}") from exc
    return {"created": True, "updated": False}


def insert_consult_intake(row: Mapping[str, Any]) -> Dict[str, Any]:
    sb = get_supabase_client()
    res = _run(sb.table(config.INTAKE_TABLE).insert(dict(row)), "insert intake")
    rows = res.data or []
    return rows[0] if rows else dict(row)


def load_consult_intake(token: str) -> Optional[Dict[str, Any]]:
    sb = get_supabase_client()
    res = _run(sb.table(config.INTAKE_TABLE).select("*").eq("token", token).limit(1), "select intake")
    rows = res.data or []
    return rows[0] if rows else None


def mark_booking(token: str, fields: Mapping[str, Any]) -> bool:
    sb = get_supabase_client()
    res = _run(sb.table(config.INTAKE_TABLE).update(dict(fields)).eq("token", token), "update intake")
    return bool(res.data)
