"""Persistence for quiz results and consultation intakes.

Two backends share one interface: JSON files under ``DATA_DIR`` (default, used
by tests and local runs) and Supabase tables when ``STORAGE_BACKEND=supabase``.
The file store serializes read-check-write under a process lock, which is what
makes ``finalize_result`` write-once within a single API process.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from samurai_core import config
from samurai_core.snapshot import SNAPSHOT_KEYS, snapshot_fields

log = logging.getLogger(__name__)

DATA_ROOT = Path(os.getenv("DATA_DIR", config.DATA_DIR)).resolve()
RESULTS_DIR = DATA_ROOT / "results"
INTAKE_PATH = DATA_ROOT / "consult_intake.json"

_LOCK = threading.Lock()
_RID_RX = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class StorageError(RuntimeError):
    """Backend failure (unreachable database, unreadable file)."""


def valid_rid(rid: Any) -> bool:
    return isinstance(rid, str) and bool(_RID_RX.match(rid))


def new_rid() -> str:
    return uuid.uuid4().hex


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _remote() -> bool:
    return config.STORAGE_BACKEND == "supabase"


def _ensure_dirs() -> None:
    RESULTS_DIR.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise StorageError(f"unreadable store file {path.name}: {exc}") from exc


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False), encoding="utf-8")
    tmp.replace(path)


def _result_path(rid: str) -> Path:
    if not valid_rid(rid):
        raise ValueError(f"invalid result id: {rid!r}")
    return RESULTS_DIR / f"{rid}.json"


# ---- results ----

def load_result(rid: str) -> Optional[Dict[str, Any]]:
    if _remote():
        from . import supabase_store
        return supabase_store.load_result(rid)
    return _read_json(_result_path(rid), None)


def merge_result(rid: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Create or update a result record (last write wins); never touches the finalized snapshot."""

    clean = {k: v for k, v in fields.items() if k != "id" and k not in SNAPSHOT_KEYS}
    if _remote():
        from . import supabase_store
        return supabase_store.merge_result(rid, clean)

    path = _result_path(rid)
    _ensure_dirs()
    with _LOCK:
        record = _read_json(path, None) or {"id": rid, "created_at": utcnow_iso(), "finalized_at": None}
        record.update(clean)
        record["updated_at"] = utcnow_iso()
        _write_json(path, record)
    return record


def finalize_result(rid: str, type_slug: str, vector: Mapping[str, Any]) -> Dict[str, bool]:
    """Write the type/score snapshot once.

    Returns ``{"created": True, "updated": False}`` for a new record,
    ``{"created": False, "updated": True}`` when an unfinalized record was
    completed and ``{"created": False, "updated": False}`` when the record was
    already finalized (the stored snapshot is left as it was).
    """

    if _remote():
        from . import supabase_store
        return supabase_store.finalize_result(rid, type_slug, vector)

    path = _result_path(rid)
    _ensure_dirs()
    with _LOCK:
        record = _read_json(path, None)
        if record is not None and record.get("finalized_at"):
            log.info("result %s already finalized; snapshot kept", rid)
            return {"created": False, "updated": False}
        now = utcnow_iso()
        fields = snapshot_fields(type_slug, vector, now)
        if record is None:
            record = {"id": rid, "created_at": now, **fields}
            _write_json(path, record)
            return {"created": True, "updated": False}
        record.update(fields)
        record["updated_at"] = now
        _write_json(path, record)
    return {"created": False, "updated": True}


# ---- consultation intake ----

def insert_consult_intake(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Store a consultation request; the returned row carries a booking token."""

    row = dict(payload)
    row.setdefault("token", uuid.uuid4().hex)
    row.setdefault("status", "requested")
    row.setdefault("created_at", utcnow_iso())
    if _remote():
        from . import supabase_store
        return supabase_store.insert_consult_intake(row)

    with _LOCK:
        intakes: Dict[str, Dict[str, Any]] = _read_json(INTAKE_PATH, {})
        intakes[row["token"]] = row
        _write_json(INTAKE_PATH, intakes)
    return row


def load_consult_intake(token: str) -> Optional[Dict[str, Any]]:
    if _remote():
        from . import supabase_store
        return supabase_store.load_consult_intake(token)
    intakes: Dict[str, Dict[str, Any]] = _read_json(INTAKE_PATH, {})
    return intakes.get(token)


def mark_booking(token: str, updates: Mapping[str, Any]) -> bool:
    """Flag an intake as booked. False when the token is unknown."""

    fields = dict(updates)
    fields["status"] = "booked"
    fields["booked_at"] = utcnow_iso()
    if _remote():
        from . import supabase_store
        return supabase_store.mark_booking(token, fields)

    with _LOCK:
        intakes: Dict[str, Dict[str, Any]] = _read_json(INTAKE_PATH, {})
        if token not in intakes:
            return False
        intakes[token].update(fields)
        _write_json(INTAKE_PATH, intakes)
    return True
