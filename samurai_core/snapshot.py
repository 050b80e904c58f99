# samurai_core/snapshot.py
from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional

from .question_bank import CATEGORIES, CATEGORY_LABELS
from .judge import TYPE_LABELS, TYPE_LABELS_JA, type_key
from .scoring import clamp_score

# legacy column names written by the first release
_LEGACY_COLUMNS: Mapping[str, str] = {
    "delegation": "score_delegation",
    "org_drag": "score_orgDrag",
    "comm_gap": "score_commGap",
    "update_power": "score_updatePower",
    "gen_gap": "score_genGap",
    "harassment_awareness": "score_harassmentRisk",
}
_KEY_ALIASES: Mapping[str, str] = {
    "orgDrag": "org_drag",
    "commGap": "comm_gap",
    "updatePower": "update_power",
    "genGap": "gen_gap",
    "harassmentAwareness": "harassment_awareness",
    "harassmentRisk": "harassment_awareness",
    "harassment_risk": "harassment_awareness",
}

# columns owned by finalize; plain record updates must not write them
SNAPSHOT_KEYS = frozenset(
    ("samurai_type_key", "samurai_type_ja", "categories", "score_version", "finalized_at")
    + tuple(_LEGACY_COLUMNS.values())
)


def category_rows(vector: Mapping[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"key": cat, "label": CATEGORY_LABELS[cat], "score": clamp_score(vector.get(cat, 0.0))}
        for cat in CATEGORIES
    ]


def rows_to_vector(rows: Any) -> Dict[str, float]:
    found: Dict[str, float] = {}
    for r in rows or []:
        if not isinstance(r, Mapping):
            continue
        k = str(r.get("key") or "")
        k = _KEY_ALIASES.get(k, k)
        if k:
            found[k] = clamp_score(r.get("score"))
    return {cat: found.get(cat, 0.0) for cat in CATEGORIES}


def normalize_rows(rows: Any) -> List[Dict[str, Any]]:
    """Fixed order, clamped scores, missing keys filled with 0."""
    return category_rows(rows_to_vector(rows))


def _from_columns(record: Mapping[str, Any]) -> Dict[str, float]:
    return {cat: clamp_score(record.get(col)) for cat, col in _LEGACY_COLUMNS.items()}


def read_snapshot(record: Mapping[str, Any] | None) -> Dict[str, Any]:
    record = record or {}
    rows = record.get("categories")
    vector = rows_to_vector(rows) if isinstance(rows, list) else _from_columns(record)
    key = type_key(record.get("samurai_type_key")) or type_key(record.get("samurai_type_ja")) \
        or type_key(record.get("samurai_type"))
    return {
        "categories": category_rows(vector),
        "vector": vector,
        "type": key,
        "type_label": TYPE_LABELS.get(key) if key else None,
        "type_label_ja": TYPE_LABELS_JA.get(key) if key else None,
        "finalized": bool(record.get("finalized_at")),
    }


def snapshot_fields(type_slug: str, vector: Mapping[str, Any], finalized_at: Optional[str]) -> Dict[str, Any]:
    """Columns written by finalize; includes the legacy per-category columns."""

    rows = category_rows(vector)
    fields: Dict[str, Any] = {
        "samurai_type_key": type_slug,
        "samurai_type_ja": TYPE_LABELS_JA.get(type_slug),
        "categories": rows,
        "score_version": "v2",
        "finalized_at": finalized_at,
    }
    for row in rows:
        fields[_LEGACY_COLUMNS[row["key"]]] = row["score"]
    return fields
