"""Category aggregation and 0..3 normalization of quiz answers."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .config import BANK_STRICT, ROUND_DIGITS, SCORE_MAX
from .question_bank import (
    CATEGORIES,
    MAPPING,
    QUESTIONS,
    SENTINEL_LABEL,
    check_bank,
    questions_by_id,
)
from .types import AnswerSubmission, CategoryVector, Question

log = logging.getLogger(__name__)


@dataclass
class ScoreDetail:
    question_id: int
    labels: List[str]
    score: float
    categories: List[str]


@dataclass
class ScoringResult:
    raw: Dict[str, float]
    normalized: CategoryVector
    details: List[ScoreDetail] = field(default_factory=list)


def clamp_score(value: Any) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(v):
        return 0.0
    return max(0.0, min(SCORE_MAX, v))


def empty_vector() -> Dict[str, float]:
    return {cat: 0.0 for cat in CATEGORIES}


def category_max(
    questions: Sequence[Question], mapping: Mapping[int, Sequence[str]]
) -> Dict[str, float]:
    """Theoretical maximum per category; depends on configuration only."""

    out = empty_vector()
    for q in questions:
        cats = mapping.get(q.id) or ()
        if not cats:
            continue
        share = q.max_points() / len(cats)
        for cat in cats:
            if cat in out:
                out[cat] += share
    return out


if BANK_STRICT:
    check_bank(QUESTIONS, MAPPING)

CATEGORY_MAX: Mapping[str, float] = category_max(QUESTIONS, MAPPING)
_BY_ID: Mapping[int, Question] = questions_by_id(QUESTIONS)


def _field(resp: Any, name: str, default: Any = None) -> Any:
    if isinstance(resp, Mapping):
        return resp.get(name, default)
    return getattr(resp, name, default)


def resolve_labels(selected: Iterable[Any]) -> List[str]:
    """Deduplicate labels and apply the sentinel rule."""

    labels: List[str] = []
    for raw in selected or []:
        label = str(raw)
        if label not in labels:
            labels.append(label)
    if SENTINEL_LABEL in labels and len(labels) > 1:
        return [SENTINEL_LABEL]
    return labels


def _question_score(question: Question, labels: Sequence[str]) -> float:
    total = 0.0
    for label in labels:
        pts = question.points_for(label)
        if pts is None:
            log.warning("Q%s: answer %r matches no option; scored as 0", question.id, label)
            continue
        total += pts
    return total


def compute(
    responses: Iterable[Any],
    questions: Optional[Sequence[Question]] = None,
    mapping: Optional[Mapping[int, Sequence[str]]] = None,
) -> ScoringResult:
    if questions is None and mapping is None:
        by_id, cat_map, maxima = _BY_ID, MAPPING, CATEGORY_MAX
    else:
        qs = list(questions if questions is not None else QUESTIONS)
        cat_map = mapping if mapping is not None else MAPPING
        by_id = questions_by_id(qs)
        maxima = category_max(qs, cat_map)

    raw = empty_vector()
    details: List[ScoreDetail] = []
    for resp in responses or []:
        try:
            qid = int(_field(resp, "question_id"))
        except (TypeError, ValueError):
            log.warning("submission without a usable question id skipped: %r", resp)
            continue
        cats = [c for c in (cat_map.get(qid) or ()) if c in raw]
        question = by_id.get(qid)
        if not cats or question is None:
            log.warning("Q%s has no category mapping; submission skipped", qid)
            details.append(ScoreDetail(qid, list(_field(resp, "selected") or []), 0.0, []))
            continue
        labels = resolve_labels(_field(resp, "selected") or [])
        score = _question_score(question, labels)
        share = score / len(cats)
        for cat in cats:
            raw[cat] += share
        details.append(ScoreDetail(qid, labels, score, cats))

    return ScoringResult(raw=raw, normalized=normalize(raw, maxima), details=details)


def normalize(raw: Mapping[str, float], maxima: Mapping[str, float]) -> CategoryVector:
    out: CategoryVector = {}
    for cat in CATEGORIES:
        top = float(maxima.get(cat, 0.0) or 0.0)
        value = (float(raw.get(cat, 0.0)) / top) * SCORE_MAX if top > 0 else 0.0
        out[cat] = round(clamp_score(value), ROUND_DIGITS)
    return out


def aggregate(
    responses: Iterable[Any],
    questions: Optional[Sequence[Question]] = None,
    mapping: Optional[Mapping[int, Sequence[str]]] = None,
) -> CategoryVector:
    """Reduce answer submissions to the six-key normalized category vector.

    Never raises on malformed submissions: unknown questions and unmatched
    labels contribute nothing and are logged.
    """

    return compute(responses, questions, mapping).normalized


def coerce_vector(values: Mapping[str, Any] | None) -> CategoryVector:
    """Six-key vector from arbitrary input; missing keys become 0, all clamped."""

    values = values or {}
    return {cat: clamp_score(values.get(cat, 0.0)) for cat in CATEGORIES}


def submissions_from_pattern(pattern: Mapping[Any, Any]) -> List[AnswerSubmission]:
    """Build submissions from a {"Q1": [...], "Q2": "..."} style answer pattern."""

    out: List[AnswerSubmission] = []
    for key, val in (pattern or {}).items():
        code = str(key).strip().upper().lstrip("Q")
        try:
            qid = int(code)
        except ValueError:
            log.warning("pattern key %r is not a question id; skipped", key)
            continue
        selected = [val] if isinstance(val, str) else list(val or [])
        out.append(AnswerSubmission(question_id=qid, selected=[str(s) for s in selected]))
    return out
