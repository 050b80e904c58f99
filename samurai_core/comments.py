from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from . import config as cfg_defaults
from .judge import TYPE_LABELS
from .question_bank import CATEGORIES, CATEGORY_LABELS
from .scoring import coerce_vector

log = logging.getLogger(__name__)


_STRENGTHS: Dict[str, str] = {
    "delegation": (
        "As a {leader}, your strength is {label}: you show what is delegated and on what grounds. "
        "Make the follow-up after delegating lighter and the team will run on its own."
    ),
    "org_drag": (
        "You dislike needless stops and don't crush new sprouts early. "
        "Fix a budget for experiments so improvement keeps turning."
    ),
    "comm_gap": (
        "Your intent reaches people across roles and generations. "
        "Share a common 'ask back' template so misunderstandings don't recur."
    ),
    "update_power": (
        "You are positive about new tools and pick where to use them well. "
        "Visualize the effect on one page to make adoption more convincing."
    ),
    "gen_gap": (
        "You read generational differences flexibly and can rephrase values. "
        "Keep acting as the translator between them."
    ),
    "harassment_awareness": (
        "You are aware of the weight of words, which keeps psychological safety intact."
    ),
}

_IMPROVEMENTS: Dict[str, str] = {
    "delegation": (
        "The lines of authority are vague and decisions bounce back. Put the why, criteria, "
        "deadline and minimum pass on one page to cut re-submissions."
    ),
    "org_drag": (
        "Precedent weighs heavily and challenges shrink. Decide the amount and period for small "
        "trials up front and share cases regularly."
    ),
    "comm_gap": (
        "'I thought I explained it' happens often. Talk in the order goal, status, constraints, "
        "criteria and ask the listener to summarize."
    ),
    "update_power": (
        "Tools are introduced piecemeal. Pick them backwards from where the workflow gets stuck."
    ),
    "gen_gap": (
        "'Young people these days...' slips out easily. Put expectations into words and share "
        "OK/NG boundaries with examples."
    ),
    "harassment_awareness": (
        "Well-meant guidance may hurt. Give feedback in the order observation, fact, expectation, support."
    ),
}

_ZERO_NOTE = "{label} scored 0. Treat it as undefined rather than failing: start with a short list of things you will not do."


@dataclass(frozen=True)
class CommentSettings:
    llm_enabled: bool
    max_chars: int
    note_max_chars: int

    @staticmethod
    def from_cfg(cfg: Mapping[str, Any] | None) -> "CommentSettings":
        cfg = cfg or {}
        return CommentSettings(
            llm_enabled=cfg_defaults.as_bool(cfg.get("COMMENTS_LLM_ENABLED"), cfg_defaults.COMMENTS_LLM_ENABLED),
            max_chars=int(cfg.get("COMMENT_MAX_CHARS", cfg_defaults.COMMENT_MAX_CHARS)),
            note_max_chars=int(cfg.get("NOTE_MAX_CHARS", cfg_defaults.NOTE_MAX_CHARS)),
        )


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


def pick_top_bottom(vector: Mapping[str, float]) -> Tuple[List[str], List[str]]:
    """Two highest and two lowest categories; equal scores fall back to key order."""

    by_high = sorted(CATEGORIES, key=lambda c: (-vector[c], c))
    by_low = sorted(CATEGORIES, key=lambda c: (vector[c], c))
    return by_high[:2], by_low[:2]


def generate_comments(
    type_slug: str | None,
    scores: Mapping[str, Any] | None,
    cfg: Mapping[str, Any] | None = None,
) -> Dict[str, List[str]]:
    settings = CommentSettings.from_cfg(cfg)
    vector = coerce_vector(scores)
    leader = TYPE_LABELS.get(type_slug or "", "leader")
    top, bottom = pick_top_bottom(vector)

    strengths = [
        _clip(_STRENGTHS[c].format(leader=leader, label=CATEGORY_LABELS[c].lower()), settings.max_chars)
        for c in top
    ]
    improvements = [_clip(_IMPROVEMENTS[c], settings.max_chars) for c in bottom]
    notes = [
        _clip(_ZERO_NOTE.format(label=CATEGORY_LABELS[c]), settings.note_max_chars)
        for c in CATEGORIES if vector[c] <= 0.0
    ]
    out = {"strengths": strengths, "improvements": improvements, "notes": notes}
    return _maybe_rewrite_with_llm(leader, out, settings)


def _maybe_rewrite_with_llm(
    leader: str,
    comments: Dict[str, List[str]],
    settings: CommentSettings,
) -> Dict[str, List[str]]:
    if not settings.llm_enabled:
        return comments
    try:
        from . import llm_bridge

        if llm_bridge.backend_in_use() != "azure":
            return comments

        payload = {"leader": leader, **comments}
        prompt = (
            "Rewrite these diagnosis comments for a company executive so they read warm, concrete and brief. "
            f"Keep every list the same length and each item under {settings.max_chars} characters. "
            "Return ONLY JSON with the same keys.\n"
            f"Input: {json.dumps(payload, ensure_ascii=False)}"
        )
        content = llm_bridge.complete(
            system="You rewrite short coaching comments. Respond strictly with valid JSON matching the input schema.",
            user=prompt,
        )
        if not content:
            return comments
        data = json.loads(content)
        rewritten: Dict[str, List[str]] = {}
        for key, items in comments.items():
            new_items = data.get(key) if isinstance(data, dict) else None
            if isinstance(new_items, Sequence) and not isinstance(new_items, str) and len(new_items) == len(items):
                rewritten[key] = [_clip(str(s), settings.max_chars) for s in new_items]
            else:
                rewritten[key] = items
        return rewritten
    except Exception as exc:  # pragma: no cover - optional path
        log.debug("comments LLM fallback: %s", exc)
        return comments
