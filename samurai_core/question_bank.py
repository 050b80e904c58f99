from __future__ import annotations
import json, importlib.resources as ir
from types import MappingProxyType
from typing import Dict, List, Mapping, Sequence, Tuple
from .types import CategoryKey, Option, Question

CATEGORIES: Tuple[CategoryKey, ...] = (
    "delegation",
    "org_drag",
    "comm_gap",
    "update_power",
    "gen_gap",
    "harassment_awareness",
)

CATEGORY_LABELS: Mapping[str, str] = MappingProxyType({
    "delegation": "Delegation & structural health",
    "org_drag": "Organizational drag",
    "comm_gap": "Communication gap",
    "update_power": "Update power",
    "gen_gap": "Generation-gap sense",
    "harassment_awareness": "Harassment awareness",
})

SENTINEL_LABEL = "None of these apply"

# question id -> categories its score is split across
MAPPING: Mapping[int, Tuple[str, ...]] = MappingProxyType({
    1: ("delegation",),
    2: ("org_drag", "harassment_awareness"),
    3: ("org_drag",),
    4: ("comm_gap",),
    5: ("update_power", "gen_gap"),
    6: ("update_power", "gen_gap"),
    7: ("update_power",),
    8: ("org_drag", "comm_gap"),
    9: ("gen_gap", "comm_gap"),
    10: ("update_power",),
    11: ("org_drag", "harassment_awareness", "delegation"),
    12: ("gen_gap", "comm_gap"),
    13: ("harassment_awareness", "delegation"),
    14: ("delegation",),
    15: ("harassment_awareness", "comm_gap"),
    16: ("harassment_awareness", "delegation"),
})

DISPLAY_ORDER: Tuple[int, ...] = (2, 3, 5, 10, 4, 1, 11, 8, 6, 9, 7, 12, 15, 16, 13, 14)

BLOCKS: Tuple[Tuple[str, Tuple[int, ...]], ...] = (
    ("First moves, intent and grounds", (2, 3, 5, 10)),
    ("Structures and pathways", (4, 1, 11, 8)),
    ("Soil, receptiveness and learning", (6, 9, 7, 12)),
    ("Bringing out people's abilities", (15, 16, 13)),
    ("The fork in evolution speed", (14,)),
)


class BankConfigError(ValueError):
    """Raised when the question bank and the category table disagree."""


def _parse_question(raw: dict) -> Question:
    opts = tuple(Option(label=str(o["label"]), points=int(o["points"])) for o in raw.get("options", []))
    return Question(id=int(raw["id"]), prompt=str(raw.get("prompt", "")), options=opts, multi=bool(raw.get("multi", False)))


def load_bank() -> List[Question]:
    data = ir.files(__package__).joinpath("data/questions.json").read_text(encoding="utf-8")
    raw = json.loads(data)
    return [_parse_question(r) for r in raw]


def validate_bank(questions: Sequence[Question], mapping: Mapping[int, Sequence[str]]) -> List[str]:
    """Return human-readable problems; an empty list means the bank is consistent."""

    problems: List[str] = []
    ids = set()
    for q in questions:
        if q.id in ids:
            problems.append(f"Q{q.id}: duplicate question id")
        ids.add(q.id)
        if not q.options:
            problems.append(f"Q{q.id}: no options")
        cats = mapping.get(q.id)
        if not cats:
            problems.append(f"Q{q.id}: no category mapping")
            continue
        for cat in cats:
            if cat not in CATEGORIES:
                problems.append(f"Q{q.id}: unknown category {cat!r}")
    for qid in mapping:
        if qid not in ids:
            problems.append(f"Q{qid}: mapped but not in the bank")
    return problems


def check_bank(questions: Sequence[Question], mapping: Mapping[int, Sequence[str]]) -> None:
    problems = validate_bank(questions, mapping)
    if problems:
        raise BankConfigError("; ".join(problems))


def questions_by_id(questions: Sequence[Question]) -> Dict[int, Question]:
    return {q.id: q for q in questions}


def ordered_questions(questions: Sequence[Question]) -> List[Question]:
    """Questions in display order; anything not listed goes last in bank order."""

    by_id = questions_by_id(questions)
    out: List[Question] = []
    for qid in DISPLAY_ORDER:
        q = by_id.pop(qid, None)
        if q is not None:
            out.append(q)
    out.extend(q for q in questions if q.id in by_id)
    return out


QUESTIONS: Tuple[Question, ...] = tuple(load_bank())
