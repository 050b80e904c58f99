from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

CategoryKey = Literal[
    "delegation", "org_drag", "comm_gap", "update_power", "gen_gap", "harassment_awareness",
]
TypeKey = Literal["sanada", "oda", "toyotomi", "tokugawa", "saito", "imagawa", "uesugi"]
CategoryVector = Dict[str, float]


@dataclass(frozen=True)
class Option:
    label: str; points: int


@dataclass(frozen=True)
class Question:
    id: int; prompt: str
    options: Tuple[Option, ...]
    multi: bool = False

    @property
    def code(self) -> str:
        return f"Q{self.id}"

    def points_for(self, label: str) -> Optional[int]:
        for opt in self.options:
            if opt.label == label:
                return opt.points
        return None

    def max_points(self) -> int:
        return max((opt.points for opt in self.options), default=0)


@dataclass
class AnswerSubmission:
    question_id: int
    selected: List[str] = field(default_factory=list)


@dataclass
class Classification:
    type: str
    rule: Optional[str]
    fallback: bool
    rule_hits: List[str] = field(default_factory=list)
    distances: Dict[str, float] = field(default_factory=dict)
    snapshot: CategoryVector = field(default_factory=dict)
