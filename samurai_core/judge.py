# samurai_core/judge.py
"""Seven-type classification: ordered threshold rules, then weighted nearest centroid."""
from __future__ import annotations

import logging
import operator
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .question_bank import CATEGORIES
from .scoring import coerce_vector
from .types import CategoryVector, Classification, TypeKey

log = logging.getLogger(__name__)

TYPES: Tuple[TypeKey, ...] = ("sanada", "oda", "toyotomi", "tokugawa", "saito", "imagawa", "uesugi")

TYPE_LABELS: Mapping[str, str] = MappingProxyType({
    "sanada": "Sanada Yukimura type",
    "oda": "Oda Nobunaga type",
    "toyotomi": "Toyotomi Hideyoshi type",
    "tokugawa": "Tokugawa Ieyasu type",
    "saito": "Saito Dosan type",
    "imagawa": "Imagawa Yoshimoto type",
    "uesugi": "Uesugi Kenshin type",
})

TYPE_LABELS_JA: Mapping[str, str] = MappingProxyType({
    "sanada": "真田幸村型",
    "oda": "織田信長型",
    "toyotomi": "豊臣秀吉型",
    "tokugawa": "徳川家康型",
    "saito": "斎藤道三型",
    "imagawa": "今川義元型",
    "uesugi": "上杉謙信型",
})

# older clients sent given-name slugs or the Japanese label
_LEGACY_KEYS: Mapping[str, str] = MappingProxyType({"hideyoshi": "toyotomi", "ieyasu": "tokugawa", "dosan": "saito"})

_OPS: Mapping[str, Callable[[float, float], bool]] = MappingProxyType({
    ">=": operator.ge,
    "<=": operator.le,
    "<": operator.lt,
    ">": operator.gt,
})


@dataclass(frozen=True)
class Condition:
    category: str
    op: str
    threshold: float

    def holds(self, vector: Mapping[str, float]) -> bool:
        return _OPS[self.op](float(vector.get(self.category, 0.0)), self.threshold)


@dataclass(frozen=True)
class Rule:
    type: str
    name: str
    conditions: Tuple[Condition, ...]

    def matches(self, vector: Mapping[str, float]) -> bool:
        return all(c.holds(vector) for c in self.conditions)


@dataclass(frozen=True)
class Centroid:
    type: str
    vector: Mapping[str, float]
    guard: Tuple[Condition, ...] = ()

    def eligible(self, vector: Mapping[str, float]) -> bool:
        return all(c.holds(vector) for c in self.guard)


def _c(category: str, op: str, threshold: float) -> Condition:
    return Condition(category, op, threshold)


# priority order; first match wins
RULES: Tuple[Rule, ...] = (
    Rule("sanada", "SANADA_RULE", (_c("update_power", ">=", 2.4), _c("delegation", ">=", 2.0))),
    Rule("oda", "ODA_RULE", (
        _c("update_power", ">=", 2.2), _c("comm_gap", "<=", 1.2), _c("gen_gap", "<=", 1.4),
    )),
    Rule("toyotomi", "TOYOTOMI_RULE", (_c("update_power", ">=", 1.6), _c("comm_gap", ">=", 1.6))),
    Rule("tokugawa", "TOKUGAWA_RULE", (_c("delegation", ">=", 2.2), _c("org_drag", "<=", 1.2))),
    Rule("saito", "SAITO_RULE", (_c("org_drag", ">=", 2.2), _c("delegation", "<", 2.0))),
    Rule("imagawa", "IMAGAWA_RULE", (_c("harassment_awareness", ">=", 2.0), _c("update_power", "<", 1.6))),
    Rule("uesugi", "UESUGI_RULE", (
        _c("delegation", ">=", 1.5), _c("update_power", ">=", 1.5),
        _c("gen_gap", ">=", 1.5), _c("harassment_awareness", ">=", 1.5),
    )),
)

WEIGHTS: Mapping[str, float] = MappingProxyType({
    "delegation": 1.2,
    "org_drag": 1.0,
    "comm_gap": 0.9,
    "update_power": 1.3,
    "gen_gap": 0.8,
    "harassment_awareness": 1.0,
})


def _vec(delegation, org_drag, comm_gap, update_power, gen_gap, harassment_awareness) -> Mapping[str, float]:
    return MappingProxyType(dict(zip(CATEGORIES, (
        delegation, org_drag, comm_gap, update_power, gen_gap, harassment_awareness,
    ))))


_SAITO_RULE = next(r for r in RULES if r.type == "saito")

# iteration order doubles as the distance tie-break
CENTROIDS: Tuple[Centroid, ...] = (
    Centroid("sanada", _vec(2.4, 1.4, 1.8, 2.7, 1.8, 1.8)),
    Centroid("oda", _vec(1.6, 1.8, 0.9, 2.5, 1.0, 1.2)),
    Centroid("toyotomi", _vec(1.6, 1.5, 2.2, 2.0, 1.8, 1.6)),
    Centroid("tokugawa", _vec(2.5, 0.9, 1.6, 1.4, 1.5, 1.8)),
    Centroid("saito", _vec(1.2, 2.5, 1.2, 1.0, 1.2, 1.2), guard=_SAITO_RULE.conditions),
    Centroid("imagawa", _vec(1.2, 1.4, 1.2, 0.9, 1.0, 2.3)),
    Centroid("uesugi", _vec(1.9, 1.5, 1.4, 1.8, 1.7, 1.7)),
)


def first_rule(vector: Mapping[str, float]) -> Optional[Rule]:
    for rule in RULES:
        if rule.matches(vector):
            return rule
    return None


def weighted_distance(vector: Mapping[str, float], centroid: Mapping[str, float]) -> float:
    return sum(
        WEIGHTS[cat] * (float(vector.get(cat, 0.0)) - float(centroid.get(cat, 0.0))) ** 2
        for cat in CATEGORIES
    )


def distances(vector: Mapping[str, float]) -> Dict[str, float]:
    """Weighted distance to every eligible centroid, in iteration order."""

    out: Dict[str, float] = {}
    for cen in CENTROIDS:
        if not cen.eligible(vector):
            continue
        out[cen.type] = weighted_distance(vector, cen.vector)
    return out


def nearest_type(vector: Mapping[str, float]) -> str:
    best_type: Optional[str] = None
    best = float("inf")
    for t, d in distances(vector).items():
        if d < best:
            best_type, best = t, d
    # six centroids carry no guard, so this is unreachable
    return best_type or "uesugi"


def explain(scores: Mapping[str, float] | None) -> Classification:
    vector: CategoryVector = coerce_vector(scores)
    hits: List[str] = [r.name for r in RULES if r.matches(vector)]
    rule = first_rule(vector)
    dist = distances(vector)
    if rule is not None:
        return Classification(
            type=rule.type, rule=rule.name, fallback=False,
            rule_hits=hits, distances=dist, snapshot=vector,
        )
    decided = nearest_type(vector)
    log.debug("no rule matched; nearest centroid %s (%s)", decided, dist)
    return Classification(
        type=decided, rule=None, fallback=True,
        rule_hits=hits, distances=dist, snapshot=vector,
    )


def classify(scores: Mapping[str, float] | None) -> str:
    return explain(scores).type


def type_key(value: str | None) -> Optional[str]:
    """Canonical type slug from a slug, legacy slug or Japanese label."""

    if not value:
        return None
    v = str(value).strip()
    low = v.lower()
    if low in TYPE_LABELS:
        return low
    if low in _LEGACY_KEYS:
        return _LEGACY_KEYS[low]
    for key, ja in TYPE_LABELS_JA.items():
        if v == ja:
            return key
    for key, label in TYPE_LABELS.items():
        if low == label.lower():
            return key
    return None
