from __future__ import annotations

import dataclasses
from typing import Callable

import pytest

from samurai_core.question_bank import QUESTIONS
from samurai_core.types import AnswerSubmission, Option, Question


def build_answers(choose: Callable[[Question], Option]) -> list[AnswerSubmission]:
    """One single-label submission per bank question, picked by ``choose``."""

    return [AnswerSubmission(question_id=q.id, selected=[choose(q).label]) for q in QUESTIONS]


def top_option(q: Question) -> Option:
    return max(q.options, key=lambda o: o.points)


def bottom_option(q: Question) -> Option:
    return min(q.options, key=lambda o: o.points)


def as_payload(answers: list[AnswerSubmission]) -> list[dict]:
    return [dataclasses.asdict(a) for a in answers]


@pytest.fixture
def best_answers() -> list[AnswerSubmission]:
    return build_answers(top_option)


@pytest.fixture
def worst_answers() -> list[AnswerSubmission]:
    return build_answers(bottom_option)
