from __future__ import annotations

import json

import pytest

from samurai_core import llm_bridge
from samurai_core.comments import CommentSettings, generate_comments, pick_top_bottom
from samurai_core.question_bank import CATEGORIES


def _vec(**kw: float) -> dict[str, float]:
    base = {cat: 1.5 for cat in CATEGORIES}
    base.update(kw)
    return base


def test_top_and_bottom_pairs():
    top, bottom = pick_top_bottom(_vec(update_power=2.9, delegation=2.5, gen_gap=0.4, org_drag=0.8))
    assert top == ["update_power", "delegation"]
    assert bottom == ["gen_gap", "org_drag"]


def test_ties_fall_back_to_key_order():
    top, bottom = pick_top_bottom(_vec())
    assert top == sorted(CATEGORIES)[:2]
    assert bottom == sorted(CATEGORIES)[:2]


def test_generate_comments_shape_and_limits():
    out = generate_comments("sanada", _vec(update_power=3.0, delegation=2.8))
    assert len(out["strengths"]) == 2
    assert len(out["improvements"]) == 2
    assert out["notes"] == []
    assert "Sanada Yukimura type" in out["strengths"][1] or "Sanada Yukimura type" in out["strengths"][0]
    assert all(len(s) <= 140 for s in out["strengths"] + out["improvements"])


def test_zero_categories_get_a_note():
    out = generate_comments("imagawa", _vec(comm_gap=0.0, gen_gap=0.0))
    assert len(out["notes"]) == 2
    assert all(len(n) <= 100 for n in out["notes"])


def test_custom_length_limit_clips():
    out = generate_comments(None, _vec(), {"COMMENT_MAX_CHARS": 30})
    assert all(len(s) <= 30 for s in out["strengths"] + out["improvements"])
    assert all(s.endswith("…") for s in out["improvements"])


def test_llm_rewrite_replaces_texts(monkeypatch):
    monkeypatch.setattr(llm_bridge, "backend_in_use", lambda: "azure")
    reply = {"strengths": ["A", "B"], "improvements": ["C", "D"], "notes": []}
    monkeypatch.setattr(llm_bridge, "complete", lambda system, user: json.dumps(reply))
    out = generate_comments("oda", _vec(), {"COMMENTS_LLM_ENABLED": True})
    assert out == reply


def test_llm_failure_falls_back_to_rule_texts(monkeypatch):
    monkeypatch.setattr(llm_bridge, "backend_in_use", lambda: "azure")
    monkeypatch.setattr(llm_bridge, "complete", lambda system, user: "not json")
    baseline = generate_comments("oda", _vec())
    assert generate_comments("oda", _vec(), {"COMMENTS_LLM_ENABLED": True}) == baseline


def test_llm_not_consulted_when_disabled(monkeypatch):
    def boom(system, user):
        raise AssertionError("LLM must not be called")

    monkeypatch.setattr(llm_bridge, "backend_in_use", lambda: "azure")
    monkeypatch.setattr(llm_bridge, "complete", boom)
    generate_comments("oda", _vec(), {"COMMENTS_LLM_ENABLED": False})


@pytest.mark.parametrize("flag", ["false", "0", "off", "", False])
def test_llm_flag_strings_from_config_file(monkeypatch, flag):
    def boom(system, user):
        raise AssertionError("LLM must not be called")

    monkeypatch.setattr(llm_bridge, "backend_in_use", lambda: "azure")
    monkeypatch.setattr(llm_bridge, "complete", boom)
    assert CommentSettings.from_cfg({"COMMENTS_LLM_ENABLED": flag}).llm_enabled is False
    generate_comments("oda", _vec(), {"COMMENTS_LLM_ENABLED": flag})


def test_llm_flag_true_string_enables_rewrite():
    assert CommentSettings.from_cfg({"COMMENTS_LLM_ENABLED": "true"}).llm_enabled is True
