from __future__ import annotations

import importlib
import os
import sys

import pytest
from fastapi.testclient import TestClient

from samurai_core.mailer import MailError

from tests.conftest import as_payload


def _reload_app(tmp_path) -> tuple[object, object]:
    os.environ["DATA_DIR"] = str(tmp_path)
    if "api.storage" in sys.modules:
        importlib.reload(sys.modules["api.storage"])
    else:
        import api.storage  # noqa: F401
    storage = sys.modules["api.storage"]
    if "api.app" in sys.modules:
        importlib.reload(sys.modules["api.app"])
    else:
        import api.app  # noqa: F401
    app_module = sys.modules["api.app"]
    return storage, app_module


@pytest.fixture
def outbox():
    return []


@pytest.fixture
def api(tmp_path, monkeypatch, outbox):
    storage, app_module = _reload_app(tmp_path)

    def fake_send(**mail):
        outbox.append(mail)
        return {"id": f"<m{len(outbox)}@test>", "sent": True}

    monkeypatch.setattr(app_module, "send_mail", fake_send)
    return storage, app_module, TestClient(app_module.app)


def test_health_and_questions(api):
    _, _, client = api
    assert client.get("/").json()["status"] == "ok"
    assert client.get("/health").json()["question_count"] == 16

    body = client.get("/api/quiz/questions").json()
    assert body["count"] == 16
    assert len(body["blocks"]) == 5
    first = body["blocks"][0]["questions"][0]
    assert first["id"] == 2 and first["max_select"] == 1
    assert all(isinstance(o, str) for o in first["options"])


def test_submit_classifies_and_finalizes(api, best_answers):
    storage, _, client = api
    resp = client.post("/api/quiz/submit", json={"answers": as_payload(best_answers)})
    assert resp.status_code == 200
    body = resp.json()
    assert body["type"] == "sanada"
    assert body["type_label"] == "Sanada Yukimura type"
    assert body["rule"] == "SANADA_RULE" and body["fallback"] is False
    assert body["finalize"] == {"created": True, "updated": False}
    assert [c["score"] for c in body["categories"]] == [3.0] * 6
    assert len(body["comments"]["strengths"]) == 2

    rid = body["result_id"]
    stored = storage.load_result(rid)
    assert stored["samurai_type_key"] == "sanada"
    assert len(stored["answers"]) == 16


def test_resubmit_keeps_first_snapshot(api, best_answers, worst_answers):
    storage, _, client = api
    rid = client.post("/api/quiz/submit", json={"answers": as_payload(best_answers)}).json()["result_id"]
    body = client.post("/api/quiz/submit", json={"rid": rid, "answers": as_payload(worst_answers)}).json()
    assert body["finalize"] == {"created": False, "updated": False}
    assert body["type"] == "sanada"
    assert client.get(f"/api/results/{rid}").json()["type"] == "sanada"


@pytest.mark.parametrize("answers, detail", [
    ([{"question_id": 2, "selected": ["I tend to reject new proposals", "I make the final call but delegate some parts"]}],
     "Q2: choose exactly one option"),
    ([{"question_id": 1, "selected": []}], "Q1: choose 1 to 3 options"),
    ([{"question_id": 1, "selected": ["a", "b", "c", "d"]}], "Q1: choose 1 to 3 options"),
    ([{"question_id": 99, "selected": ["a"]}], "unknown question Q99"),
    ([{"question_id": 7, "selected": ["x"]}, {"question_id": 7, "selected": ["y"]}], "duplicate answer for Q7"),
])
def test_submit_rejects_bad_selections(api, answers, detail):
    _, _, client = api
    resp = client.post("/api/quiz/submit", json={"answers": answers})
    assert resp.status_code == 400
    assert resp.json()["detail"] == detail


def test_submit_rejects_unsafe_rid(api, best_answers):
    _, _, client = api
    resp = client.post("/api/quiz/submit", json={"rid": "../../x", "answers": as_payload(best_answers)})
    assert resp.status_code == 400


def test_submit_survives_storage_failure(api, best_answers, monkeypatch):
    storage, _, client = api

    def broken(*a, **k):
        raise storage.StorageError("disk gone")

    monkeypatch.setattr(storage, "finalize_result", broken)
    resp = client.post("/api/quiz/submit", json={"answers": as_payload(best_answers)})
    assert resp.status_code == 200
    assert resp.json()["saved"] is False
    assert resp.json()["type"] == "sanada"


def test_finalize_endpoint_is_idempotent(api):
    _, _, client = api
    payload = {"rid": "res-1", "type": "hideyoshi",
               "categories": [{"key": "updatePower", "score": 2.0}, {"key": "comm_gap", "score": 2.2}]}
    first = client.post("/api/results/finalize", json=payload).json()
    assert first["created"] is True and first["updated"] is False
    second = client.post("/api/results/finalize", json=dict(payload, type="oda")).json()
    assert second["created"] is False and second["updated"] is False

    result = client.get("/api/results/res-1").json()
    assert result["type"] == "toyotomi"
    scores = {c["key"]: c["score"] for c in result["categories"]}
    assert scores["update_power"] == 2.0


def test_finalize_endpoint_classifies_scores_without_type(api):
    _, _, client = api
    body = client.post("/api/results/finalize", json={"rid": "res-2", "scores": {"org_drag": 2.6}}).json()
    assert body["created"] is True
    assert client.get("/api/results/res-2").json()["type"] == "saito"


def test_finalize_endpoint_rejects_bad_payloads(api):
    _, _, client = api
    assert client.post("/api/results/finalize", json={"rid": "res-3"}).status_code == 400
    resp = client.post("/api/results/finalize", json={"rid": "res-3", "type": "ninja", "scores": {}})
    assert resp.status_code == 400
    assert client.post("/api/results/finalize", json={"type": "oda"}).status_code == 422


def test_unknown_result_is_404(api):
    _, _, client = api
    assert client.get("/api/results/nope").status_code == 404
    assert client.get("/api/results/nope/report.html").status_code == 404


def test_report_html(api, best_answers):
    _, _, client = api
    rid = client.post("/api/quiz/submit", json={"answers": as_payload(best_answers)}).json()["result_id"]
    resp = client.get(f"/api/results/{rid}/report.html")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert "Sanada Yukimura type" in resp.text
    assert "Strengths" in resp.text


def test_report_request_stores_lead_and_mails(api, best_answers, outbox):
    storage, _, client = api
    rid = client.post("/api/quiz/submit", json={"answers": as_payload(best_answers)}).json()["result_id"]
    resp = client.post("/api/report-request", json={
        "rid": rid, "email": "ceo@example.com", "name": "Sato",
        "company_name": "Acme", "company_size": "51-100",
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["sent"] is True
    assert body["segment"] == "large"
    assert "utm_content=cta_report" in body["reportLink"]

    assert outbox[0]["to"] == "ceo@example.com"
    assert outbox[0]["tag_id"] == rid
    assert "Sanada Yukimura type" in outbox[0]["subject"]

    rec = storage.load_result(rid)
    assert rec["company_name"] == "Acme"
    assert rec["is_consult_candidate"] is True
    assert rec["samurai_type_key"] == "sanada"


def test_report_request_rejects_bad_email(api):
    _, _, client = api
    resp = client.post("/api/report-request", json={"email": "not-an-email"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "invalid_email"


def test_report_request_survives_mail_failure(api, monkeypatch):
    _, app_module, client = api

    def down(**mail):
        raise MailError("relay down")

    monkeypatch.setattr(app_module, "send_mail", down)
    resp = client.post("/api/report-request", json={"email": "ceo@example.com", "company_size": "1-10"})
    assert resp.status_code == 200
    assert resp.json()["sent"] is False
    assert resp.json()["segment"] == "small"


def test_consult_create_and_booking(api, outbox):
    storage, _, client = api
    storage.merge_result("res-9", {"email": "old@example.com"})
    resp = client.post("/api/consult/create?c=morigami", json={
        "rid": "res-9", "name": "Sato", "email": "sato@example.com", "company_size": "101-300",
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["consultant"]["id"] == "morigami"
    assert body["lead_saved"] is True
    token = body["token"]
    assert token and f"token={token}" in body["urls"]["booking"]
    assert outbox[-1]["to"] == "sato@example.com"
    assert storage.load_result("res-9")["email"] == "sato@example.com"

    booked = client.post("/api/consult/booking", json={"token": token, "event_id": "ev-7", "name": "Sato"})
    assert booked.status_code == 200
    assert storage.load_consult_intake(token)["status"] == "booked"

    assert client.post("/api/consult/booking", json={"token": "missing"}).status_code == 404


def test_consult_create_defaults_consultant(api):
    _, _, client = api
    body = client.post("/api/consult/create", json={"name": "Sato", "email": "sato@example.com"}).json()
    assert body["consultant"]["id"] == "ishijima"
    assert body["lead_saved"] is False


def test_consult_request_dry_run_sends_nothing(api, outbox):
    _, _, client = api
    resp = client.post("/api/consult-request", json={"email": "a@example.com", "name": "Sato", "dry": True})
    assert resp.status_code == 200
    assert resp.json()["dry"] is True
    assert len(resp.json()["subjects"]) == 3
    assert outbox == []


def test_consult_request_sends_three_mails(api, outbox):
    _, _, client = api
    resp = client.post("/api/consult-request", json={"email": "a@example.com", "company": "Acme"})
    assert resp.json()["sent"] == [True, True, True]
    assert len(outbox) == 3
    assert "Acme" in outbox[1]["subject"]


def test_submit_rejects_partial_answers_and_keeps_rid_open(api, best_answers):
    storage, _, client = api
    resp = client.post("/api/quiz/submit", json={"rid": "p1", "answers": as_payload(best_answers[:1])})
    assert resp.status_code == 400
    assert resp.json()["detail"].startswith("missing answers: ")
    assert storage.load_result("p1") is None

    body = client.post("/api/quiz/submit", json={"rid": "p1", "answers": as_payload(best_answers)}).json()
    assert body["type"] == "sanada"
    assert body["finalize"] == {"created": True, "updated": False}


def test_consult_request_with_line_breaks_in_fields(tmp_path, monkeypatch):
    _, app_module = _reload_app(tmp_path)
    monkeypatch.setattr(app_module.config, "MAIL_ENABLED", False)
    client = TestClient(app_module.app)

    resp = client.post("/api/consult-request", json={
        "email": "a@example.com", "name": "Sato\r\n", "company": "Acme\r\nBcc: x@evil.test",
    })
    assert resp.status_code == 200
    assert resp.json()["sent"] == [False, False, False]
