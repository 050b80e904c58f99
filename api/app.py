from __future__ import annotations
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
from urllib.parse import quote, urlencode
import logging, typing as t

# ---- Engine imports ----
from samurai_core import config
from samurai_core.config import load_config
from samurai_core.question_bank import BLOCKS, QUESTIONS, questions_by_id
from samurai_core.scoring import aggregate, coerce_vector
from samurai_core.judge import TYPE_LABELS, TYPE_LABELS_JA, classify, explain, type_key
from samurai_core.snapshot import normalize_rows, read_snapshot
from samurai_core.comments import generate_comments
from samurai_core.report_html import render_report_html
from samurai_core.leads import build_links, is_valid_email, pick_consultant, size_segment
from samurai_core.email_templates import (
    build_consult_email,
    build_report_email,
    render_consult_intake_to_ops,
    render_consult_intake_to_user,
)
from samurai_core.mailer import MailError, send_mail
from . import storage
from .storage import StorageError

log = logging.getLogger(__name__)

app = FastAPI(title="Samurai Check API")


@app.get("/")
def root():
    return {"status": "ok", "service": "samurai-check-api"}


ALLOWED_ORIGINS = sorted({config.APP_BASE_URL, "http://localhost:3000"})

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

_BY_ID = questions_by_id(QUESTIONS)

# ---- Schemas ----
class AnswerIn(BaseModel):
    question_id: int
    selected: list[str] = []

class SubmitReq(BaseModel):
    rid: str | None = None
    answers: list[AnswerIn]

class FinalizeReq(BaseModel):
    rid: str
    type: str | None = None           # slug, legacy slug or label
    categories: list[dict[str, t.Any]] | None = None
    scores: dict[str, float] | None = None

class ReportRequest(BaseModel):
    email: str
    rid: str | None = None
    name: str | None = None
    type: str | None = None
    company_name: str | None = None
    company_size: str | None = None
    industry: str | None = None
    age_range: str | None = None
    report_link: str | None = None
    consult_link: str | None = None
    share_link: str | None = None

class ConsultCreateReq(BaseModel):
    rid: str | None = None
    name: str | None = None
    email: str | None = None
    age_range: str | None = None
    company_size: str | None = None
    industry: str | None = None
    consultant: str | None = None
    message: str | None = None

class ConsultRequest(BaseModel):
    email: str
    name: str | None = None
    company: str | None = None
    note: str | None = None
    dry: bool = False

class BookingReq(BaseModel):
    token: str
    event_id: str | None = None
    start_at: str | None = None
    name: str | None = None
    email: str | None = None

# ---- Helpers ----
def _check_rid(rid: str | None) -> None:
    if rid is not None and not storage.valid_rid(rid):
        raise HTTPException(400, "invalid result id")


def _validate_answers(answers: list[AnswerIn]) -> None:
    seen: set[int] = set()
    for a in answers:
        q = _BY_ID.get(a.question_id)
        if q is None:
            raise HTTPException(400, f"unknown question Q{a.question_id}")
        if a.question_id in seen:
            raise HTTPException(400, f"duplicate answer for {q.code}")
        seen.add(a.question_id)
        n = len(dict.fromkeys(a.selected))
        if q.multi:
            if not 1 <= n <= config.MULTI_SELECT_MAX:
                raise HTTPException(400, f"{q.code}: choose 1 to {config.MULTI_SELECT_MAX} options")
        elif n != 1:
            raise HTTPException(400, f"{q.code}: choose exactly one option")
    missing = [_BY_ID[qid].code for qid in sorted(_BY_ID) if qid not in seen]
    if missing:
        raise HTTPException(400, f"missing answers: {', '.join(missing)}")


def _serialize_question(q) -> dict[str, t.Any]:
    return {
        "id": q.id,
        "code": q.code,
        "prompt": q.prompt,
        "multi": q.multi,
        "max_select": config.MULTI_SELECT_MAX if q.multi else 1,
        "options": [o.label for o in q.options],
    }


def _result_payload(rid: str, snap: dict[str, t.Any]) -> dict[str, t.Any]:
    return {
        "result_id": rid,
        "type": snap.get("type"),
        "type_label": snap.get("type_label"),
        "type_label_ja": snap.get("type_label_ja"),
        "categories": snap.get("categories"),
        "finalized": snap.get("finalized"),
        "comments": generate_comments(snap.get("type"), snap.get("vector"), load_config()),
    }


def _send_best_effort(label: str, **mail) -> dict[str, t.Any]:
    try:
        return send_mail(**mail)
    except MailError:
        log.exception("%s mail failed", label)
        return {"id": None, "sent": False}


def _lead_update(rid: str | None, fields: dict[str, t.Any]) -> bool:
    if not rid:
        return False
    try:
        storage.merge_result(rid, {k: v for k, v in fields.items() if v is not None})
        return True
    except StorageError:
        log.exception("lead update failed for %s", rid)
        return False

# ---- Health ----
@app.get("/health")
def health():
    return {
        "storage_backend": config.STORAGE_BACKEND,
        "mail_enabled": config.MAIL_ENABLED,
        "comments_llm": config.COMMENTS_LLM_ENABLED,
        "question_count": len(QUESTIONS),
    }

# ---- Quiz ----
@app.get("/api/quiz/questions")
def quiz_questions():
    blocks = [
        {"title": title, "questions": [_serialize_question(_BY_ID[qid]) for qid in ids if qid in _BY_ID]}
        for title, ids in BLOCKS
    ]
    return {"count": len(QUESTIONS), "blocks": blocks}


@app.post("/api/quiz/submit")
def quiz_submit(req: SubmitReq):
    _check_rid(req.rid)
    _validate_answers(req.answers)
    rid = req.rid or storage.new_rid()
    vector = aggregate(req.answers)
    res = explain(vector)

    saved = True
    outcome = {"created": False, "updated": False}
    try:
        outcome = storage.finalize_result(rid, res.type, vector)
        if outcome["created"] or outcome["updated"]:
            storage.merge_result(rid, {"answers": [a.model_dump() for a in req.answers]})
    except StorageError:
        log.exception("could not persist result %s", rid)
        saved = False

    snap = None
    if saved and not (outcome["created"] or outcome["updated"]):
        # already finalized: the stored snapshot stands
        try:
            snap = read_snapshot(storage.load_result(rid))
        except StorageError:
            log.exception("could not reload result %s", rid)
    if snap is None or snap.get("type") is None:
        snap = read_snapshot({"categories": [{"key": k, "score": v} for k, v in vector.items()],
                              "samurai_type_key": res.type, "finalized_at": None})
        snap["finalized"] = saved

    body = _result_payload(rid, snap)
    body.update({"rule": res.rule, "fallback": res.fallback, "saved": saved, "finalize": outcome})
    return body

# ---- Results ----
@app.post("/api/results/finalize")
def results_finalize(req: FinalizeReq):
    _check_rid(req.rid)
    if req.categories is not None:
        vector = {row["key"]: row["score"] for row in normalize_rows(req.categories)}
    elif req.scores is not None:
        vector = coerce_vector(req.scores)
    else:
        raise HTTPException(400, "categories or scores required")
    slug = type_key(req.type) if req.type else classify(vector)
    if slug is None:
        raise HTTPException(400, f"unknown type: {req.type}")
    try:
        outcome = storage.finalize_result(req.rid, slug, vector)
    except StorageError as exc:
        log.exception("finalize failed for %s", req.rid)
        raise HTTPException(500, "finalize failed") from exc
    return {"ok": True, "result_id": req.rid, **outcome}


@app.get("/api/results/{rid}")
def get_result(rid: str):
    if not storage.valid_rid(rid):
        raise HTTPException(404, "result not found")
    record = storage.load_result(rid)
    if not record:
        raise HTTPException(404, "result not found")
    return _result_payload(rid, read_snapshot(record))


@app.get("/api/results/{rid}/report.html", response_class=HTMLResponse)
def get_result_html(rid: str):
    if not storage.valid_rid(rid):
        raise HTTPException(404, "result not found")
    record = storage.load_result(rid)
    if not record:
        raise HTTPException(404, "result not found")
    snap = read_snapshot(record)
    comments = generate_comments(snap.get("type"), snap.get("vector"), load_config())
    return HTMLResponse(render_report_html(snap, comments, rid=rid))

# ---- Lead funnel ----
@app.post("/api/report-request")
def report_request(req: ReportRequest):
    email = req.email.strip()
    if not is_valid_email(email):
        raise HTTPException(400, "invalid_email")
    _check_rid(req.rid)

    segment = size_segment(req.company_size)
    _lead_update(req.rid, {
        "name": req.name,
        "email": email,
        "company_name": req.company_name,
        "company_size": req.company_size,
        "industry": req.industry,
        "age_range": req.age_range,
        "is_consult_candidate": segment == "large",
    })

    type_slug = type_key(req.type)
    if type_slug is None and req.rid:
        try:
            type_slug = read_snapshot(storage.load_result(req.rid)).get("type")
        except StorageError:
            log.exception("could not read result %s for report mail", req.rid)

    links = build_links(req.rid, overrides={
        "report": req.report_link or "",
        "consult": req.consult_link or "",
        "share": req.share_link or "",
    })
    mail = build_report_email(req.name, type_slug, req.company_size, links, req.rid)
    sent = _send_best_effort("report", to=email, tag_id=req.rid, **mail)
    return {
        "ok": True,
        "to": email,
        "subject": mail["subject"],
        "rid": req.rid,
        "segment": segment,
        **links,
        "sent": sent["sent"],
        "provider_id": sent["id"],
    }


@app.post("/api/consult/create")
def consult_create(
    req: ConsultCreateReq,
    c: str | None = Query(None, description="Consultant key"),
    consultant: str | None = Query(None),
):
    email = (req.email or "").strip()
    if email and not is_valid_email(email):
        raise HTTPException(400, "invalid_email")
    _check_rid(req.rid)

    lead_saved = _lead_update(req.rid, {
        "name": req.name,
        "email": email or None,
        "age_range": req.age_range,
        "company_size": req.company_size,
        "industry": req.industry,
    })

    token = None
    if req.name and email:
        try:
            row = storage.insert_consult_intake({
                "rid": req.rid,
                "name": req.name,
                "email": email,
                "age_range": req.age_range,
                "company_size": req.company_size,
                "industry": req.industry,
                "consultant": req.consultant,
                "message": req.message,
            })
            token = row.get("token")
        except StorageError:
            log.exception("consult intake insert failed")

    person = pick_consultant(c or consultant or req.consultant)
    report_url = (f"{config.APP_BASE_URL}/report/{quote(req.rid, safe='')}"
                  if req.rid else f"{config.APP_BASE_URL}/report")
    qs = {k: v for k, v in (("rid", req.rid), ("email", email), ("token", token)) if v}
    booking_url = f"{config.BOOKING_BASE_URL}?{urlencode(qs)}" if qs else config.BOOKING_BASE_URL

    to = email or config.MAIL_TO_OPS
    sent = {"id": None, "sent": False}
    if to:
        mail = build_consult_email(person, req.name, report_url, booking_url,
                                   offer_note="For applicants only, first three each month")
        sent = _send_best_effort("consult guide", to=to, **mail)
    else:
        log.warning("consult/create without email and no MAIL_TO_OPS; guide mail skipped")

    return {
        "ok": True,
        "consultant": {"id": person.id, "name": person.name},
        "token": token,
        "lead_saved": lead_saved,
        "urls": {"report": report_url, "booking": booking_url},
        "sent": sent["sent"],
    }


@app.post("/api/consult-request")
def consult_request(req: ConsultRequest):
    email = req.email.strip()
    if not is_valid_email(email):
        raise HTTPException(400, "invalid_email")

    user_mail = render_consult_intake_to_user(req.name)
    ops_mail = render_consult_intake_to_ops(email, req.name, req.company, req.note)
    guide_mail = build_consult_email(
        pick_consultant(None), req.name, f"{config.APP_BASE_URL}/report", config.BOOKING_BASE_URL,
    )
    if req.dry:
        return {"ok": True, "dry": True, "subjects": [m["subject"] for m in (user_mail, ops_mail, guide_mail)]}

    results = [
        _send_best_effort("consult intake (user)", to=email, **user_mail),
        _send_best_effort("consult intake (ops)", to=config.MAIL_TO_OPS or email, **ops_mail),
        _send_best_effort("consult guide", to=email, **guide_mail),
    ]
    return {"ok": True, "dry": False, "sent": [r["sent"] for r in results]}


@app.post("/api/consult/booking")
def consult_booking(req: BookingReq):
    try:
        found = storage.mark_booking(req.token, {
            "spir_event_id": req.event_id,
            "spir_start_at": req.start_at,
            "applicant_name": req.name,
            "applicant_email": req.email,
        })
    except StorageError as exc:
        log.exception("booking update failed for %s", req.token)
        raise HTTPException(500, "booking update failed") from exc
    if not found:
        raise HTTPException(404, "intake not found")
    return {"ok": True}


# labels exposed for clients that render their own result cards
@app.get("/api/types")
def list_types():
    return [{"key": k, "label": TYPE_LABELS[k], "label_ja": TYPE_LABELS_JA[k]} for k in TYPE_LABELS]
