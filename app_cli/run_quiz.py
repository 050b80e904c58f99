from __future__ import annotations
import os, datetime
from samurai_core.question_bank import QUESTIONS, SENTINEL_LABEL, ordered_questions
from samurai_core.config import MULTI_SELECT_MAX, load_config
from samurai_core.types import AnswerSubmission
from samurai_core.scoring import aggregate
from samurai_core.judge import TYPE_LABELS, explain
from samurai_core.snapshot import category_rows
from samurai_core.comments import generate_comments
from samurai_core.report_html import export_report_html
def ask(prompt: str, options, multi: bool) -> list[str]:
    print(prompt)
    for i, opt in enumerate(options): print(f"  [{i}] {opt}")
    hint = f"up to {MULTI_SELECT_MAX} indexes, comma separated" if multi else "index"
    while True:
        raw = input(f"Your choice ({hint}): ").strip()
        parts = [p.strip() for p in raw.split(",") if p.strip()]
        if parts and all(p.isdigit() and int(p) < len(options) for p in parts):
            picked = list(dict.fromkeys(options[int(p)] for p in parts))
            if (multi and len(picked) <= MULTI_SELECT_MAX) or len(picked) == 1:
                return picked
        print("Enter valid option index(es).")
def main():
    print("Samurai Type Check")
    answers = []
    for q in ordered_questions(QUESTIONS):
        labels = [o.label for o in q.options]
        prompt = f"\n{q.code}. {q.prompt}" + (f"  ('{SENTINEL_LABEL}' overrides other picks)" if SENTINEL_LABEL in labels else "")
        answers.append(AnswerSubmission(question_id=q.id, selected=ask(prompt, labels, q.multi)))
    vector = aggregate(answers); res = explain(vector)
    print(f"\nYour type: {TYPE_LABELS[res.type]}" + (" (nearest profile)" if res.fallback else ""))
    for row in category_rows(vector): print(f"  {row['label']:<32} {row['score']:.2f}")
    comments = generate_comments(res.type, vector, load_config())
    snap = {"categories": category_rows(vector), "type": res.type, "type_label": TYPE_LABELS[res.type], "finalized": True}
    os.makedirs("reports", exist_ok=True)
    ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    path = os.path.join("reports", f"samurai_{ts}.html")
    export_report_html(snap, comments, path)
    print(f"Done. Report saved to: {path}")
if __name__ == "__main__": main()
