from __future__ import annotations
from html import escape
from typing import Any, Dict, List, Mapping, Optional

from .config import SCORE_MAX


def _row(d: Mapping[str, Any]) -> str:
    score = float(d.get("score", 0.0) or 0.0)
    pct = int(round(score / SCORE_MAX * 100)) if SCORE_MAX else 0
    bar = f"<div class=\"bar\"><span style=\"width:{pct}%\"></span></div>"
    return f"<tr><td>{escape(str(d.get('label')))}</td><td>{score:.2f}</td><td>{bar}</td></tr>"


def _list(title: str, items: List[str]) -> str:
    if not items:
        return ""
    lis = "".join(f"<li>{escape(str(s))}</li>" for s in items)
    return f"<h3>{title}</h3><ul>{lis}</ul>"


def render_report_html(
    snapshot: Mapping[str, Any],
    comments: Optional[Mapping[str, List[str]]] = None,
    rid: Optional[str] = None,
) -> str:
    """Standalone HTML page for a result snapshot (see snapshot.read_snapshot)."""

    rows = "\n".join(_row(d) for d in snapshot.get("categories") or [])
    label = snapshot.get("type_label") or "Type pending"
    label_ja = snapshot.get("type_label_ja") or ""
    comments = comments or {}

    banner = ""
    if not snapshot.get("finalized"):
        banner = "<div class=\"banner warning\">This result has not been finalized yet.</div>"

    rid_html = f"<p class=\"rid\">Result ID: {escape(rid)}</p>" if rid else ""

    return f"""<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8"/>
<title>Samurai Type Report</title>
<style>
 body{{font-family:system-ui,-apple-system,Segoe UI,Roboto,Ubuntu,'Helvetica Neue',Arial}}
 .wrap{{max-width:960px;margin:40px auto;padding:0 16px}}
 h1{{margin:0 0 16px}}
 .type{{font-size:1.3rem;margin:8px 0 16px}}
 .banner{{padding:12px 16px;border-radius:6px;margin:16px 0}}
 .banner.warning{{background:#ffe7d9;border:1px solid #f5a623;color:#7a2d00}}
 table{{border-collapse:collapse;width:100%}}
 th,td{{text-align:left}}
 .bar{{background:#eee;height:10px;border-radius:5px;min-width:160px}}
 .bar span{{display:block;height:10px;border-radius:5px;background:#111}}
 .rid{{color:#777;font-size:.85rem}}
</style>
</head>
<body>
<div class="wrap">
  <h1>Samurai Type Report</h1>
  <div class="type"><b>{escape(label)}</b> {escape(label_ja)}</div>
  {banner}

  <table border='1' cellpadding='6' cellspacing='0'>
    <thead><tr><th>Category</th><th>Score (0–{SCORE_MAX:g})</th><th></th></tr></thead>
    <tbody>{rows}</tbody>
  </table>

  {_list("Strengths", list(comments.get("strengths") or []))}
  {_list("Areas to improve", list(comments.get("improvements") or []))}
  {_list("Notes", list(comments.get("notes") or []))}
  {rid_html}
</div>
</body>
</html>"""


def export_report_html(snapshot: Dict[str, Any], comments: Optional[Mapping[str, List[str]]], path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_report_html(snapshot, comments))
