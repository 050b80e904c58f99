from __future__ import annotations
from html import escape
from typing import Dict, Mapping, Optional

from . import config
from .judge import TYPE_LABELS, type_key
from .leads import Consultant, size_segment

MailRender = Dict[str, str]

ORG_NAME = "Institute for Our Transformation (IOT)"
ORG_ADDR = "6F Harajuku Komiya Bldg, 6-29-4 Jingumae, Shibuya-ku, Tokyo 150-0001"

_BTN = "display:inline-block;padding:10px 16px;border:1px solid #111;border-radius:8px;text-decoration:none"
_BTN_DARK = "display:inline-block;padding:12px 16px;background:#111;color:#fff;text-decoration:none;border-radius:8px"


def _greeting_name(name: Optional[str]) -> str:
    n = (name or "").strip()
    return n or "there"


def _type_name(type_slug: Optional[str]) -> str:
    key = type_key(type_slug)
    return TYPE_LABELS[key] if key else "(type pending)"


def _footer_html() -> str:
    mail = escape(config.MAIL_REPLY_TO)
    return (
        '<hr style="border:none;border-top:1px solid #eee;margin:24px 0;" />'
        '<div style="font-size:12px;color:#555;line-height:1.6">'
        f"<div>{escape(ORG_NAME)}</div>"
        f'<div><a href="mailto:{mail}">{mail}</a></div>'
        f"<div>{escape(ORG_ADDR)}</div>"
        '<div style="margin-top:6px;">Feel free to reply to this email directly.</div>'
        "</div>"
    )


def _footer_text() -> str:
    return f"{ORG_NAME}\n{config.MAIL_REPLY_TO}\n{ORG_ADDR}\n\nReply to this email with any questions."


def _wrap(body: str, preheader: str = "") -> str:
    hidden = (
        '<div style="display:none;max-height:0;overflow:hidden;opacity:0">'
        f"{escape(preheader)}</div>" if preheader else ""
    )
    return (
        '<div style="font-family:system-ui,-apple-system,Segoe UI,Roboto;line-height:1.7;color:#111">'
        f"{hidden}{body}{_footer_html()}</div>"
    )


def build_report_email(
    to_name: Optional[str],
    type_slug: Optional[str],
    company_size: Optional[str],
    links: Mapping[str, str],
    rid: Optional[str] = None,
) -> MailRender:
    """Detailed-report notification; the CTA depends on the company-size segment."""

    segment = size_segment(company_size)
    type_name = _type_name(type_slug)
    rid_txt = rid or "unknown-id"
    prefix = "[Samurai Type Check - bonus]" if segment == "large" else "[Samurai Type Check]"
    tail = "(free consultation included)" if segment == "large" else "(sharing welcome)"
    subject = f"{prefix} {type_name} | Your detailed report {tail} (ID: {rid_txt})"

    report_url = links.get("reportLink", "")
    consult_url = links.get("consultLink", "")
    share_url = links.get("shareLink", "")

    if segment == "large":
        cta_html = (
            "<p><strong>For organizations of 51 or more</strong><br/>"
            "As a report bonus we offer a <u>free individual consultation</u>.</p>"
            f'<p style="margin:14px 0 0"><a href="{escape(consult_url)}" style="{_BTN}">Book a free consultation</a></p>'
        )
        cta_text = f"Free consultation: {consult_url}\n"
    else:
        cta_html = (
            "<p><strong>For organizations of 50 or fewer</strong><br/>"
            "Please help us by sharing the check with fellow executives.</p>"
            f'<p style="margin:14px 0 0"><a href="{escape(share_url)}" style="{_BTN}">Share the check</a></p>'
        )
        cta_text = f"Share: {share_url}\n"

    body = (
        f"<p>Hello {escape(_greeting_name(to_name))},</p>"
        "<p>Your detailed diagnosis report is ready.</p>"
        f'<p style="margin:18px 0;"><a href="{escape(report_url)}" style="{_BTN_DARK}">Open the report</a></p>'
        f"{cta_html}"
    )
    html = _wrap(body, "Your detailed report is ready, with a next step suited to your company size.")
    text = f"{subject}\n\nReport: {report_url}\n{cta_text}\n{_footer_text()}"
    return {"subject": subject, "html": html, "text": text}


def build_consult_email(
    consultant: Consultant,
    to_name: Optional[str],
    report_url: str,
    booking_url: str,
    offer_note: Optional[str] = None,
) -> MailRender:
    subject = f"[IOT] Your free consultation with {consultant.name}"
    note_html = f"<p><em>{escape(offer_note)}</em></p>" if offer_note else ""
    body = (
        f"<p>Hello {escape(_greeting_name(to_name))},</p>"
        f"<p>Thank you for your interest. {escape(consultant.name)} will be your consultant.</p>"
        f"{note_html}"
        f'<p style="margin:18px 0;"><a href="{escape(booking_url)}" style="{_BTN_DARK}">Pick a time slot</a></p>'
        f'<p>Your report: <a href="{escape(report_url)}">{escape(report_url)}</a></p>'
    )
    text = (
        f"{subject}\n\n{consultant.name} will be your consultant.\n"
        + (f"{offer_note}\n" if offer_note else "")
        + f"Booking: {booking_url}\nReport: {report_url}\n\n{_footer_text()}"
    )
    return {"subject": subject, "html": _wrap(body), "text": text}


def render_consult_intake_to_user(name: Optional[str], booking_url: Optional[str] = None) -> MailRender:
    subject = "[IOT] We received your consultation request"
    url = booking_url or config.BOOKING_BASE_URL
    body = (
        f"<p>Hello {escape(_greeting_name(name))},</p>"
        "<p>We received your request for a free individual consultation. "
        "Please choose a convenient time from the link below.</p>"
        f'<p style="margin:18px 0;"><a href="{escape(url)}" style="{_BTN_DARK}">Choose a time</a></p>'
    )
    return {"subject": subject, "html": _wrap(body), "text": f"{subject}\n\n{url}\n\n{_footer_text()}"}


def render_consult_intake_to_ops(
    email: str,
    name: Optional[str] = None,
    company: Optional[str] = None,
    note: Optional[str] = None,
) -> MailRender:
    subject = f"[Consult intake] {name or '(no name)'} / {company or '(no company)'}"
    rows = (
        ("Name", name or ""),
        ("Email", email),
        ("Company", company or ""),
        ("Note", note or ""),
    )
    table = "".join(f"<tr><th align='left'>{k}</th><td>{escape(v)}</td></tr>" for k, v in rows)
    html = f"<p>A new consultation request arrived.</p><table cellpadding='4'>{table}</table>"
    text = subject + "\n\n" + "\n".join(f"{k}: {v}" for k, v in rows)
    return {"subject": subject, "html": html, "text": text}
