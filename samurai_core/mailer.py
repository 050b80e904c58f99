"""SMTP delivery for transactional mail.

Settings are read from :mod:`samurai_core.config` at send time so tests and ops
can flip them through the environment without re-importing.
"""
from __future__ import annotations

import logging
import re
import smtplib
from email.message import EmailMessage
from email.utils import formataddr, make_msgid, parseaddr
from typing import Dict, List, Optional, Sequence, Union

from . import config
from .leads import EMAIL_RX

log = logging.getLogger(__name__)

Recipients = Union[str, Sequence[str]]

DEFAULT_FROM = "noreply@ourdx-mtg.com"


class MailError(RuntimeError):
    """Delivery or configuration failure; callers treat mail as best effort."""


def html_to_text(html: str) -> str:
    text = re.sub(r"<br\s*/?>", "\n", html, flags=re.I)
    text = re.sub(r"</p>", "\n\n", text, flags=re.I)
    text = re.sub(r"<li[^>]*>", "- ", text, flags=re.I)
    text = re.sub(r"</li>", "\n", text, flags=re.I)
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def normalize_from(raw: Optional[str]) -> str:
    """Repair common MAIL_FROM typos; raise MailError when no valid address remains."""

    v = (raw or "").strip()
    if not v:
        return DEFAULT_FROM
    s = re.sub(r'^\s*"+|"+\s*$', "", v)
    s = re.sub(r'>\s*"+$', ">", s)

    if "<" in s and ">" in s:
        name, addr = parseaddr(s)
        if not EMAIL_RX.match(addr or ""):
            raise MailError(f"MAIL_FROM address part is invalid: {addr!r}")
        return formataddr((name.strip('"').strip(), addr)) if name else addr

    if EMAIL_RX.match(s):
        return s

    m = re.match(r"(.+)\s+([^\s@]+@[^\s@]+\.[^\s@]+)$", s)
    if m:
        return formataddr((m.group(1).strip('"').strip(), m.group(2).strip()))

    raise MailError(f"MAIL_FROM is invalid: {v!r}")


def _header_value(value: str) -> str:
    # header injection: CR/LF from user input is folded to spaces
    return re.sub(r"[\r\n]+", " ", value).strip()


def _as_list(value: Optional[Recipients]) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [v for v in value if v]


def build_message(
    to: Recipients,
    subject: str,
    html: str,
    text: Optional[str] = None,
    reply_to: Optional[Recipients] = None,
    cc: Optional[Recipients] = None,
    bcc: Optional[Recipients] = None,
    tag_id: Optional[str] = None,
) -> EmailMessage:
    if not to:
        raise MailError("send_mail: `to` is required")
    if not subject:
        raise MailError("send_mail: `subject` is required")
    if not html:
        raise MailError("send_mail: `html` is required")

    sender = normalize_from(config.MAIL_FROM)
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = _header_value(", ".join(_as_list(to)))
    if cc:
        msg["Cc"] = _header_value(", ".join(_as_list(cc)))
    if bcc:
        msg["Bcc"] = _header_value(", ".join(_as_list(bcc)))
    replies = _as_list(reply_to) or _as_list(config.MAIL_REPLY_TO)
    if replies:
        msg["Reply-To"] = _header_value(", ".join(replies))
    msg["Subject"] = _header_value(subject)
    msg["Message-ID"] = make_msgid(domain=parseaddr(sender)[1].rpartition("@")[2] or None)
    if tag_id:
        msg["X-Entity-Ref-ID"] = _header_value(str(tag_id))
    msg.set_content(text if text is not None else html_to_text(html))
    msg.add_alternative(html, subtype="html")
    return msg


def send_mail(
    to: Recipients,
    subject: str,
    html: str,
    text: Optional[str] = None,
    reply_to: Optional[Recipients] = None,
    cc: Optional[Recipients] = None,
    bcc: Optional[Recipients] = None,
    tag_id: Optional[str] = None,
) -> Dict[str, object]:
    """Send one message through the SMTP relay. Raises MailError on any failure."""

    try:
        msg = build_message(to, subject, html, text, reply_to, cc, bcc, tag_id)
    except (ValueError, TypeError) as exc:
        raise MailError(f"cannot build message: {exc}") from exc
    if not config.MAIL_ENABLED:
        log.info("mail disabled; skipped %r to %s", subject, msg["To"])
        return {"id": msg["Message-ID"], "sent": False}
    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.SMTP_TIMEOUT) as smtp:
            if config.SMTP_STARTTLS:
                smtp.starttls()
            if config.SMTP_USER:
                smtp.login(config.SMTP_USER, config.SMTP_PASS)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise MailError(f"SMTP send error: {exc}") from exc
    log.info("mail sent %r to %s", subject, msg["To"])
    return {"id": msg["Message-ID"], "sent": True}
