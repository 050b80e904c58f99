"""Lead-funnel helpers: company-size buckets, CTA links and consultant routing."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Mapping, Optional
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from . import config

EMAIL_RX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$", re.I)

COMPANY_SIZE_BUCKETS = ("1-10", "11-50", "51-100", "101-300", "301-500", "501-1000", "1001+")
_SMALL = {"1-10", "11-50"}

_DASHES_RX = re.compile(r"[〜～~–—－]")
_RANGE_RX = re.compile(r"^(\d+)-(\d+)$")
_PLUS_RX = re.compile(r"^(\d+)(\+|以上|ormore)$")
_UPTO_RX = re.compile(r"^(?:-|upto)?(\d+)(以下)?$")


def is_valid_email(value: str | None) -> bool:
    return bool(value) and bool(EMAIL_RX.match(str(value).strip()))


def _squash(raw: object) -> str:
    s = _DASHES_RX.sub("-", str(raw or "").strip())
    s = s.replace("名", "").replace("employees", "").replace("people", "")
    return re.sub(r"\s+", "", s).lower()


def normalize_company_size(raw: object) -> str:
    """Map free-form size strings ("11～50名", "51-100", "1001+") to a bucket or "unknown"."""

    s = _squash(raw)
    if not s:
        return "unknown"
    if s in COMPANY_SIZE_BUCKETS:
        return s
    m = _PLUS_RX.match(s)
    if m:
        return "1001+" if int(m.group(1)) >= 1001 else _bucket_for(int(m.group(1)))
    m = _RANGE_RX.match(s)
    if m:
        return _bucket_for(int(m.group(2)))
    m = _UPTO_RX.match(s)
    if m:
        return _bucket_for(int(m.group(1)))
    return "unknown"


def _bucket_for(n: int) -> str:
    for bucket in COMPANY_SIZE_BUCKETS[:-1]:
        hi = int(bucket.split("-")[1])
        if n <= hi:
            return bucket
    return "1001+"


def size_segment(raw: object) -> str:
    """"small" for up to 50 people (and unknown), "large" from 51."""
    bucket = normalize_company_size(raw)
    if bucket == "unknown" or bucket in _SMALL:
        return "small"
    return "large"


def add_utm(url: str, content: str, campaign: str = "report_ready", utm_id: Optional[str] = None) -> str:
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.setdefault("utm_source", "samurai-check")
    query.setdefault("utm_medium", "email")
    query.setdefault("utm_campaign", campaign)
    query.setdefault("utm_content", content)
    if utm_id:
        query.setdefault("utm_id", utm_id)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def build_links(
    rid: Optional[str],
    base_url: Optional[str] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    base = (base_url or config.APP_BASE_URL).rstrip("/")
    overrides = overrides or {}
    booking = config.BOOKING_BASE_URL or f"{base}/consult"
    share = config.SHARE_BASE_URL or base

    report = overrides.get("report") or (f"{base}/report/{quote(rid, safe='')}" if rid else f"{base}/report")
    consult = overrides.get("consult") or (f"{booking}?{urlencode({'rid': rid})}" if rid else booking)
    share = overrides.get("share") or share
    return {
        "reportLink": add_utm(report, "cta_report", utm_id=rid),
        "consultLink": add_utm(consult, "cta_consult", utm_id=rid),
        "shareLink": add_utm(share, "cta_share", utm_id=rid),
    }


@dataclass(frozen=True)
class Consultant:
    id: str
    name: str
    email: str


CONSULTANTS: Mapping[str, Consultant] = {
    "ishijima": Consultant("ishijima", "Ishijima", "ishijima@example.com"),
    "morigami": Consultant("morigami", "Morigami", "morigami@example.com"),
}
_CONSULTANT_ALIASES = {"m": "morigami", "i": "ishijima", "sachiko": "ishijima"}


def pick_consultant(key: Optional[str]) -> Consultant:
    k = (key or "").strip().lower()
    k = _CONSULTANT_ALIASES.get(k, k)
    return CONSULTANTS.get(k, CONSULTANTS["ishijima"])
