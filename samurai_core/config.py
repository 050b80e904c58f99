from __future__ import annotations
import os, json, pathlib


_TRUTHY = {"1", "true", "yes", "on"}


def as_bool(value, default: bool = False) -> bool:
    """Read a flag that may arrive as an env string or a config.json value."""
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def _env_bool(name: str, default: bool) -> bool:
    return as_bool(os.getenv(name), default)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip()


SCORE_MAX: float = 3.0
ROUND_DIGITS: int = 2
MULTI_SELECT_MAX: int = 3

BANK_STRICT: bool = True

STORAGE_BACKEND: str = "file"  # "file" | "supabase"
DATA_DIR: str = "data"
SUPABASE_URL: str = ""
SUPABASE_KEY: str = ""
RESULTS_TABLE: str = "samurairesults"
INTAKE_TABLE: str = "consult_intake"

APP_BASE_URL: str = "http://localhost:3000"
BOOKING_BASE_URL: str = ""
SHARE_BASE_URL: str = ""

MAIL_ENABLED: bool = True
MAIL_FROM: str = ""
MAIL_REPLY_TO: str = "info@ourdx-mtg.com"
MAIL_TO_OPS: str = ""
SMTP_HOST: str = "localhost"
SMTP_PORT: int = 587
SMTP_USER: str = ""
SMTP_PASS: str = ""
SMTP_STARTTLS: bool = True
SMTP_TIMEOUT: float = 10.0

COMMENTS_LLM_ENABLED: bool = False
COMMENT_MAX_CHARS: int = 140
NOTE_MAX_CHARS: int = 100

# // env overrides for staging/ops; defaults remain conservative.
ROUND_DIGITS = _env_int("ROUND_DIGITS", ROUND_DIGITS)
BANK_STRICT = _env_bool("BANK_STRICT", BANK_STRICT)
STORAGE_BACKEND = _env_str("STORAGE_BACKEND", STORAGE_BACKEND).lower() or "file"
DATA_DIR = _env_str("DATA_DIR", DATA_DIR) or "data"
SUPABASE_URL = _env_str("SUPABASE_URL", SUPABASE_URL)
SUPABASE_KEY = _env_str("SUPABASE_SERVICE_ROLE_KEY", _env_str("SUPABASE_KEY", SUPABASE_KEY))
RESULTS_TABLE = _env_str("RESULTS_TABLE", RESULTS_TABLE)
INTAKE_TABLE = _env_str("INTAKE_TABLE", INTAKE_TABLE)
APP_BASE_URL = _env_str("APP_BASE_URL", APP_BASE_URL).rstrip("/")
BOOKING_BASE_URL = _env_str("BOOKING_BASE_URL", BOOKING_BASE_URL).rstrip("/") or f"{APP_BASE_URL}/consult"
SHARE_BASE_URL = _env_str("SHARE_BASE_URL", SHARE_BASE_URL).rstrip("/") or APP_BASE_URL
MAIL_ENABLED = _env_bool("MAIL_ENABLED", MAIL_ENABLED)
MAIL_FROM = _env_str("MAIL_FROM", MAIL_FROM)
MAIL_REPLY_TO = _env_str("MAIL_REPLY_TO", MAIL_REPLY_TO)
MAIL_TO_OPS = _env_str("MAIL_TO_OPS", MAIL_TO_OPS)
SMTP_HOST = _env_str("SMTP_HOST", SMTP_HOST)
SMTP_PORT = _env_int("SMTP_PORT", SMTP_PORT)
SMTP_USER = _env_str("SMTP_USER", SMTP_USER)
SMTP_PASS = os.getenv("SMTP_PASS", SMTP_PASS)
SMTP_STARTTLS = _env_bool("SMTP_STARTTLS", SMTP_STARTTLS)
SMTP_TIMEOUT = _env_float("SMTP_TIMEOUT", SMTP_TIMEOUT)
COMMENTS_LLM_ENABLED = _env_bool("COMMENTS_LLM_ENABLED", COMMENTS_LLM_ENABLED)


def _env_true(name: str) -> bool:
    return as_bool(os.environ.get(name))
def load_config() -> dict:
    cfg = {}
    p = pathlib.Path("config.json")
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except Exception: cfg = {}
    e = os.environ
    if e.get("COMMENTS_LLM_ENABLED"): cfg["COMMENTS_LLM_ENABLED"] = _env_true("COMMENTS_LLM_ENABLED")
    if e.get("LLM_BACKEND"): cfg["LLM_BACKEND"] = e.get("LLM_BACKEND")
    for k in ("AZURE_OPENAI_ENDPOINT","AZURE_OPENAI_API_VERSION","AZURE_OPENAI_API_KEY","AZURE_OPENAI_DEPLOYMENT"):
        if e.get(k): cfg[k] = e.get(k)
    return cfg
