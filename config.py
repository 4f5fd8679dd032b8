import os
import secrets
from contextvars import ContextVar
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

DB_PATH = os.environ.get("VITASHIFA_DB_PATH", "vitashifa.db")
SECRET_KEY_PATH = Path(".app_secret_key")
SESSION_TTL_SECONDS = 60 * 60 * 24 * 14
SESSION_COOKIE_NAME = "vitashifa_session"
CSRF_COOKIE_NAME = "csrf_token"
TZ_OFFSET_COOKIE_NAME = "tz_offset"
MAX_IMAGE_SIZE = 5 * 1024 * 1024
MAX_MESSAGE_LEN = 4000
RECENT_CONSULTATIONS_LIMIT = 5

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# LLM provider: "groq" talks to the Groq OpenAI-compatible API, "mock" returns canned replies.
LLM_PROVIDER = os.environ.get("LLM_PROVIDER", "groq").strip().lower()
GROQ_API_KEY = os.environ.get("GROQ_API_KEY", "")
GROQ_BASE_URL = os.environ.get("GROQ_BASE_URL", "https://api.groq.com/openai/v1")
CHAT_MODEL = os.environ.get("CHAT_MODEL", "llama-3.3-70b-versatile")
VISION_MODEL = os.environ.get("VISION_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct")
LLM_TIMEOUT_SECONDS = int(os.environ.get("LLM_TIMEOUT_SECONDS", "60"))

_current_user_id: ContextVar[int] = ContextVar("_current_user_id", default=0)
_client_now: ContextVar[Optional[datetime]] = ContextVar("_client_now", default=None)
_client_tz_offset_min: ContextVar[Optional[int]] = ContextVar("_client_tz_offset_min", default=None)

PUBLIC_PATHS = {"/login", "/signup", "/logout"}

# JavaScript's getTimezoneOffset() spans UTC-12:00 to UTC+14:00
_MAX_TZ_OFFSET_MIN = 14 * 60


def _parse_tz_offset(raw: str) -> Optional[int]:
    try:
        offset = int((raw or "").strip())
    except ValueError:
        return None
    return offset if abs(offset) <= _MAX_TZ_OFFSET_MIN else None


def _set_client_clock(tz_offset_cookie: str):
    """Pin this request's "now" to the browser's wall clock.

    The cookie carries minutes to add to local time to reach UTC. Without a
    usable value the server's own local time is used.
    """
    offset = _parse_tz_offset(tz_offset_cookie)
    _client_tz_offset_min.set(offset)
    if offset is None:
        _client_now.set(datetime.now())
    else:
        utc_now = datetime.now(timezone.utc).replace(tzinfo=None)
        _client_now.set(utc_now - timedelta(minutes=offset))


def _now_local() -> datetime:
    now = _client_now.get()
    return now if now is not None else datetime.now()


def _today_local() -> date:
    return _now_local().date()


def _utc_now_storage() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).strftime("%Y-%m-%d %H:%M:%S")


def _load_secret_key() -> str:
    """APP_SECRET_KEY, else a key generated once and kept in SECRET_KEY_PATH."""
    configured = os.environ.get("APP_SECRET_KEY", "").strip()
    if configured:
        return configured
    try:
        return SECRET_KEY_PATH.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        generated = secrets.token_hex(32)
        SECRET_KEY_PATH.write_text(generated, encoding="utf-8")
        return generated


SECRET_KEY = _load_secret_key()
