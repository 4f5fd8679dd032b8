"""Accounts, sessions, CSRF and rate limiting.

Session cookies are ``<user_id>.<expiry>.<nonce>.<signature>``; the signature
covers the user's current password hash, so changing the password logs out
every existing session.
"""
import hashlib
import hmac
import logging
import secrets
import threading
from collections import defaultdict, deque
from time import time
from typing import Optional

from fastapi import Request

from config import CSRF_COOKIE_NAME, SECRET_KEY, SESSION_COOKIE_NAME, SESSION_TTL_SECONDS
from db import get_db

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 480_000
_HASH_SCHEME = "pbkdf2_sha256"


class RateLimiter:
    """Sliding-window limiter keyed by IP or user id. In memory, per process."""

    def __init__(self, name: str, window: int, max_calls: int):
        self.name = name
        self.window = window
        self.max_calls = max_calls
        self._lock = threading.Lock()
        self._calls: dict = defaultdict(deque)

    def allow(self, key) -> bool:
        now = time()
        with self._lock:
            calls = self._calls[str(key)]
            while calls and now - calls[0] >= self.window:
                calls.popleft()
            if len(calls) >= self.max_calls:
                logger.warning("%s rate limit hit for %s", self.name, key)
                return False
            calls.append(now)
            return True

    def reset(self):
        with self._lock:
            self._calls.clear()


login_limiter = RateLimiter("login", window=300, max_calls=10)
llm_limiter = RateLimiter("llm", window=60, max_calls=20)


def _is_login_allowed(ip: str) -> bool:
    return login_limiter.allow(ip)


def _is_llm_call_allowed(user_id: int) -> bool:
    return llm_limiter.allow(user_id)


def _is_same_origin(request: Request) -> bool:
    source = request.headers.get("origin") or request.headers.get("referer") or ""
    if "://" not in source:
        return False
    host = source.split("://", 1)[1].split("/", 1)[0].lower()
    return host == request.url.netloc.lower()


def _ensure_csrf_cookie(request: Request, response):
    if not request.cookies.get(CSRF_COOKIE_NAME):
        # read by page scripts and echoed back in x-csrf-token
        response.set_cookie(
            CSRF_COOKIE_NAME,
            secrets.token_urlsafe(32),
            httponly=False,
            samesite="lax",
            secure=request.url.scheme == "https",
        )
    return response


def _csrf_header_valid(request: Request) -> bool:
    expected = request.cookies.get(CSRF_COOKIE_NAME, "").encode()
    supplied = request.headers.get("x-csrf-token", "").encode()
    return bool(expected) and hmac.compare_digest(expected, supplied)


def _hash_password(plaintext: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", plaintext.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"{_HASH_SCHEME}${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def _verify_password(plaintext: str, stored: str) -> bool:
    try:
        scheme, iterations, salt, digest = stored.split("$")
        rounds = int(iterations)
    except ValueError:
        return False
    if scheme != _HASH_SCHEME:
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", plaintext.encode(), salt.encode(), rounds)
    return hmac.compare_digest(candidate.hex(), digest)


def _sign(payload: str, password_hash: str) -> str:
    return hmac.new(SECRET_KEY.encode(), f"{payload}|{password_hash}".encode(), "sha256").hexdigest()


def _make_session_token(user_id: int, password_hash: str) -> str:
    payload = f"{user_id}.{int(time()) + SESSION_TTL_SECONDS}.{secrets.token_urlsafe(12)}"
    return f"{payload}.{_sign(payload, password_hash)}"


def _parse_session_token(token: str) -> Optional[tuple]:
    """Return (user_id, payload, signature) for a live token, else None."""
    parts = token.split(".")
    if len(parts) != 4:
        return None
    try:
        user_id, expires = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if expires < int(time()):
        return None
    return user_id, ".".join(parts[:3]), parts[3]


def _set_session_cookie(response, request: Request, user_id: int, password_hash: str):
    response.set_cookie(
        SESSION_COOKIE_NAME,
        _make_session_token(user_id, password_hash),
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
        max_age=SESSION_TTL_SECONDS,
    )
    return response


def _get_authenticated_user(request: Request):
    """The ``user_profile`` row for the session cookie, or None."""
    parsed = _parse_session_token(request.cookies.get(SESSION_COOKIE_NAME, ""))
    if parsed is None:
        return None
    user_id, payload, signature = parsed
    with get_db() as conn:
        row = conn.execute("SELECT * FROM user_profile WHERE id = ?", (user_id,)).fetchone()
    if row is None or not row["password_hash"]:
        return None
    if not hmac.compare_digest(signature, _sign(payload, row["password_hash"])):
        return None
    return row


def _has_any_user() -> bool:
    with get_db() as conn:
        return conn.execute("SELECT 1 FROM user_profile LIMIT 1").fetchone() is not None
