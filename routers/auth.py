import html
import logging
import re
import sqlite3
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from config import SESSION_COOKIE_NAME, _utc_now_storage
from db import get_db
from security import (
    _get_authenticated_user,
    _has_any_user,
    _hash_password,
    _is_login_allowed,
    _set_session_cookie,
    _verify_password,
)
from ui import PAGE_STYLE

logger = logging.getLogger(__name__)

router = APIRouter()

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_USERNAME_LEN = 64
MIN_PASSWORD_LEN = 8


def _redirect(path: str, error: str = "") -> RedirectResponse:
    url = f"{path}?{urlencode({'error': error})}" if error else path
    return RedirectResponse(url=url, status_code=303)


def _field(name: str, label: str, kind: str = "text", autocomplete: str = "", required: bool = True) -> str:
    return (
        f'<div class="form-group"><label for="{name}">{label}</label>'
        f'<input type="{kind}" id="{name}" name="{name}" autocomplete="{autocomplete or name}"'
        f'{" required" if required else ""}></div>'
    )


def _auth_page(title: str, intro: str, error: str, action: str, fields: str, submit: str, footer: str) -> str:
    banner = f'<div class="alert">{html.escape(error)}</div>' if error else ""
    return f"""<!DOCTYPE html>
<html>
<head>{PAGE_STYLE}<title>{title}</title></head>
<body>
  <div class="container">
    <h1>{title}</h1>
    <p style="color:#555; font-size:14px; margin-bottom:16px;">{intro}</p>
    {banner}
    <form method="post" action="{action}">
      {fields}
      <button type="submit" class="btn-primary">{submit}</button>
    </form>
    <p style="margin-top:16px; font-size:13px; color:#6b7280;">{footer}</p>
  </div>
</body>
</html>
"""


def _signup_error(username: str, email: str, password: str, confirm: str) -> Optional[str]:
    if not username:
        return "Username is required"
    if len(username) > MAX_USERNAME_LEN:
        return f"Username must be {MAX_USERNAME_LEN} characters or fewer"
    if email and not _EMAIL_RE.match(email):
        return "Invalid email address"
    if len(password) < MIN_PASSWORD_LEN:
        return f"Password must be at least {MIN_PASSWORD_LEN} characters"
    if password != confirm:
        return "Passwords do not match"
    return None


@router.get("/signup", response_class=HTMLResponse)
def signup_get(error: str = ""):
    fields = (
        _field("username", "Username")
        + _field("email", 'Email <span style="color:#aaa;font-weight:400">(optional)</span>', "email", required=False)
        + _field("new_password", f"Password (at least {MIN_PASSWORD_LEN} characters)", "password", "new-password")
        + _field("confirm_password", "Confirm Password", "password", "new-password")
    )
    return _auth_page(
        "Create Your Account",
        "Your reminders, consultations and wellness plans are private to your account.",
        error,
        "/signup",
        fields,
        "Create Account",
        'Already registered? <a href="/login" style="color:#0f766e;">Log in</a>',
    )


@router.post("/signup")
def signup_post(
    request: Request,
    username: str = Form(""),
    email: str = Form(""),
    new_password: str = Form(""),
    confirm_password: str = Form(""),
):
    username = username.strip()
    email = email.strip().lower()
    error = _signup_error(username, email, new_password, confirm_password)
    if error:
        return _redirect("/signup", error)
    pw_hash = _hash_password(new_password)
    try:
        with get_db() as conn:
            cur = conn.execute(
                "INSERT INTO user_profile (username, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                (username, email, pw_hash, _utc_now_storage()),
            )
            conn.commit()
    except sqlite3.IntegrityError:
        return _redirect("/signup", "Username already taken")
    logger.info("New account created: %s", username)
    return _set_session_cookie(_redirect("/"), request, cur.lastrowid, pw_hash)


@router.get("/login", response_class=HTMLResponse)
def login_get(request: Request, error: str = ""):
    if not _has_any_user():
        return _redirect("/signup")
    if _get_authenticated_user(request):
        return _redirect("/")
    fields = _field("username", "Username") + _field("password", "Password", "password", "current-password")
    return _auth_page(
        "VitaShifa",
        "Enter your credentials to continue.",
        error,
        "/login",
        fields,
        "Log In",
        'No account yet? <a href="/signup" style="color:#0f766e;">Sign up</a>',
    )


@router.post("/login")
def login_post(request: Request, username: str = Form(""), password: str = Form("")):
    ip = request.client.host if request.client else "unknown"
    if not _is_login_allowed(ip):
        return _redirect("/login", "Too many attempts. Please wait before trying again.")
    with get_db() as conn:
        row = conn.execute(
            "SELECT id, password_hash FROM user_profile WHERE username = ?", (username.strip(),)
        ).fetchone()
    if row is None or not _verify_password(password, row["password_hash"]):
        return _redirect("/login", "Incorrect username or password")
    return _set_session_cookie(_redirect("/"), request, row["id"], row["password_hash"])


@router.post("/logout")
def logout():
    resp = _redirect("/login")
    resp.delete_cookie(SESSION_COOKIE_NAME)
    return resp
