import copy
import json
import logging

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from config import _current_user_id
from db import get_db
from llm import LANGUAGE_PROMPTS

logger = logging.getLogger(__name__)

router = APIRouter()

VALID_THEMES = {"light", "dark", "system"}

DEFAULT_SETTINGS = {
    "profile": {
        "name": "",
        "email": "",
        "phone": "",
        "date_of_birth": "",
        "emergency_contact": "",
    },
    "preferences": {
        "language": "en",
        "theme": "light",
        "notifications": {"email": True, "push": True, "sms": False, "reminders": True},
        "accessibility": {
            "high_contrast": False,
            "large_text": False,
            "screen_reader": False,
            "reduced_motion": False,
        },
    },
    "privacy": {
        "data_sharing": False,
        "analytics": True,
        "marketing": False,
        "third_party": False,
    },
}


def _deep_merge(base: dict, updates: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _validate(settings: dict):
    prefs = settings.get("preferences")
    if not isinstance(prefs, dict):
        return "preferences must be an object"
    theme, language = prefs.get("theme"), prefs.get("language")
    if not isinstance(theme, str) or theme not in VALID_THEMES:
        return f"Invalid theme: {theme}"
    if not isinstance(language, str) or language not in LANGUAGE_PROMPTS:
        return f"Unsupported language: {language}"
    for section in ("profile", "privacy"):
        if not isinstance(settings.get(section), dict):
            return f"{section} must be an object"
    return None


def _load(conn, uid: int) -> dict:
    row = conn.execute("SELECT data FROM settings WHERE user_id = ?", (uid,)).fetchone()
    return json.loads(row["data"]) if row else {}


@router.get("/api/settings")
def api_settings_get():
    uid = _current_user_id.get()
    with get_db() as conn:
        stored = _load(conn, uid)
    return JSONResponse({"settings": _deep_merge(DEFAULT_SETTINGS, stored)})


@router.post("/api/settings")
def api_settings_update(payload: dict = Body(...)):
    uid = _current_user_id.get()
    with get_db() as conn:
        stored = _deep_merge(_load(conn, uid), payload)
        error = _validate(_deep_merge(DEFAULT_SETTINGS, stored))
        if error:
            return JSONResponse({"ok": False, "error": error}, status_code=400)
        conn.execute(
            "INSERT INTO settings (user_id, data) VALUES (?, ?)"
            " ON CONFLICT(user_id) DO UPDATE SET data = excluded.data",
            (uid, json.dumps(stored)),
        )
        conn.commit()
    logger.info("Settings updated for user %s", uid)
    return JSONResponse({"ok": True, "settings": _deep_merge(DEFAULT_SETTINGS, stored)})
