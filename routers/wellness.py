import json
import logging
from typing import Optional

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from config import _current_user_id, _utc_now_storage
from db import get_db
from llm import GENERIC_ERROR, LANGUAGE_PROMPTS, PLAN_SECTIONS, LLMError, generate_wellness_plan
from security import _is_llm_call_allowed

logger = logging.getLogger(__name__)

router = APIRouter()

_FORM_SECTIONS = ("personal_info", "lifestyle", "medical_history", "preferences")
_LIST_FIELDS = (
    ("medical_history", "conditions"),
    ("preferences", "exercise_preferences"),
)


def _validate_form(form) -> Optional[str]:
    if not isinstance(form, dict):
        return "form_data must be an object"
    for section in _FORM_SECTIONS:
        if not isinstance(form.get(section, {}), dict):
            return f"{section} must be an object"
    if not isinstance(form.get("health_goals", []), list):
        return "health_goals must be a list"
    for section, field in _LIST_FIELDS:
        if not isinstance((form.get(section) or {}).get(field, []), list):
            return f"{section}.{field} must be a list"
    age = (form.get("personal_info") or {}).get("age", "")
    if age not in ("", None):
        try:
            if not 0 < int(age) < 130:
                return "Age is out of range"
        except (TypeError, ValueError):
            return "Age must be a number"
    return None


@router.post("/api/wellness-planning/generate")
def api_wellness_generate(payload: dict = Body(...)):
    uid = _current_user_id.get()
    form = payload.get("form_data")
    error = _validate_form(form)
    if error:
        return JSONResponse({"ok": False, "error": error}, status_code=400)
    language = str(payload.get("language") or "en")
    if language not in LANGUAGE_PROMPTS:
        language = "en"
    if not _is_llm_call_allowed(uid):
        return JSONResponse({"ok": False, "error": "Too many requests"}, status_code=429)
    try:
        plan = generate_wellness_plan(form, language)
    except LLMError:
        logger.exception("Error generating wellness plan")
        return JSONResponse({"ok": False, "error": GENERIC_ERROR}, status_code=502)
    return JSONResponse(plan)


@router.post("/api/wellness-planning")
def api_wellness_save(payload: dict = Body(...)):
    uid = _current_user_id.get()
    missing = [k for k in PLAN_SECTIONS if k not in payload]
    if missing:
        return JSONResponse(
            {"ok": False, "error": f"Plan is missing sections: {', '.join(missing)}"}, status_code=400
        )
    with get_db() as conn:
        cur = conn.execute(
            "INSERT INTO wellness_plans (user_id, plan, created_at) VALUES (?, ?, ?)",
            (uid, json.dumps(payload), _utc_now_storage()),
        )
        conn.commit()
    return JSONResponse({"ok": True, "id": str(cur.lastrowid)})


@router.get("/api/wellness-planning")
def api_wellness_list():
    uid = _current_user_id.get()
    with get_db() as conn:
        rows = conn.execute(
            "SELECT id, plan, created_at FROM wellness_plans WHERE user_id = ?"
            " ORDER BY created_at DESC, id DESC",
            (uid,),
        ).fetchall()
    plans = [
        {"id": str(r["id"]), "created_at": r["created_at"], "plan": json.loads(r["plan"])}
        for r in rows
    ]
    return JSONResponse({"plans": plans})
