import logging
from datetime import date

from fastapi import APIRouter, Body, Request
from fastapi.responses import HTMLResponse, JSONResponse

from config import _current_user_id, _now_local, _today_local
from store import EDITABLE_FIELDS
from tracker import (
    adherence_chart,
    adherence_summary,
    clear_outcome,
    is_active,
    record_outcome,
    upcoming_reminders,
    validate_reminder_fields,
)
from ui import PAGE_STYLE, _nav_bar, _reminder_card, _upcoming_html

logger = logging.getLogger(__name__)

router = APIRouter()

_NOT_FOUND = {"ok": False, "error": "Reminder not found"}


def _cache(request: Request):
    return request.app.state.reminders


def _serialize(reminder: dict, today: date) -> dict:
    item = dict(reminder)
    item.pop("user_id", None)
    item["adherence_7d"] = adherence_summary(reminder, today)
    item["chart"] = adherence_chart(reminder, today)
    return item


def _serialize_upcoming(items: list) -> list:
    return [
        {
            "reminder_id": i["reminder"]["id"],
            "name": i["reminder"]["name"],
            "dose": i["reminder"]["dose"],
            "time": i["time"],
            "scheduled_at": i["scheduled_at"].isoformat(),
            "is_overdue": i["is_overdue"],
        }
        for i in items
    ]


def _reminder_response(cache, uid: int, reminder_id: str, today: date) -> JSONResponse:
    reminder = cache.get(uid, reminder_id)
    if reminder is None:
        # deleted by a concurrent request after our write
        return JSONResponse(_NOT_FOUND, status_code=404)
    return JSONResponse({"ok": True, "reminder": _serialize(reminder, today)})


def _editable(payload: dict) -> dict:
    return {k: payload[k] for k in EDITABLE_FIELDS if k in payload}


def _slot_from_payload(payload: dict, today: date):
    """Return (error, day, time) for a log/undo request body."""
    raw_day = str(payload.get("date") or today.isoformat())
    try:
        day = date.fromisoformat(raw_day)
    except ValueError:
        return "Invalid date", None, None
    if day > today:
        return "Date cannot be in the future", None, None
    return None, day, str(payload.get("time", ""))


@router.get("/api/medication-reminders")
def api_reminders_list(request: Request):
    uid = _current_user_id.get()
    today = _today_local()
    reminders = _cache(request).reminders(uid)
    return JSONResponse({"reminders": [_serialize(r, today) for r in reminders]})


@router.post("/api/medication-reminders")
def api_reminders_create(request: Request, payload: dict = Body(...)):
    uid = _current_user_id.get()
    fields = _editable(payload)
    error = validate_reminder_fields(fields)
    if error:
        return JSONResponse({"ok": False, "error": error}, status_code=400)
    reminder_id = _cache(request).create(uid, fields)
    return JSONResponse({"ok": True, "id": reminder_id})


@router.get("/api/medication-reminders/upcoming")
def api_reminders_upcoming(request: Request):
    uid = _current_user_id.get()
    now = _now_local()
    items = upcoming_reminders(_cache(request).reminders(uid), now, now.date())
    return JSONResponse({"now": now.strftime("%Y-%m-%dT%H:%M:%S"), "upcoming": _serialize_upcoming(items)})


@router.put("/api/medication-reminders/{reminder_id}")
def api_reminders_update(request: Request, reminder_id: str, payload: dict = Body(...)):
    uid = _current_user_id.get()
    cache = _cache(request)
    existing = cache.get(uid, reminder_id)
    if existing is None:
        return JSONResponse(_NOT_FOUND, status_code=404)
    fields = {k: existing[k] for k in EDITABLE_FIELDS}
    fields.update(_editable(payload))
    error = validate_reminder_fields(fields)
    if error:
        return JSONResponse({"ok": False, "error": error}, status_code=400)
    cache.update(uid, reminder_id, fields)
    return _reminder_response(cache, uid, reminder_id, _today_local())


@router.delete("/api/medication-reminders/{reminder_id}")
def api_reminders_delete(request: Request, reminder_id: str):
    uid = _current_user_id.get()
    cache = _cache(request)
    if cache.get(uid, reminder_id) is None:
        return JSONResponse(_NOT_FOUND, status_code=404)
    cache.delete(uid, reminder_id)
    logger.info("Deleted reminder %s for user %s", reminder_id, uid)
    return JSONResponse({"ok": True})


@router.post("/api/medication-reminders/{reminder_id}/log")
def api_reminders_log(request: Request, reminder_id: str, payload: dict = Body(...)):
    uid = _current_user_id.get()
    cache = _cache(request)
    reminder = cache.get(uid, reminder_id)
    if reminder is None:
        return JSONResponse(_NOT_FOUND, status_code=404)
    today = _today_local()
    error, day, slot = _slot_from_payload(payload, today)
    if error:
        return JSONResponse({"ok": False, "error": error}, status_code=400)
    if not is_active(reminder, day):
        return JSONResponse({"ok": False, "error": "Reminder is not active on that date"}, status_code=400)
    try:
        logs = record_outcome(reminder, day, slot, str(payload.get("status", "")))
    except ValueError as exc:
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=400)
    cache.update(uid, reminder_id, {"adherence": logs})
    return _reminder_response(cache, uid, reminder_id, today)


@router.post("/api/medication-reminders/{reminder_id}/undo")
def api_reminders_undo(request: Request, reminder_id: str, payload: dict = Body(...)):
    uid = _current_user_id.get()
    cache = _cache(request)
    reminder = cache.get(uid, reminder_id)
    if reminder is None:
        return JSONResponse(_NOT_FOUND, status_code=404)
    today = _today_local()
    error, day, slot = _slot_from_payload(payload, today)
    if error:
        return JSONResponse({"ok": False, "error": error}, status_code=400)
    cache.update(uid, reminder_id, {"adherence": clear_outcome(reminder, day, slot)})
    return _reminder_response(cache, uid, reminder_id, today)


@router.get("/reminders", response_class=HTMLResponse)
def reminders_page(request: Request):
    uid = _current_user_id.get()
    now = _now_local()
    today = now.date()
    reminders = _cache(request).reminders(uid)
    upcoming = upcoming_reminders(reminders, now, today)
    if reminders:
        cards = "".join(
            _reminder_card(r, adherence_summary(r, today), adherence_chart(r, today))
            for r in reminders
        )
    else:
        cards = "<p class='empty'>No medication reminders yet.</p>"
    return f"""<!DOCTYPE html>
<html>
<head>{PAGE_STYLE}<title>Medication Reminders</title></head>
<body>
  {_nav_bar('reminders')}
  <div class="container">
    <h1>Medication Reminders</h1>
    <p style="color:#6b7280;font-size:14px;margin:0;">{today.strftime("%A, %B %d, %Y")}</p>
    <h2>Due today</h2>
    {_upcoming_html(upcoming)}
    <h2>Your medications</h2>
    {cards}
  </div>
</body>
</html>"""
