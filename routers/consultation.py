import json
import logging

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from config import MAX_MESSAGE_LEN, RECENT_CONSULTATIONS_LIMIT, _current_user_id, _utc_now_storage
from db import get_db
from llm import GENERIC_ERROR, LLMError, consultation_reply
from security import _is_llm_call_allowed

logger = logging.getLogger(__name__)

router = APIRouter()

TITLE_LEN = 30


def _conversation(row) -> dict:
    item = dict(row)
    item["id"] = str(item["id"])
    item.pop("user_id", None)
    item["messages"] = json.loads(item["messages"] or "[]")
    return item


@router.post("/api/medical-consultation")
def api_consultation(payload: dict = Body(...)):
    uid = _current_user_id.get()
    message = str(payload.get("message") or "").strip()
    conversation_id = str(payload.get("conversation_id") or "")
    language = str(payload.get("language") or "en")
    if not message:
        return JSONResponse({"ok": False, "error": "Message is required"}, status_code=400)
    if len(message) > MAX_MESSAGE_LEN:
        return JSONResponse(
            {"ok": False, "error": f"Message must be {MAX_MESSAGE_LEN} characters or fewer"},
            status_code=400,
        )

    history = []
    if conversation_id:
        with get_db() as conn:
            row = conn.execute(
                "SELECT messages FROM consultations WHERE id = ? AND user_id = ?",
                (conversation_id, uid),
            ).fetchone()
        if row is None:
            return JSONResponse(
                {"ok": False, "error": "Permission denied or conversation not found"}, status_code=404
            )
        history = json.loads(row["messages"] or "[]")

    if not _is_llm_call_allowed(uid):
        return JSONResponse({"ok": False, "error": "Too many requests"}, status_code=429)
    try:
        reply = consultation_reply(history, message)
    except LLMError:
        logger.exception("Consultation reply failed")
        return JSONResponse({"ok": False, "error": GENERIC_ERROR}, status_code=502)

    messages = history + [
        {"sender": "user", "content": message},
        {"sender": "ai", "content": reply},
    ]
    with get_db() as conn:
        if conversation_id:
            conn.execute(
                "UPDATE consultations SET messages = ?, language = ?, timestamp = ?"
                " WHERE id = ? AND user_id = ?",
                (json.dumps(messages), language, _utc_now_storage(), conversation_id, uid),
            )
        else:
            cur = conn.execute(
                "INSERT INTO consultations (user_id, title, language, messages, timestamp)"
                " VALUES (?, ?, ?, ?, ?)",
                (uid, message[:TITLE_LEN], language, json.dumps(messages), _utc_now_storage()),
            )
            conversation_id = str(cur.lastrowid)
        conn.commit()
    return JSONResponse({"ok": True, "reply": reply, "conversation_id": conversation_id})


@router.get("/api/medical-consultation/{conversation_id}")
def api_consultation_get(conversation_id: int):
    uid = _current_user_id.get()
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM consultations WHERE id = ? AND user_id = ?", (conversation_id, uid)
        ).fetchone()
    if row is None:
        return JSONResponse({"ok": False, "error": "Conversation not found"}, status_code=404)
    return JSONResponse(_conversation(row))


@router.get("/api/recent-consultations")
def api_recent_consultations():
    uid = _current_user_id.get()
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM consultations WHERE user_id = ?"
            " ORDER BY timestamp DESC, id DESC LIMIT ?",
            (uid, RECENT_CONSULTATIONS_LIMIT),
        ).fetchall()
    return JSONResponse({"consultations": [_conversation(r) for r in rows]})
