"""Reminder persistence and the per-user read-through cache.

Reminders are stored as documents: scalar fields in columns, ``times`` and
``adherence`` as JSON arrays. Ids are returned to callers as strings.
"""
import json
import logging
import threading
from typing import Optional

from config import _utc_now_storage
from db import get_db
from tracker import DATE_FMT, _parse_date

logger = logging.getLogger(__name__)

_COLUMNS = "id, user_id, name, dose, frequency, times, start_date, end_date, notes, adherence"
EDITABLE_FIELDS = ("name", "dose", "frequency", "times", "start_date", "end_date", "notes")
UPDATABLE_FIELDS = EDITABLE_FIELDS + ("adherence",)


def _row_to_reminder(row) -> dict:
    item = dict(row)
    item["id"] = str(item["id"])
    item["times"] = json.loads(item["times"] or "[]")
    item["adherence"] = json.loads(item["adherence"] or "[]")
    item["end_date"] = item["end_date"] or None
    return item


def normalize_fields(fields: dict) -> dict:
    """Canonical storage form for already-validated reminder fields."""
    out = {}
    for key in EDITABLE_FIELDS:
        if key not in fields:
            continue
        value = fields[key]
        if key == "times":
            value = sorted(set(str(t) for t in value))
        elif key in ("start_date", "end_date"):
            value = _parse_date(str(value)).strftime(DATE_FMT) if value else ""
        else:
            value = str(value or "").strip()
        out[key] = value
    return out


def _to_columns(fields: dict) -> dict:
    cols = {}
    for key, value in fields.items():
        if key in ("times", "adherence"):
            value = json.dumps(value)
        elif key == "end_date":
            value = value or ""
        cols[key] = value
    return cols


class ReminderStore:
    def list(self, user_id: int) -> list:
        with get_db() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM reminders WHERE user_id=? ORDER BY name, id",
                (user_id,),
            ).fetchall()
        return [_row_to_reminder(r) for r in rows]

    def get(self, reminder_id) -> Optional[dict]:
        try:
            rid = int(reminder_id)
        except (TypeError, ValueError):
            return None
        with get_db() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM reminders WHERE id=?", (rid,)
            ).fetchone()
        return _row_to_reminder(row) if row else None

    def create(self, user_id: int, fields: dict) -> str:
        cols = _to_columns(normalize_fields(fields))
        cols["adherence"] = "[]"
        cols["user_id"] = user_id
        cols["created_at"] = _utc_now_storage()
        names = ", ".join(cols)
        marks = ", ".join("?" for _ in cols)
        with get_db() as conn:
            cur = conn.execute(
                f"INSERT INTO reminders ({names}) VALUES ({marks})", tuple(cols.values())
            )
            conn.commit()
        logger.info("Created reminder %s for user %s", cur.lastrowid, user_id)
        return str(cur.lastrowid)

    def update(self, reminder_id, fields: dict) -> bool:
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        updates = normalize_fields(fields)
        if "adherence" in fields:
            updates["adherence"] = list(fields["adherence"])
        if not updates:
            return self.get(reminder_id) is not None
        cols = _to_columns(updates)
        assignments = ", ".join(f"{k}=?" for k in cols)
        with get_db() as conn:
            cur = conn.execute(
                f"UPDATE reminders SET {assignments} WHERE id=?",
                tuple(cols.values()) + (int(reminder_id),),
            )
            conn.commit()
        return cur.rowcount > 0

    def delete(self, reminder_id) -> bool:
        with get_db() as conn:
            cur = conn.execute("DELETE FROM reminders WHERE id=?", (int(reminder_id),))
            conn.commit()
        return cur.rowcount > 0


class ReminderCache:
    """Read-through cache of each user's reminders.

    Every write goes to the store first and then reloads that user's entry,
    so readers never see a state the store does not have. Each write bumps a
    per-user generation; a load that started before a write is returned to
    its caller but never installed.
    """

    def __init__(self, store: ReminderStore):
        self.store = store
        self._lock = threading.Lock()
        self._by_user: dict[int, list] = {}
        self._generation: dict[int, int] = {}

    def reminders(self, user_id: int) -> list:
        with self._lock:
            cached = self._by_user.get(user_id)
        if cached is not None:
            return cached
        return self._refresh(user_id)

    def get(self, user_id: int, reminder_id) -> Optional[dict]:
        for reminder in self.reminders(user_id):
            if reminder["id"] == str(reminder_id):
                return reminder
        return None

    def _refresh(self, user_id: int) -> list:
        with self._lock:
            started = self._generation.get(user_id, 0)
        fresh = self.store.list(user_id)
        with self._lock:
            if self._generation.get(user_id, 0) == started:
                self._by_user[user_id] = fresh
        return fresh

    def _written(self, user_id: int):
        with self._lock:
            self._generation[user_id] = self._generation.get(user_id, 0) + 1
            self._by_user.pop(user_id, None)

    def invalidate(self, user_id: int):
        self._written(user_id)

    def create(self, user_id: int, fields: dict) -> str:
        reminder_id = self.store.create(user_id, fields)
        self._written(user_id)
        self._refresh(user_id)
        return reminder_id

    def update(self, user_id: int, reminder_id, fields: dict) -> bool:
        ok = self.store.update(reminder_id, fields)
        self._written(user_id)
        self._refresh(user_id)
        return ok

    def delete(self, user_id: int, reminder_id) -> bool:
        ok = self.store.delete(reminder_id)
        self._written(user_id)
        self._refresh(user_id)
        return ok
