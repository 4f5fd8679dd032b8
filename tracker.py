"""Medication adherence tracking.

Pure functions over reminder documents (plain dicts as returned by
``store.ReminderStore``). Nothing here touches the database or the clock;
callers pass ``now``/``today`` in. Malformed dates or times raise
``ValueError`` and are expected to be caught at the data-entry boundary by
``validate_reminder_fields``.
"""
import math
from datetime import date, datetime, timedelta
from typing import Optional

DATE_FMT = "%Y-%m-%d"
TIME_FMT = "%H:%M"
LOG_FMT = "%Y-%m-%dT%H:%M:%S"

STATUS_TAKEN = "taken"
STATUS_SKIPPED = "skipped"
VALID_STATUSES = {STATUS_TAKEN, STATUS_SKIPPED}

FREQ_LABELS = {
    "once-daily":  "Once daily",
    "twice-daily": "Twice daily",
    "three-times": "Three times daily",
    "four-times":  "Four times daily",
    "as-needed":   "As needed",
}
VALID_FREQUENCIES = set(FREQ_LABELS)

WINDOW_DAYS = 7

CHART_NONE = "none"
CHART_PARTIAL = "partial"
CHART_TAKEN = "taken"

MAX_NAME_LEN = 120
MAX_DOSE_LEN = 80
MAX_NOTES_LEN = 1000


def _parse_date(value: str) -> date:
    return datetime.strptime(value, DATE_FMT).date()


def _parse_time(value: str):
    return datetime.strptime(value, TIME_FMT).time()


def _parse_log(entry: dict) -> datetime:
    return datetime.strptime(entry["date"], LOG_FMT)


def is_active(reminder: dict, day: date) -> bool:
    if day < _parse_date(reminder["start_date"]):
        return False
    end = reminder.get("end_date") or ""
    return not end or day <= _parse_date(end)


def window_days(today: date) -> list:
    """Today and the six preceding days, oldest first."""
    return [today - timedelta(days=offset) for offset in range(WINDOW_DAYS - 1, -1, -1)]


def _logs_by_day(reminder: dict) -> dict:
    by_day: dict[date, list] = {}
    for entry in reminder.get("adherence") or []:
        logged = _parse_log(entry)
        by_day.setdefault(logged.date(), []).append((logged.strftime(TIME_FMT), entry["status"]))
    return by_day


def upcoming_reminders(reminders: list, now: datetime, today: Optional[date] = None) -> list:
    """Doses scheduled today that have no logged outcome yet.

    A dose whose scheduled instant is at or before ``now`` is overdue.
    """
    today = today or now.date()
    result = []
    for reminder in reminders:
        if not is_active(reminder, today):
            continue
        handled = {t for t, _ in _logs_by_day(reminder).get(today, [])}
        for slot in reminder["times"]:
            if slot in handled:
                continue
            scheduled_at = datetime.combine(today, _parse_time(slot))
            result.append({
                "reminder": reminder,
                "time": slot,
                "scheduled_at": scheduled_at,
                "is_overdue": scheduled_at <= now,
            })
    result.sort(key=lambda item: item["time"])
    return result


def adherence_summary(reminder: dict, today: date) -> dict:
    """Expected and taken dose counts over the trailing window, plus the percentage.

    ``pct`` is 100 when no dose was expected (reminder not started yet or no
    scheduled times); ``expected`` lets callers tell that case apart.
    """
    by_day = _logs_by_day(reminder)
    expected = taken = 0
    for day in window_days(today):
        if not is_active(reminder, day):
            continue
        expected += len(reminder["times"])
        taken += sum(1 for _, status in by_day.get(day, []) if status == STATUS_TAKEN)
    if expected == 0:
        return {"expected": 0, "taken": taken, "pct": 100}
    pct = int(math.floor(100 * taken / expected + 0.5))
    return {"expected": expected, "taken": taken, "pct": max(0, min(100, pct))}


def adherence_percentage(reminder: dict, today: date) -> int:
    return adherence_summary(reminder, today)["pct"]


def adherence_chart(reminder: dict, today: date) -> list:
    by_day = _logs_by_day(reminder)
    times = reminder["times"]
    days = []
    for day in window_days(today):
        logs = by_day.get(day, [])
        if not logs:
            status = CHART_NONE
        else:
            taken_times = {t for t, s in logs if s == STATUS_TAKEN}
            if times and all(t in taken_times for t in times):
                status = CHART_TAKEN
            else:
                status = CHART_PARTIAL
        days.append({"date": day.isoformat(), "label": day.strftime("%a"), "status": status})
    return days


def _slot_key(day: date, slot: str) -> str:
    return f"{day.strftime(DATE_FMT)}T{slot}:00"


def record_outcome(reminder: dict, day: date, slot: str, status: str) -> list:
    """Return a new adherence list with the outcome for (day, slot) replaced."""
    if status not in VALID_STATUSES:
        raise ValueError(f"Invalid status: {status!r}")
    if slot not in reminder["times"]:
        raise ValueError(f"{slot!r} is not a scheduled time for this reminder")
    key = _slot_key(day, slot)
    logs = [e for e in reminder.get("adherence") or [] if e["date"] != key]
    logs.append({"date": key, "status": status})
    return logs


def clear_outcome(reminder: dict, day: date, slot: str) -> list:
    key = _slot_key(day, slot)
    return [e for e in reminder.get("adherence") or [] if e["date"] != key]


def validate_reminder_fields(fields: dict) -> Optional[str]:
    name = str(fields.get("name") or "").strip()
    dose = str(fields.get("dose") or "").strip()
    notes = str(fields.get("notes") or "").strip()
    if not name:
        return "Medication name is required"
    if len(name) > MAX_NAME_LEN:
        return f"Medication name must be {MAX_NAME_LEN} characters or fewer"
    if not dose:
        return "Dose is required"
    if len(dose) > MAX_DOSE_LEN:
        return f"Dose must be {MAX_DOSE_LEN} characters or fewer"
    if len(notes) > MAX_NOTES_LEN:
        return f"Notes must be {MAX_NOTES_LEN} characters or fewer"
    frequency = fields.get("frequency")
    if not isinstance(frequency, str) or frequency not in VALID_FREQUENCIES:
        return "Invalid frequency"
    times = fields.get("times")
    if not isinstance(times, list) or not times:
        return "At least one time is required"
    for slot in times:
        if not isinstance(slot, str) or len(slot) != 5:
            return f"Invalid time: {slot}"
        try:
            _parse_time(slot)
        except ValueError:
            return f"Invalid time: {slot}"
    if len(set(times)) != len(times):
        return "Times must be unique"
    try:
        start = _parse_date(str(fields.get("start_date") or ""))
    except ValueError:
        return "Invalid start date"
    end_raw = fields.get("end_date") or ""
    if end_raw:
        try:
            end = _parse_date(str(end_raw))
        except ValueError:
            return "Invalid end date"
        if end < start:
            return "End date cannot be before start date"
    return None
