import sqlite3
from contextlib import contextmanager

from config import DB_PATH


def init_db():
    with sqlite3.connect(DB_PATH) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS user_profile (
                id            INTEGER PRIMARY KEY AUTOINCREMENT,
                username      TEXT    NOT NULL UNIQUE,
                email         TEXT    NOT NULL DEFAULT '',
                password_hash TEXT    NOT NULL DEFAULT '',
                created_at    TEXT    NOT NULL DEFAULT ''
            )
        """)
        # Reminder documents: times and adherence are JSON arrays
        conn.execute("""
            CREATE TABLE IF NOT EXISTS reminders (
                id         INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id    INTEGER NOT NULL REFERENCES user_profile(id),
                name       TEXT    NOT NULL,
                dose       TEXT    NOT NULL DEFAULT '',
                frequency  TEXT    NOT NULL,
                times      TEXT    NOT NULL DEFAULT '[]',
                start_date TEXT    NOT NULL,
                end_date   TEXT    NOT NULL DEFAULT '',
                notes      TEXT    NOT NULL DEFAULT '',
                adherence  TEXT    NOT NULL DEFAULT '[]',
                created_at TEXT    NOT NULL DEFAULT ''
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS consultations (
                id        INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id   INTEGER NOT NULL REFERENCES user_profile(id),
                title     TEXT    NOT NULL DEFAULT '',
                language  TEXT    NOT NULL DEFAULT 'en',
                messages  TEXT    NOT NULL DEFAULT '[]',
                timestamp TEXT    NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS wellness_plans (
                id         INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id    INTEGER NOT NULL REFERENCES user_profile(id),
                plan       TEXT    NOT NULL,
                created_at TEXT    NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                user_id INTEGER PRIMARY KEY REFERENCES user_profile(id),
                data    TEXT    NOT NULL DEFAULT '{}'
            )
        """)
        # Indexes for common query patterns (all filtered by user_id)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_reminders_user_id ON reminders(user_id)")
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_consultations_user_ts"
            " ON consultations(user_id, timestamp)"
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_wellness_plans_user_id ON wellness_plans(user_id)")
        conn.commit()


@contextmanager
def get_db():
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()
