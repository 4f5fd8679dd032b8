import tempfile
import threading
import unittest

import db
from store import ReminderCache, ReminderStore


def _fields(**overrides):
    fields = {
        "name": "Lisinopril",
        "dose": "10mg",
        "frequency": "twice-daily",
        "times": ["20:00", "08:00"],
        "start_date": "2026-03-01",
        "end_date": "",
        "notes": " with food ",
    }
    fields.update(overrides)
    return fields


class ReminderStoreTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self._old_db_path = db.DB_PATH
        db.DB_PATH = f"{self.tmp.name}/test.db"
        db.init_db()
        self.store = ReminderStore()

    def tearDown(self):
        db.DB_PATH = self._old_db_path
        self.tmp.cleanup()

    def test_create_normalizes_fields(self):
        rid = self.store.create(1, _fields())
        reminder = self.store.get(rid)
        self.assertEqual(reminder["id"], rid)
        self.assertEqual(reminder["times"], ["08:00", "20:00"])
        self.assertEqual(reminder["notes"], "with food")
        self.assertIsNone(reminder["end_date"])
        self.assertEqual(reminder["adherence"], [])

    def test_list_is_scoped_to_user(self):
        self.store.create(1, _fields())
        self.store.create(2, _fields(name="Aspirin"))
        self.assertEqual([r["name"] for r in self.store.list(1)], ["Lisinopril"])
        self.assertEqual([r["name"] for r in self.store.list(2)], ["Aspirin"])

    def test_update_and_delete(self):
        rid = self.store.create(1, _fields())
        logs = [{"date": "2026-03-02T08:00:00", "status": "taken"}]
        self.assertTrue(self.store.update(rid, {"dose": "20mg", "adherence": logs}))
        reminder = self.store.get(rid)
        self.assertEqual(reminder["dose"], "20mg")
        self.assertEqual(reminder["adherence"], logs)
        self.assertTrue(self.store.delete(rid))
        self.assertIsNone(self.store.get(rid))
        self.assertFalse(self.store.delete(rid))

    def test_update_rejects_unknown_fields(self):
        rid = self.store.create(1, _fields())
        with self.assertRaises(ValueError):
            self.store.update(rid, {"user_id": 2})

    def test_get_with_bad_id(self):
        self.assertIsNone(self.store.get("abc"))


class ReminderCacheTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self._old_db_path = db.DB_PATH
        db.DB_PATH = f"{self.tmp.name}/test.db"
        db.init_db()
        self.store = ReminderStore()
        self.cache = ReminderCache(self.store)

    def tearDown(self):
        db.DB_PATH = self._old_db_path
        self.tmp.cleanup()

    def test_reads_through_and_caches(self):
        self.store.create(1, _fields())
        self.assertEqual(len(self.cache.reminders(1)), 1)
        # written behind the cache's back: not visible until invalidated
        self.store.create(1, _fields(name="Aspirin"))
        self.assertEqual(len(self.cache.reminders(1)), 1)
        self.cache.invalidate(1)
        self.assertEqual(len(self.cache.reminders(1)), 2)

    def test_writes_refresh_entry(self):
        self.assertEqual(self.cache.reminders(1), [])
        rid = self.cache.create(1, _fields())
        self.assertEqual(self.cache.get(1, rid)["name"], "Lisinopril")
        self.cache.update(1, rid, {"name": "Losartan"})
        self.assertEqual(self.cache.get(1, rid)["name"], "Losartan")
        self.cache.delete(1, rid)
        self.assertIsNone(self.cache.get(1, rid))

    def test_get_is_scoped_to_user(self):
        rid = self.cache.create(1, _fields())
        self.assertIsNone(self.cache.get(2, rid))


class _SlowListStore:
    """In-memory store whose first ``list`` call waits until released."""

    def __init__(self):
        self.rows = []
        self.list_started = threading.Event()
        self.release = threading.Event()
        self._first = True

    def list(self, user_id):
        snapshot = list(self.rows)
        if self._first:
            self._first = False
            self.list_started.set()
            self.release.wait(5)
        return snapshot

    def create(self, user_id, fields):
        reminder_id = str(len(self.rows) + 1)
        self.rows.append(dict(fields, id=reminder_id, user_id=user_id))
        return reminder_id


class ReminderCacheConcurrencyTests(unittest.TestCase):
    def test_slow_read_does_not_overwrite_newer_write(self):
        store = _SlowListStore()
        cache = ReminderCache(store)
        reader = threading.Thread(target=cache.reminders, args=(1,))
        reader.start()
        self.assertTrue(store.list_started.wait(5))

        cache.create(1, _fields())
        store.release.set()
        reader.join(5)

        self.assertEqual(len(store.rows), 1)
        self.assertEqual(len(cache.reminders(1)), 1)


if __name__ == "__main__":
    unittest.main()
