import sqlite3
import unittest
from datetime import date, timedelta
from unittest import mock

from apptest import ORIGIN, AppTestCase


def _reminder_payload(**overrides):
    payload = {
        "name": "Ibuprofen",
        "dose": "400mg",
        "frequency": "twice-daily",
        "times": ["08:00", "20:00"],
        "start_date": (date.today() - timedelta(days=3)).isoformat(),
        "notes": "",
    }
    payload.update(overrides)
    return payload


class AuthCsrfIntegrationTests(AppTestCase):
    def test_first_visit_redirects_to_signup(self):
        resp = self.client.get("/reminders", follow_redirects=False)
        self.assertEqual(resp.status_code, 303)
        self.assertEqual(resp.headers["location"], "/signup")

    def test_api_requires_auth(self):
        self._signup_then_clear()
        resp = self.client.get("/api/medication-reminders")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"error": "unauthorized"})

    def test_page_redirects_to_login_when_logged_out(self):
        self._signup_then_clear()
        resp = self.client.get("/reminders", follow_redirects=False)
        self.assertEqual(resp.status_code, 303)
        self.assertEqual(resp.headers["location"], "/login")

    def _signup_then_clear(self):
        self.signup()
        self.client.cookies.clear()

    def test_api_post_requires_csrf_header(self):
        self.signup()

        without_csrf = self.client.post(
            "/api/medication-reminders",
            headers={"origin": ORIGIN},
            json=_reminder_payload(),
        )
        self.assertEqual(without_csrf.status_code, 403)
        self.assertEqual(without_csrf.json(), {"error": "forbidden"})

        with_csrf = self.client.post(
            "/api/medication-reminders", headers=self.headers(), json=_reminder_payload()
        )
        self.assertEqual(with_csrf.status_code, 200)
        payload = with_csrf.json()
        self.assertTrue(payload.get("ok"))
        self.assertTrue(payload["id"])

    def test_cross_origin_post_is_forbidden(self):
        self.signup()
        headers = self.headers()
        headers["origin"] = "http://evil.example"
        resp = self.client.post("/api/medication-reminders", headers=headers, json=_reminder_payload())
        self.assertEqual(resp.status_code, 403)

    def test_login_with_wrong_password(self):
        self.signup()
        self.client.cookies.clear()
        resp = self.client.post(
            "/login",
            headers={"origin": ORIGIN},
            data={"username": "alice", "password": "wrong-password"},
            follow_redirects=False,
        )
        self.assertEqual(resp.status_code, 303)
        self.assertIn("error=", resp.headers["location"])

    def test_duplicate_username(self):
        self.signup()
        resp = self.client.post(
            "/signup",
            headers={"origin": ORIGIN},
            data={"username": "alice", "new_password": "password123", "confirm_password": "password123"},
            follow_redirects=False,
        )
        self.assertEqual(resp.status_code, 303)
        self.assertEqual(resp.headers["location"], "/signup?error=Username+already+taken")

    def test_tampered_session_is_rejected(self):
        self.signup()
        token = self.client.cookies.get("vitashifa_session")
        user_id, rest = token.split(".", 1)
        self.client.cookies.clear()
        self.client.cookies.set("vitashifa_session", f"{int(user_id) + 1}.{rest}")
        self.assertEqual(self.client.get("/api/medication-reminders").status_code, 401)

    def test_signup_stores_hashed_password(self):
        self.signup()
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute("SELECT password_hash FROM user_profile WHERE username = 'alice'").fetchone()
        self.assertNotEqual(row[0], "password123")
        self.assertTrue(row[0].startswith("pbkdf2_sha256$480000$"))


class ReminderApiTests(AppTestCase):
    def setUp(self):
        super().setUp()
        self.signup()

    def _create(self, **overrides) -> str:
        resp = self.client.post(
            "/api/medication-reminders", headers=self.headers(), json=_reminder_payload(**overrides)
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        return resp.json()["id"]

    def test_create_and_list(self):
        rid = self._create(times=["20:00", "08:00"])
        resp = self.client.get("/api/medication-reminders")
        self.assertEqual(resp.status_code, 200)
        reminders = resp.json()["reminders"]
        self.assertEqual(len(reminders), 1)
        r = reminders[0]
        self.assertEqual(r["id"], rid)
        self.assertEqual(r["times"], ["08:00", "20:00"])
        self.assertNotIn("user_id", r)
        self.assertEqual(r["adherence_7d"], {"expected": 8, "taken": 0, "pct": 0})
        self.assertEqual(len(r["chart"]), 7)

    def test_create_validation_error(self):
        resp = self.client.post(
            "/api/medication-reminders",
            headers=self.headers(),
            json=_reminder_payload(frequency="hourly"),
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"ok": False, "error": "Invalid frequency"})

    def test_non_string_frequency_is_rejected(self):
        rid = self._create()
        for method, url in (("POST", "/api/medication-reminders"), ("PUT", f"/api/medication-reminders/{rid}")):
            with self.subTest(method=method):
                resp = self.client.request(
                    method, url, headers=self.headers(), json=_reminder_payload(frequency=["x"])
                )
                self.assertEqual(resp.status_code, 400)
                self.assertEqual(resp.json()["error"], "Invalid frequency")

    def test_reminder_deleted_during_write_is_not_found(self):
        rid = self._create()
        cache = self.app.state.reminders
        real_update = cache.update

        def update_then_delete(uid, reminder_id, fields):
            ok = real_update(uid, reminder_id, fields)
            cache.delete(uid, reminder_id)
            return ok

        with mock.patch.object(cache, "update", side_effect=update_then_delete):
            resp = self.client.put(
                f"/api/medication-reminders/{rid}", headers=self.headers(), json={"dose": "200mg"}
            )
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), {"ok": False, "error": "Reminder not found"})

    def test_update_merges_fields(self):
        rid = self._create()
        resp = self.client.put(
            f"/api/medication-reminders/{rid}", headers=self.headers(), json={"dose": "200mg"}
        )
        self.assertEqual(resp.status_code, 200)
        reminder = resp.json()["reminder"]
        self.assertEqual(reminder["dose"], "200mg")
        self.assertEqual(reminder["name"], "Ibuprofen")

    def test_log_and_undo(self):
        rid = self._create()
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        resp = self.client.post(
            f"/api/medication-reminders/{rid}/log",
            headers=self.headers(),
            json={"date": yesterday, "time": "08:00", "status": "taken"},
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        reminder = resp.json()["reminder"]
        self.assertEqual(reminder["adherence"], [{"date": f"{yesterday}T08:00:00", "status": "taken"}])
        self.assertEqual(reminder["adherence_7d"]["taken"], 1)

        # logging the same slot again replaces the outcome
        resp = self.client.post(
            f"/api/medication-reminders/{rid}/log",
            headers=self.headers(),
            json={"date": yesterday, "time": "08:00", "status": "skipped"},
        )
        self.assertEqual(resp.json()["reminder"]["adherence"], [{"date": f"{yesterday}T08:00:00", "status": "skipped"}])

        resp = self.client.post(
            f"/api/medication-reminders/{rid}/undo",
            headers=self.headers(),
            json={"date": yesterday, "time": "08:00"},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["reminder"]["adherence"], [])

    def test_log_rejects_future_and_inactive_dates(self):
        rid = self._create()
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        resp = self.client.post(
            f"/api/medication-reminders/{rid}/log",
            headers=self.headers(),
            json={"date": tomorrow, "time": "08:00", "status": "taken"},
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Date cannot be in the future")

        before_start = (date.today() - timedelta(days=10)).isoformat()
        resp = self.client.post(
            f"/api/medication-reminders/{rid}/log",
            headers=self.headers(),
            json={"date": before_start, "time": "08:00", "status": "taken"},
        )
        self.assertEqual(resp.status_code, 400)

    def test_log_rejects_bad_status_and_slot(self):
        rid = self._create()
        for body in ({"time": "08:00", "status": "missed"}, {"time": "09:00", "status": "taken"}):
            with self.subTest(body=body):
                resp = self.client.post(
                    f"/api/medication-reminders/{rid}/log", headers=self.headers(), json=body
                )
                self.assertEqual(resp.status_code, 400)

    def test_upcoming_excludes_logged_slots(self):
        rid = self._create(times=["00:00", "23:59"], start_date=date.today().isoformat())
        resp = self.client.get("/api/medication-reminders/upcoming")
        self.assertEqual(resp.status_code, 200)
        upcoming = resp.json()["upcoming"]
        self.assertEqual([u["time"] for u in upcoming], ["00:00", "23:59"])
        self.assertTrue(upcoming[0]["is_overdue"])
        self.assertEqual(upcoming[0]["reminder_id"], rid)

        self.client.post(
            f"/api/medication-reminders/{rid}/log",
            headers=self.headers(),
            json={"time": "00:00", "status": "taken"},
        )
        upcoming = self.client.get("/api/medication-reminders/upcoming").json()["upcoming"]
        self.assertEqual([u["time"] for u in upcoming], ["23:59"])

    def test_delete(self):
        rid = self._create()
        resp = self.client.delete(f"/api/medication-reminders/{rid}", headers=self.headers())
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get("/api/medication-reminders").json()["reminders"], [])

    def test_other_users_reminder_is_not_found(self):
        rid = self._create()
        self.signup("bob")
        resp = self.client.put(
            f"/api/medication-reminders/{rid}", headers=self.headers(), json={"dose": "1mg"}
        )
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), {"ok": False, "error": "Reminder not found"})
        resp = self.client.delete(f"/api/medication-reminders/{rid}", headers=self.headers())
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(self.client.get("/api/medication-reminders").json()["reminders"], [])

    def test_reminders_page_renders(self):
        self._create(name="Vitamin <D>")
        resp = self.client.get("/reminders")
        self.assertEqual(resp.status_code, 200)
        self.assertIn("Medication Reminders", resp.text)
        self.assertIn("Vitamin &lt;D&gt;", resp.text)

    def test_root_redirects_to_reminders(self):
        resp = self.client.get("/", follow_redirects=False)
        self.assertEqual(resp.status_code, 303)
        self.assertEqual(resp.headers["location"], "/reminders")


if __name__ == "__main__":
    unittest.main()
