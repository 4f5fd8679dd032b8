import contextvars
import unittest
from datetime import datetime, timedelta, timezone

import config


class ClientClockTests(unittest.TestCase):
    def _run(self, fn, *args):
        # each request gets its own context; mirror that here
        return contextvars.copy_context().run(fn, *args)

    def test_offset_shifts_now_from_utc(self):
        def set_and_read():
            config._set_client_clock("120")
            return config._now_local(), config._client_tz_offset_min.get()

        utc_before = datetime.now(timezone.utc).replace(tzinfo=None)
        local, offset = self._run(set_and_read)
        self.assertEqual(offset, 120)
        delta = utc_before - local
        self.assertGreaterEqual(delta, timedelta(minutes=119, seconds=59))
        self.assertLessEqual(delta, timedelta(minutes=120))

    def test_bad_offsets_fall_back_to_server_time(self):
        for raw in ("", "abc", "900", "-900"):
            with self.subTest(raw=raw):
                def set_and_read():
                    config._set_client_clock(raw)
                    return config._client_tz_offset_min.get()

                self.assertIsNone(self._run(set_and_read))

    def test_parse_bounds(self):
        self.assertEqual(config._parse_tz_offset(" -840 "), -840)
        self.assertEqual(config._parse_tz_offset("840"), 840)
        self.assertIsNone(config._parse_tz_offset("841"))


if __name__ == "__main__":
    unittest.main()
