import threading
import unittest

from plan_graph.debounce import DebouncedSaver, ThreadingTimerScheduler


class _FakeScheduler:
    def __init__(self):
        self.timers = []

    def call_later(self, delay_ms, callback):
        handle = {"delay_ms": delay_ms, "callback": callback, "cancelled": False, "fired": False}
        self.timers.append(handle)
        return handle

    def cancel(self, handle):
        handle["cancelled"] = True

    def live(self):
        return [h for h in self.timers if not h["cancelled"] and not h["fired"]]

    def fire_all(self):
        for handle in list(self.timers):
            if handle["cancelled"] or handle["fired"]:
                continue
            handle["fired"] = True
            handle["callback"]()


class TestDebouncedSaver(unittest.TestCase):
    def test_burst_of_edits_saves_once_with_latest_payload(self):
        saved = []
        scheduler = _FakeScheduler()
        saver = DebouncedSaver(saved.append, delay_ms=700, scheduler=scheduler)

        for i in range(5):
            saver.schedule({"version": i})
        self.assertTrue(saver.pending)
        self.assertEqual(len(scheduler.live()), 1)
        self.assertEqual(scheduler.timers[-1]["delay_ms"], 700)

        scheduler.fire_all()
        self.assertEqual(saved, [{"version": 4}])
        self.assertFalse(saver.pending)

    def test_stale_timer_callback_is_ignored(self):
        saved = []
        scheduler = _FakeScheduler()
        saver = DebouncedSaver(saved.append, scheduler=scheduler)
        saver.schedule("old")
        stale = scheduler.timers[0]["callback"]
        saver.schedule("new")

        # A timer that could not be cancelled in time still fires.
        stale()
        self.assertEqual(saved, [])
        scheduler.fire_all()
        self.assertEqual(saved, ["new"])

    def test_flush_saves_immediately(self):
        saved = []
        scheduler = _FakeScheduler()
        saver = DebouncedSaver(saved.append, scheduler=scheduler)
        self.assertFalse(saver.flush())
        saver.schedule("payload")
        self.assertTrue(saver.flush())
        self.assertEqual(saved, ["payload"])
        scheduler.fire_all()
        self.assertEqual(saved, ["payload"])

    def test_cancel_drops_pending_payload(self):
        saved = []
        scheduler = _FakeScheduler()
        saver = DebouncedSaver(saved.append, scheduler=scheduler)
        saver.schedule("payload")
        saver.cancel()
        self.assertFalse(saver.pending)
        scheduler.fire_all()
        self.assertEqual(saved, [])

    def test_failed_save_is_logged_and_next_edit_retries(self):
        calls = []

        def flaky_save(payload):
            calls.append(payload)
            if len(calls) == 1:
                raise RuntimeError("network down")

        scheduler = _FakeScheduler()
        saver = DebouncedSaver(flaky_save, scheduler=scheduler, name="entities")
        saver.schedule("first")
        with self.assertLogs("debounce", level="ERROR") as logs:
            scheduler.fire_all()
        self.assertIn("network down", "\n".join(logs.output))
        self.assertEqual(saver.last_error, "network down")

        saver.schedule("second")
        scheduler.fire_all()
        self.assertEqual(calls, ["first", "second"])
        self.assertEqual(saver.last_error, "")

    def test_threading_scheduler_fires_after_delay(self):
        done = threading.Event()
        saved = []

        def save(payload):
            saved.append(payload)
            done.set()

        saver = DebouncedSaver(save, delay_ms=10, scheduler=ThreadingTimerScheduler())
        saver.schedule("a")
        saver.schedule("b")
        self.assertTrue(done.wait(2.0), "Debounced save never fired. Fix: start the timer in call_later().")
        self.assertEqual(saved, ["b"])


if __name__ == "__main__":
    unittest.main()
