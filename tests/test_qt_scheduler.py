from __future__ import annotations

import time
import unittest


class QtSchedulerTests(unittest.TestCase):
    def setUp(self) -> None:
        try:
            from PySide6.QtCore import QCoreApplication
            from ui.qt_scheduler import QtScheduler
        except Exception as exc:  # pragma: no cover - environment dependency
            self.skipTest(f"missing runtime dependency: {exc}")
        self.app = QCoreApplication.instance() or QCoreApplication([])
        self.scheduler = QtScheduler()

    def _pump(self, until, timeout_s: float = 1.0) -> None:
        deadline = time.monotonic() + timeout_s
        while time.monotonic() < deadline and not until():
            self.app.processEvents()

    def test_callback_fires_on_event_loop(self) -> None:
        fired = []
        self.scheduler.call_later(0, lambda: fired.append(1))
        self._pump(lambda: fired)
        self.assertEqual(fired, [1])

    def test_cancelled_callback_never_fires(self) -> None:
        fired = []
        call = self.scheduler.call_later(0, lambda: fired.append(1))
        call.cancel()
        call.cancel()
        self._pump(lambda: False, timeout_s=0.05)
        self.assertEqual(fired, [])


if __name__ == "__main__":
    unittest.main()
