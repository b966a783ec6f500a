from __future__ import annotations

from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer, Signal


class QtTimerCall:
    def __init__(self, timer: QTimer) -> None:
        self._timer = timer
        self._done = False
        timer.timeout.connect(self._finish)

    def _finish(self) -> None:
        self._done = True
        self._timer.deleteLater()

    def cancel(self) -> None:
        if self._done:
            return
        self._done = True
        self._timer.stop()
        self._timer.deleteLater()


class QtScheduler:
    """Runs pipeline debounce callbacks on the Qt event loop thread."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        # Timers must be owned on the Qt side, a bare Python reference is not enough
        self._owner = parent if parent is not None else QObject()

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> QtTimerCall:
        timer = QTimer(self._owner)
        timer.setSingleShot(True)
        timer.timeout.connect(callback)
        call = QtTimerCall(timer)
        timer.start(max(0, int(delay_ms)))
        return call


class ResultBridge(QObject):
    """Hands render results from executor threads to the GUI thread."""

    result_ready = Signal(object)

    def post(self, result: object) -> None:
        self.result_ready.emit(result)
