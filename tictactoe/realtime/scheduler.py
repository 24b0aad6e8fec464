"""
Single-shot timer scheduling for reconnect backoff.
"""

import threading
from typing import Any, Callable


class TimerHandle:
    """Cancellable handle for a scheduled callback."""

    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class TimerScheduler:
    """Runs callbacks after a delay on daemon timer threads."""

    def call_later(self, delay_seconds: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        timer = threading.Timer(delay_seconds, callback, args=args)
        timer.daemon = True
        timer.start()
        return TimerHandle(timer)
