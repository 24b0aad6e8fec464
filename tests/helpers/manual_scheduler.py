"""
Deterministic stand-in for TimerScheduler.
Timers never fire on their own; tests fire them explicitly.
"""


class ManualTimer:
    """A scheduled callback that runs only when fired."""

    def __init__(self, delay_seconds, callback, args):
        self.delay_seconds = delay_seconds
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    @property
    def delay_ms(self):
        return int(round(self.delay_seconds * 1000))

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.callback(*self.args)


class ManualScheduler:
    """Records call_later() requests for tests to inspect and fire."""

    def __init__(self):
        self.timers = []

    def call_later(self, delay_seconds, callback, *args):
        timer = ManualTimer(delay_seconds, callback, args)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_next(self):
        """Fire the oldest pending timer.

        Returns:
            The fired timer
        """
        timer = self.pending[0]
        timer.fire()
        return timer

    def fire_all_pending(self):
        """Fire every timer pending right now (not ones they schedule)."""
        fired = []
        for timer in self.pending:
            timer.fire()
            fired.append(timer)
        return fired
