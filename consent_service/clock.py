"""Naive UTC time for the whole service. Tests pin it with FakeClock."""
import datetime


class Clock:
    def __init__(self):
        self._pinned = None

    def now(self):
        return self._pinned or datetime.datetime.utcnow()

    def pin(self, now):
        previous, self._pinned = self._pinned, now
        return previous


CLOCK = Clock()


class FakeClock:
    """Pins CLOCK to a fixed time inside a with block. Blocks may be nested."""

    def __init__(self, now):
        self.now = now
        self._previous = None

    def __enter__(self):
        self._previous = CLOCK.pin(self.now)
        return self

    def __exit__(self, *exc_info):
        CLOCK.pin(self._previous)

    def advance(self, delta=datetime.timedelta(minutes=1)):
        self.now += delta
        CLOCK.pin(self.now)
