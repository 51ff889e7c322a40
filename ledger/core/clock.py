"""
Time quantizer.

Accrual math never sees raw seconds, only whole-minute ticks.
"""
import time
from typing import Callable, Optional

from protocol.config.params import SECONDS_PER_TICK


def tick_of(seconds: int) -> int:
    """Maps wall-clock seconds to the minute tick containing them."""
    return int(seconds) // SECONDS_PER_TICK


class Clock:
    """Wall clock with an injectable time source."""

    def __init__(self, time_source: Optional[Callable[[], float]] = None):
        self._time_source = time_source or time.time

    def now(self) -> int:
        """Current wall-clock time in whole seconds."""
        return int(self._time_source())

    def current_tick(self) -> int:
        return tick_of(self.now())


class ManualClock(Clock):
    """
    Settable clock for simulations and tests.

    Time only moves when told to.
    """

    def __init__(self, start: int = 0):
        self._now = int(start)
        super().__init__(time_source=lambda: self._now)

    def set(self, seconds: int) -> None:
        if seconds < self._now:
            raise ValueError(f"Clock cannot move backwards: {seconds} < {self._now}")
        self._now = int(seconds)

    def advance(self, seconds: int) -> int:
        self.set(self._now + int(seconds))
        return self._now

    def advance_ticks(self, ticks: int) -> int:
        return self.advance(ticks * SECONDS_PER_TICK)
